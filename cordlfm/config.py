#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
配置模块

优先级: 内置默认值 < YAML 配置文件 (lfm: 段) < 命令行参数
"""

import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Optional, Union

import yaml


def default_template_prefix() -> str:
    """默认模板前缀: $SCT_DIR/data/PAM50/template/PAM50_"""
    return os.path.join(os.environ.get("SCT_DIR", ""), "data", "PAM50", "template", "PAM50_")


@dataclass
class LFMConfig:
    """LFM 流程参数"""
    data_dir: str = "output/data_processed"
    subjects_file: str = "subjects.txt"
    subject_dir: str = "anat"
    image_pattern: str = "t2w"
    lesion_suffix: str = "_lesionseg"
    cord_suffix: str = "_seg"
    warp_pattern: str = ".*?warp_anat2template"
    output: str = "LFM.nii.gz"
    overwrite: bool = True
    mask_to_coverage: bool = True
    template_prefix: str = ""
    level_min: int = 1
    level_max: int = 20
    backend: str = "ants"
    jobs: int = 1
    keep_intermediate: bool = False
    log_dir: Optional[str] = None

    def __post_init__(self):
        if not self.template_prefix:
            self.template_prefix = default_template_prefix()
        self.overwrite = bool(int(self.overwrite))
        self.mask_to_coverage = bool(int(self.mask_to_coverage))
        self.level_min = int(self.level_min)
        self.level_max = int(self.level_max)
        self.jobs = int(self.jobs)
        self.validate()

    def validate(self) -> None:
        """检查参数取值"""
        if self.level_min > self.level_max:
            raise ValueError(f"level_min ({self.level_min}) 大于 level_max ({self.level_max})")
        if self.jobs < 1:
            raise ValueError(f"jobs 必须 >= 1: {self.jobs}")
        if self.backend not in ("ants", "sitk"):
            raise ValueError(f"未知的重采样后端: {self.backend}")

    @classmethod
    def from_dict(cls, values: dict) -> "LFMConfig":
        """由字典创建，忽略值为 None 的项，未知键报错"""
        known = {f.name for f in fields(cls)}
        unknown = set(values) - known
        if unknown:
            raise ValueError(f"未知的配置项: {sorted(unknown)}")
        return cls(**{k: v for k, v in values.items() if v is not None})

    def to_dict(self) -> dict:
        return asdict(self)


def load_config(
    config_path: Optional[Union[str, Path]] = None,
    overrides: Optional[dict] = None
) -> LFMConfig:
    """
    加载配置

    Args:
        config_path: YAML 配置文件路径 (可选)，参数位于 lfm: 段
        overrides: 命令行参数 (值为 None 的项不覆盖)

    Returns:
        config: LFMConfig
    """
    values = {}
    if config_path is not None:
        with open(config_path, 'r', encoding='utf-8') as f:
            raw = yaml.safe_load(f) or {}
        values.update(raw.get('lfm', {}) or {})

    for key, value in (overrides or {}).items():
        if value is not None:
            values[key] = value

    return LFMConfig.from_dict(values)
