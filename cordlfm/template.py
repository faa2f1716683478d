#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
模板资源

模板通过路径前缀定位 (默认 PAM50: $SCT_DIR/data/PAM50/template/PAM50_)：
- <prefix>t2.nii.gz      重采样目标 (参考图像)
- <prefix>cord.nii.gz    脊髓模板，提供累加器网格
- <prefix>levels.nii.gz  椎体节段标签
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Tuple, Union

import numpy as np
import nibabel as nib

from .utils.io import load_nifti
from .utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class TemplateResources:
    """模板文件路径"""
    reference: Path
    cord: Path
    levels: Path

    @classmethod
    def from_prefix(cls, prefix: Union[str, Path]) -> "TemplateResources":
        prefix = str(prefix)
        return cls(
            reference=Path(f"{prefix}t2.nii.gz"),
            cord=Path(f"{prefix}cord.nii.gz"),
            levels=Path(f"{prefix}levels.nii.gz"),
        )

    def check_exists(self) -> None:
        """检查模板文件是否齐全"""
        missing = [str(p) for p in (self.reference, self.cord, self.levels) if not p.exists()]
        if missing:
            raise FileNotFoundError(f"模板文件不存在: {missing}")

    def load_grid(self) -> Tuple[Tuple[int, ...], np.ndarray]:
        """返回模板网格 (shape, affine)"""
        if not self.cord.exists():
            raise FileNotFoundError(f"文件不存在: {self.cord}")
        img = nib.load(str(self.cord))
        return tuple(img.shape[:3]), img.affine

    def load_levels(self) -> np.ndarray:
        """加载椎体节段标签"""
        return load_nifti(self.levels)
