#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
pytest 配置和共享 fixtures

测试数据直接生成在模板网格上，形变场文件只用于文件匹配，
重采样使用恒等后端，因此不需要 ANTsPy / SimpleITK。
"""

from pathlib import Path

import numpy as np
import nibabel as nib
import pytest

from cordlfm.registration.warp_backends import WarpBackend, check_interpolation
from cordlfm.utils.io import load_nifti

# 模板网格: z 方向 10 层，节段标签 = z + 1
SHAPE = (3, 3, 10)


def write_volume(path, data, affine=None) -> Path:
    """写入 NIfTI 测试文件"""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    if affine is None:
        affine = np.eye(4)
    nib.save(nib.Nifti1Image(np.asarray(data), affine), str(path))
    return path


class IdentityWarpBackend(WarpBackend):
    """恒等重采样：原始空间即模板网格，只记录调用"""

    name = "identity"

    def __init__(self):
        self.calls = []

    def warp(self, moving_path, transform_path, reference_path,
             interpolation="nearest", data=None):
        check_interpolation(interpolation)
        if not Path(transform_path).exists():
            raise FileNotFoundError(f"文件不存在: {transform_path}")
        self.calls.append((Path(moving_path).name, Path(transform_path).name, interpolation))
        if data is not None:
            return np.asarray(data, dtype=np.float32)
        return load_nifti(moving_path)


@pytest.fixture
def identity_backend() -> IdentityWarpBackend:
    return IdentityWarpBackend()


@pytest.fixture
def template_prefix(tmp_path) -> str:
    """
    生成模板文件 (t2 / cord / levels)

    Returns:
        prefix: 模板前缀
    """
    template_dir = tmp_path / "template"
    levels = np.zeros(SHAPE, dtype=np.int16)
    for z in range(SHAPE[2]):
        levels[:, :, z] = z + 1

    write_volume(template_dir / "PAM50_t2.nii.gz", np.ones(SHAPE, dtype=np.float32))
    write_volume(template_dir / "PAM50_cord.nii.gz", np.ones(SHAPE, dtype=np.uint8))
    write_volume(template_dir / "PAM50_levels.nii.gz", levels)
    return str(template_dir / "PAM50_")


@pytest.fixture
def data_dir(tmp_path) -> Path:
    path = tmp_path / "data_processed"
    path.mkdir()
    return path


def make_subject(
    data_dir,
    subject,
    cord,
    lesion,
    image="t2w",
    prefixed=True,
    with_warp=True,
    subdir="anat"
) -> Path:
    """
    生成一个受试者的分割文件和形变场

    Returns:
        subject_dir: 受试者数据目录
    """
    subject_dir = Path(data_dir) / subject / subdir
    name = f"{subject}_{image}" if prefixed else image
    write_volume(subject_dir / f"{name}_seg.nii.gz", np.asarray(cord, dtype=np.uint8))
    write_volume(subject_dir / f"{name}_lesionseg.nii.gz", np.asarray(lesion, dtype=np.uint8))
    if with_warp:
        write_volume(
            subject_dir / f"{name}_warp_anat2template.nii.gz",
            np.zeros(SHAPE, dtype=np.float32)
        )
    return subject_dir


@pytest.fixture
def full_cord() -> np.ndarray:
    return np.ones(SHAPE, dtype=np.uint8)


@pytest.fixture
def lfm_config(tmp_path, data_dir, template_prefix):
    """
    生成测试配置

    Returns:
        factory: 接收覆盖参数的配置工厂
    """
    from cordlfm.config import LFMConfig

    def factory(subjects, **overrides):
        subjects_file = tmp_path / "subjects.txt"
        subjects_file.write_text("\n".join(subjects) + "\n", encoding="utf-8")
        values = dict(
            data_dir=str(data_dir),
            subjects_file=str(subjects_file),
            template_prefix=template_prefix,
            output=str(tmp_path / "out" / "LFM.nii.gz"),
        )
        values.update(overrides)
        return LFMConfig(**values)

    return factory


# 标记需要特定依赖的测试
def pytest_configure(config):
    """配置自定义标记"""
    config.addinivalue_line(
        "markers", "requires_ants: 需要 ANTsPy"
    )
