#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
数据读写模块

支持格式:
- NIfTI (.nii, .nii.gz)
"""

from pathlib import Path
from typing import Tuple, Union, Optional

import numpy as np
import nibabel as nib

NIFTI_EXT = ".nii.gz"


def strip_nifti_ext(name: str) -> str:
    """去掉 .nii.gz / .nii 后缀"""
    for ext in (NIFTI_EXT, ".nii"):
        if name.endswith(ext):
            return name[:-len(ext)]
    return name


def load_nifti(
    filepath: Union[str, Path],
    return_affine: bool = False
) -> Union[np.ndarray, Tuple[np.ndarray, np.ndarray]]:
    """
    加载 NIfTI 文件

    Args:
        filepath: NIfTI 文件路径
        return_affine: 是否返回仿射矩阵

    Returns:
        data: 3D 体数据 (float32)
        affine: 仿射矩阵 (可选)
    """
    filepath = Path(filepath)
    if not filepath.exists():
        raise FileNotFoundError(f"文件不存在: {filepath}")

    img = nib.load(str(filepath))
    data = img.get_fdata().astype(np.float32)

    if return_affine:
        return data, img.affine
    return data


def save_nifti(
    data: np.ndarray,
    filepath: Union[str, Path],
    affine: Optional[np.ndarray] = None,
    dtype: str = "float32"
) -> Path:
    """
    保存 NIfTI 文件

    Args:
        data: 3D 体数据
        filepath: 保存路径
        affine: 仿射矩阵，默认为单位矩阵
        dtype: 数据类型 ("float32" / "uint8" / "int16")

    Returns:
        filepath: 保存路径
    """
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)

    if affine is None:
        affine = np.eye(4)

    if dtype not in ("float32", "uint8", "int16"):
        raise ValueError(f"不支持的数据类型: {dtype}")
    data = np.asarray(data).astype(dtype)

    img = nib.Nifti1Image(data, affine)
    nib.save(img, str(filepath))
    return filepath


def get_nifti_info(filepath: Union[str, Path]) -> dict:
    """
    获取 NIfTI 文件信息

    Args:
        filepath: NIfTI 文件路径

    Returns:
        info: 文件信息字典
    """
    img = nib.load(str(filepath))
    header = img.header

    return {
        'shape': img.shape,
        'dtype': str(img.get_data_dtype()),
        'affine': img.affine.tolist(),
        'spacing': tuple(float(z) for z in header.get_zooms()[:3]),
    }
