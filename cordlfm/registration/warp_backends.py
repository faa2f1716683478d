#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
形变场重采样后端

把原始空间的 mask 通过形变场重采样到模板网格：
- ants: ANTsPy apply_transforms (默认)
- sitk: SimpleITK DisplacementFieldTransform

返回的 numpy 数组与 nibabel 读取模板得到的数组体素顺序一致 (x, y, z)。
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Union

import numpy as np

try:
    import ants
except ImportError:
    ants = None

try:
    import SimpleITK as sitk
except ImportError:
    sitk = None

from ..utils.logger import get_logger

logger = get_logger(__name__)

NEAREST = "nearest"
LINEAR = "linear"
INTERPOLATIONS = (NEAREST, LINEAR)


def check_ants_available() -> bool:
    """检查 ANTsPy 是否可用"""
    return ants is not None


def check_sitk_available() -> bool:
    """检查 SimpleITK 是否可用"""
    return sitk is not None


def check_interpolation(interpolation: str) -> None:
    if interpolation not in INTERPOLATIONS:
        raise ValueError(f"未知的插值方法: {interpolation}")


class WarpBackend(ABC):
    """重采样后端接口"""

    name = "base"

    @abstractmethod
    def warp(
        self,
        moving_path: Union[str, Path],
        transform_path: Union[str, Path],
        reference_path: Union[str, Path],
        interpolation: str = NEAREST,
        data: Optional[np.ndarray] = None
    ) -> np.ndarray:
        """
        将原始空间图像重采样到模板网格

        Args:
            moving_path: 原始空间图像路径
            transform_path: 形变场路径
            reference_path: 模板参考图像路径
            interpolation: "nearest" / "linear"
            data: 可选，替换 moving_path 体素值的数组 (空间信息仍取自 moving_path)

        Returns:
            warped: 模板网格上的 float32 数组
        """


class AntsWarpBackend(WarpBackend):
    """ANTsPy 后端"""

    name = "ants"
    _interpolators = {NEAREST: "nearestNeighbor", LINEAR: "linear"}

    def __init__(self):
        if not check_ants_available():
            raise ImportError("ANTsPy 未安装: pip install antspyx")

    @staticmethod
    def _read_moving(moving_path, data):
        image = ants.image_read(str(moving_path))
        if data is None:
            return image
        return ants.from_numpy(
            data.astype(np.float32),
            origin=image.origin,
            spacing=image.spacing,
            direction=image.direction
        )

    def warp(self, moving_path, transform_path, reference_path,
             interpolation=NEAREST, data=None):
        check_interpolation(interpolation)

        fixed = ants.image_read(str(reference_path))
        moving = self._read_moving(moving_path, data)

        warped = ants.apply_transforms(
            fixed=fixed,
            moving=moving,
            transformlist=[str(transform_path)],
            interpolator=self._interpolators[interpolation]
        )

        if warped.shape != fixed.shape:
            logger.warning(f"  变形后形状 {warped.shape} 与模板形状 {fixed.shape} 不匹配")

        return warped.numpy().astype(np.float32)


class SitkWarpBackend(WarpBackend):
    """SimpleITK 后端"""

    name = "sitk"

    def __init__(self):
        if not check_sitk_available():
            raise ImportError("SimpleITK 未安装: pip install SimpleITK")
        self._interpolators = {
            NEAREST: sitk.sitkNearestNeighbor,
            LINEAR: sitk.sitkLinear,
        }

    @staticmethod
    def _read_moving(moving_path, data):
        image = sitk.ReadImage(str(moving_path), sitk.sitkFloat32)
        if data is None:
            return image
        # SimpleITK 数组为 (z, y, x)
        replaced = sitk.GetImageFromArray(data.astype(np.float32).transpose(2, 1, 0))
        replaced.CopyInformation(image)
        return replaced

    def warp(self, moving_path, transform_path, reference_path,
             interpolation=NEAREST, data=None):
        check_interpolation(interpolation)

        reference = sitk.ReadImage(str(reference_path))
        moving = self._read_moving(moving_path, data)

        field = sitk.ReadImage(str(transform_path), sitk.sitkVectorFloat64)
        transform = sitk.DisplacementFieldTransform(field)

        resampler = sitk.ResampleImageFilter()
        resampler.SetReferenceImage(reference)
        resampler.SetInterpolator(self._interpolators[interpolation])
        resampler.SetDefaultPixelValue(0)
        resampler.SetTransform(transform)

        warped = resampler.Execute(moving)
        return sitk.GetArrayFromImage(warped).transpose(2, 1, 0).astype(np.float32)


_BACKENDS = {
    AntsWarpBackend.name: AntsWarpBackend,
    SitkWarpBackend.name: SitkWarpBackend,
}


def get_warp_backend(name: str = "ants") -> WarpBackend:
    """按名称创建后端"""
    if name not in _BACKENDS:
        raise ValueError(f"未知的重采样后端: {name} (可选: {sorted(_BACKENDS)})")
    return _BACKENDS[name]()
