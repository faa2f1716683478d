#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
受试者 mask 模板空间映射模块

将一个受试者的脊髓和病灶分割通过各自的形变场映射到模板空间：
1. 同类 mask 的多个分割文件合并为一个模板空间体数据
2. 脊髓使用最近邻插值 (保持二值)，病灶使用线性插值
3. 病灶乘以脊髓 mask，去除形变导致的脊髓外病灶

结果保存为 <subject><suffix>_template.nii.gz，作为可复用的缓存。
"""

from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple, Union

import numpy as np
import nibabel as nib

from ..errors import GridMismatchError, MissingInputError
from ..matching.file_matcher import MaskKind, MatchedPair, SubjectInputs
from ..utils.io import load_nifti, save_nifti
from ..utils.logger import get_logger
from ..utils.math_ops import binarize, multiply_masks, safe_divide
from .warp_backends import LINEAR, NEAREST, WarpBackend

logger = get_logger(__name__)

# 各类 mask 的插值方法
INTERPOLATION_BY_KIND = {
    MaskKind.CORD: NEAREST,
    MaskKind.LESION: LINEAR,
}


@dataclass
class TemplateSpaceMasks:
    """一个受试者在模板空间中的脊髓 / 病灶 mask"""
    subject: str
    cord: np.ndarray
    lesion: np.ndarray
    cord_path: Optional[Path] = None
    lesion_path: Optional[Path] = None
    from_cache: bool = False


def template_output_paths(
    subject_dir: Union[str, Path],
    subject: str,
    cord_suffix: str,
    lesion_suffix: str
) -> Tuple[Path, Path]:
    """模板空间缓存文件路径 (脊髓, 病灶)"""
    subject_dir = Path(subject_dir)
    return (
        subject_dir / f"{subject}{cord_suffix}_template.nii.gz",
        subject_dir / f"{subject}{lesion_suffix}_template.nii.gz",
    )


def merge_to_template(
    pairs: List[MatchedPair],
    reference_path: Union[str, Path],
    interpolation: str,
    backend: WarpBackend
) -> np.ndarray:
    """
    将多个分割文件映射到模板空间并合并

    每个分割文件用自己的形变场重采样；同时将其非零区域的二值 mask 线性重采样，
    得到该文件在模板空间的覆盖范围。合并值 = 重采样值之和 / 覆盖该体素的文件数，
    无覆盖的体素为 0。最近邻插值的结果再以 0.5 为界二值化。

    Args:
        pairs: (分割文件, 形变场) 列表
        reference_path: 模板参考图像
        interpolation: "nearest" / "linear"
        backend: 重采样后端

    Returns:
        merged: 模板网格上的 float32 数组
    """
    if not pairs:
        raise MissingInputError("没有可合并的分割文件")

    total = None
    coverage = None

    for pair in pairs:
        mask_path = pair.mask.path
        transform_path = pair.transform.path
        logger.info(f"  映射 {mask_path.name} ({interpolation}) <- {transform_path.name}")

        warped = backend.warp(mask_path, transform_path, reference_path, interpolation)

        footprint = binarize(load_nifti(mask_path), 0)
        partial_volume = backend.warp(
            mask_path, transform_path, reference_path, LINEAR, data=footprint
        )

        if total is None:
            total = np.zeros(warped.shape, dtype=np.float64)
            coverage = np.zeros(warped.shape, dtype=np.float64)
        if warped.shape != total.shape or partial_volume.shape != total.shape:
            raise GridMismatchError(
                f"{mask_path.name} 映射后形状 {warped.shape} 与 {total.shape} 不一致"
            )

        total += warped
        coverage += partial_volume > 0

    merged = safe_divide(total, coverage)
    if interpolation == NEAREST:
        merged = (merged >= 0.5).astype(np.float64)

    return merged.astype(np.float32)


def resample_subject(
    inputs: SubjectInputs,
    reference_path: Union[str, Path],
    output_paths: Tuple[Path, Path],
    backend: WarpBackend
) -> TemplateSpaceMasks:
    """
    将一个受试者的脊髓 / 病灶 mask 映射到模板空间并保存

    两类 mask 都计算完成后才写文件。

    Args:
        inputs: 已解析的受试者输入
        reference_path: 模板参考图像
        output_paths: (脊髓, 病灶) 输出路径
        backend: 重采样后端

    Returns:
        masks: TemplateSpaceMasks
    """
    cord_path, lesion_path = output_paths
    logger.info(f"映射受试者 {inputs.subject} 到模板空间")

    cord = merge_to_template(
        inputs.pairs(MaskKind.CORD), reference_path,
        INTERPOLATION_BY_KIND[MaskKind.CORD], backend
    )
    lesion = merge_to_template(
        inputs.pairs(MaskKind.LESION), reference_path,
        INTERPOLATION_BY_KIND[MaskKind.LESION], backend
    )

    if cord.shape != lesion.shape:
        raise GridMismatchError(f"脊髓 {cord.shape} 与病灶 {lesion.shape} 网格不一致")

    # 病灶限制在本受试者的脊髓内
    before = float(np.sum(lesion))
    lesion = multiply_masks(lesion, cord).astype(np.float32)
    removed = before - float(np.sum(lesion))
    if removed > 0:
        logger.info(f"  脊髓约束: 移除脊髓外病灶 {removed:.1f} (体素值之和)")

    affine = nib.load(str(reference_path)).affine
    save_nifti(cord, cord_path, affine=affine, dtype="uint8")
    save_nifti(lesion, lesion_path, affine=affine, dtype="float32")
    logger.info(f"  已保存: {cord_path.name}, {lesion_path.name}")

    return TemplateSpaceMasks(
        subject=inputs.subject,
        cord=cord,
        lesion=lesion,
        cord_path=cord_path,
        lesion_path=lesion_path,
    )


def load_cached(subject: str, output_paths: Tuple[Path, Path]) -> TemplateSpaceMasks:
    """读取已存在的模板空间缓存 (不重新校验内容)"""
    cord_path, lesion_path = output_paths
    return TemplateSpaceMasks(
        subject=subject,
        cord=load_nifti(cord_path),
        lesion=load_nifti(lesion_path),
        cord_path=cord_path,
        lesion_path=lesion_path,
        from_cache=True,
    )
