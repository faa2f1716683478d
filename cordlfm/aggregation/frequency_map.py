#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
病灶频率图计算模块

LFM = 病灶求和 / 脊髓求和，然后:
1. (可选) 覆盖 mask: 只保留所有受试者脊髓都覆盖的体素
2. 节段 mask: 只保留模板节段标签在 [level_min, level_max] 内的体素

分母为 0 的体素 (0/0) 约定为 0。
"""

import json
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional, Union

import numpy as np

from ..errors import GridMismatchError
from ..utils.io import get_nifti_info, save_nifti, strip_nifti_ext
from ..utils.logger import get_logger
from ..utils.math_ops import binarize, multiply_masks, safe_divide, threshold
from .cohort_sum import CohortSum

logger = get_logger(__name__)

# 中间结果文件名
CORD_SUM_NAME = "seg_template_sum.nii.gz"
LESION_SUM_NAME = "lesionseg_template_sum.nii.gz"
COVERAGE_MASK_NAME = "seg_template_coverage_mask.nii.gz"
REGION_MASK_NAME = "seg_template_region_mask.nii.gz"


@dataclass
class FrequencyMapResult:
    """频率图及其中间结果"""
    frequency: np.ndarray
    ratio: np.ndarray
    region_mask: np.ndarray
    coverage_mask: Optional[np.ndarray] = None


def compute_ratio(lesion_sum: np.ndarray, cord_sum: np.ndarray) -> np.ndarray:
    """病灶求和 / 脊髓求和，0/0 取 0"""
    return safe_divide(lesion_sum, cord_sum, fill_value=0.0)


def build_coverage_mask(cord_sum: np.ndarray, n_subjects: int) -> np.ndarray:
    """
    覆盖 mask: 脊髓求和 >= n_subjects 的体素为 1

    Args:
        cord_sum: 脊髓求和
        n_subjects: 受试者数

    Returns:
        mask: uint8 二值 mask
    """
    if n_subjects < 1:
        raise ValueError(f"受试者数必须 >= 1: {n_subjects}")
    return binarize(threshold(cord_sum, low=n_subjects), 0)


def build_region_mask(levels: np.ndarray, level_min: int, level_max: int) -> np.ndarray:
    """
    节段 mask: 节段标签在 [level_min, level_max] 内 (含) 的体素为 1

    标签为 0 (无节段) 的体素始终为 0。
    """
    if level_min > level_max:
        raise ValueError(f"level_min ({level_min}) 大于 level_max ({level_max})")
    return binarize(threshold(levels, low=level_min, high=level_max), 0)


def build_frequency_map(
    cohort: CohortSum,
    levels: np.ndarray,
    mask_to_coverage: bool = True,
    level_min: int = 1,
    level_max: int = 20
) -> FrequencyMapResult:
    """
    由累加结果计算病灶频率图

    Args:
        cohort: 队列累加器
        levels: 模板节段标签
        mask_to_coverage: 是否应用覆盖 mask
        level_min: 最小节段 (含)
        level_max: 最大节段 (含)

    Returns:
        result: FrequencyMapResult
    """
    cohort.check_not_empty()
    if levels.shape != cohort.shape:
        raise GridMismatchError(f"节段标签形状 {levels.shape} 与模板网格 {cohort.shape} 不一致")

    ratio = compute_ratio(cohort.lesion_sum, cohort.cord_sum)
    frequency = ratio

    coverage_mask = None
    if mask_to_coverage:
        logger.info(f"应用覆盖 mask (全部 {cohort.n_subjects} 例受试者覆盖的脊髓区域)")
        coverage_mask = build_coverage_mask(cohort.cord_sum, cohort.n_subjects)
        frequency = multiply_masks(frequency, coverage_mask)

    logger.info(f"应用节段 mask: [{level_min}, {level_max}]")
    region_mask = build_region_mask(levels, level_min, level_max)
    frequency = multiply_masks(frequency, region_mask)

    return FrequencyMapResult(
        frequency=frequency.astype(np.float32),
        ratio=ratio,
        region_mask=region_mask,
        coverage_mask=coverage_mask,
    )


def summarize(result: FrequencyMapResult) -> Dict[str, float]:
    """频率图统计"""
    nonzero = result.frequency[result.frequency > 0]
    return {
        'nonzero_voxels': int(nonzero.size),
        'region_voxels': int(np.count_nonzero(result.region_mask)),
        'coverage_voxels': (
            int(np.count_nonzero(result.coverage_mask))
            if result.coverage_mask is not None else None
        ),
        'max_frequency': float(nonzero.max()) if nonzero.size else 0.0,
        'mean_nonzero_frequency': float(nonzero.mean()) if nonzero.size else 0.0,
    }


def save_frequency_map(
    result: FrequencyMapResult,
    cohort: CohortSum,
    output_path: Union[str, Path],
    keep_intermediate: bool = False,
    parameters: Optional[dict] = None
) -> Dict[str, Path]:
    """
    保存频率图、元数据及 (可选) 中间结果

    Args:
        result: 频率图
        cohort: 队列累加器 (提供 affine 与受试者列表)
        output_path: 输出文件
        keep_intermediate: 是否在输出目录中保留求和 / mask 文件
        parameters: 写入元数据的运行参数

    Returns:
        outputs: 输出文件路径字典
    """
    output_path = Path(output_path)
    outputs = {'lfm': save_nifti(result.frequency, output_path, affine=cohort.affine)}
    logger.info(f"已保存病灶频率图: {output_path}")

    if keep_intermediate:
        out_dir = output_path.parent
        outputs['cord_sum'] = save_nifti(cohort.cord_sum, out_dir / CORD_SUM_NAME, cohort.affine)
        outputs['lesion_sum'] = save_nifti(cohort.lesion_sum, out_dir / LESION_SUM_NAME, cohort.affine)
        outputs['region_mask'] = save_nifti(
            result.region_mask, out_dir / REGION_MASK_NAME, cohort.affine, dtype="uint8"
        )
        if result.coverage_mask is not None:
            outputs['coverage_mask'] = save_nifti(
                result.coverage_mask, out_dir / COVERAGE_MASK_NAME, cohort.affine, dtype="uint8"
            )
        logger.info(f"已保存中间结果到: {out_dir}")

    meta_path = output_path.with_name(strip_nifti_ext(output_path.name) + ".json")
    meta = {
        'created': datetime.now().isoformat(),
        'description': '脊髓病灶频率图 (LFM)',
        'output': output_path.name,
        'n_subjects': cohort.n_subjects,
        'subjects': list(cohort.subjects),
        'cached_subjects': list(cohort.cached_subjects),
        'parameters': parameters or {},
        'stats': summarize(result),
        'spatial_info': get_nifti_info(output_path),
        'intermediate': {k: v.name for k, v in outputs.items() if k != 'lfm'},
    }
    with open(meta_path, 'w', encoding='utf-8') as f:
        json.dump(meta, f, indent=2, ensure_ascii=False)
    outputs['meta'] = meta_path

    return outputs
