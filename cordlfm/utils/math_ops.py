#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
体素运算模块

包含:
- 阈值截断 (对应 sct_maths -thr / -uthr)
- 二值化 (对应 sct_maths -bin)
- 安全除法
- mask 相乘
"""

from typing import Optional

import numpy as np


def threshold(
    data: np.ndarray,
    low: Optional[float] = None,
    high: Optional[float] = None
) -> np.ndarray:
    """
    阈值截断：低于 low 或高于 high 的体素置 0，其余保持原值

    Args:
        data: 输入体数据
        low: 下限 (含)，None 表示不限
        high: 上限 (含)，None 表示不限

    Returns:
        thresholded: 截断后的数据 (与输入同 dtype)
    """
    result = np.array(data, copy=True)
    if low is not None:
        result[result < low] = 0
    if high is not None:
        result[result > high] = 0
    return result


def binarize(data: np.ndarray, cutoff: float = 0.0) -> np.ndarray:
    """
    二值化：大于 cutoff 的体素为 1，其余为 0

    Args:
        data: 输入体数据
        cutoff: 阈值 (不含)

    Returns:
        mask: uint8 二值 mask
    """
    return (np.asarray(data) > cutoff).astype(np.uint8)


def safe_divide(
    numerator: np.ndarray,
    denominator: np.ndarray,
    fill_value: float = 0.0
) -> np.ndarray:
    """
    逐体素除法，分母为 0 的体素取 fill_value

    Args:
        numerator: 分子
        denominator: 分母
        fill_value: 分母为 0 时的取值 (0/0 约定为 0)

    Returns:
        ratio: float64 比值
    """
    numerator = np.asarray(numerator, dtype=np.float64)
    denominator = np.asarray(denominator, dtype=np.float64)
    if numerator.shape != denominator.shape:
        raise ValueError(f"形状不匹配: {numerator.shape} vs {denominator.shape}")

    ratio = np.full(numerator.shape, fill_value, dtype=np.float64)
    np.divide(numerator, denominator, out=ratio, where=denominator != 0)
    return ratio


def multiply_masks(data: np.ndarray, mask: np.ndarray) -> np.ndarray:
    """
    用 mask 逐体素相乘

    Args:
        data: 输入体数据
        mask: 同形状的 mask

    Returns:
        masked: data * mask (float64)
    """
    data = np.asarray(data, dtype=np.float64)
    mask = np.asarray(mask, dtype=np.float64)
    if data.shape != mask.shape:
        raise ValueError(f"形状不匹配: {data.shape} vs {mask.shape}")
    return data * mask
