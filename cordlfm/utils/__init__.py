"""
工具函数库

包含:
- io: 数据读写 (NIfTI)
- math_ops: 体素运算
- logger: 日志配置
"""

from .io import load_nifti, save_nifti, get_nifti_info, strip_nifti_ext, NIFTI_EXT
from .logger import setup_logger, get_logger
from .math_ops import threshold, binarize, safe_divide, multiply_masks

__all__ = [
    'load_nifti',
    'save_nifti',
    'get_nifti_info',
    'strip_nifti_ext',
    'NIFTI_EXT',
    'setup_logger',
    'get_logger',
    'threshold',
    'binarize',
    'safe_divide',
    'multiply_masks',
]
