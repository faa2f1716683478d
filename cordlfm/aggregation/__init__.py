"""
队列汇总模块

- cohort_sum: 脊髓 / 病灶逐体素累加
- frequency_map: 病灶频率图计算与保存
"""

from .cohort_sum import CohortSum
from .frequency_map import (
    FrequencyMapResult,
    compute_ratio,
    build_coverage_mask,
    build_region_mask,
    build_frequency_map,
    save_frequency_map,
)

__all__ = [
    'CohortSum',
    'FrequencyMapResult',
    'compute_ratio',
    'build_coverage_mask',
    'build_region_mask',
    'build_frequency_map',
    'save_frequency_map',
]
