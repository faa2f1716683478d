#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
队列累加模块

按受试者顺序把模板空间的脊髓 / 病灶 mask 逐体素累加到两个求和体数据中。
累加满足交换律，顺序只影响日志和报错的先后。
"""

from dataclasses import dataclass, field
from typing import List, Tuple

import numpy as np

from ..errors import GridMismatchError, MissingInputError
from ..registration.subject_resampler import TemplateSpaceMasks
from ..utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class CohortSum:
    """
    脊髓 / 病灶求和累加器

    每个受试者同时贡献脊髓和病灶 mask，因此只记录一个受试者列表；
    cached_subjects 是其中直接读取模板空间缓存的受试者。
    """
    cord_sum: np.ndarray
    lesion_sum: np.ndarray
    affine: np.ndarray
    subjects: List[str] = field(default_factory=list)
    cached_subjects: List[str] = field(default_factory=list)

    @classmethod
    def zeros(cls, shape: Tuple[int, ...], affine: np.ndarray) -> "CohortSum":
        """在模板网格上创建全零累加器"""
        return cls(
            cord_sum=np.zeros(shape, dtype=np.float64),
            lesion_sum=np.zeros(shape, dtype=np.float64),
            affine=np.asarray(affine),
        )

    @property
    def shape(self) -> Tuple[int, ...]:
        return self.cord_sum.shape

    @property
    def n_subjects(self) -> int:
        """贡献了脊髓数据的受试者数 (覆盖 mask 的阈值)"""
        return len(self.subjects)

    def accumulate(self, masks: TemplateSpaceMasks) -> None:
        """
        累加一个受试者

        Args:
            masks: 该受试者的模板空间 mask
        """
        for name, volume in (("cord", masks.cord), ("lesion", masks.lesion)):
            if volume.shape != self.shape:
                raise GridMismatchError(
                    f"受试者 {masks.subject} 的 {name} 形状 {volume.shape} "
                    f"与模板网格 {self.shape} 不一致"
                )

        self.cord_sum += masks.cord
        self.lesion_sum += masks.lesion
        self.subjects.append(masks.subject)
        if masks.from_cache:
            self.cached_subjects.append(masks.subject)

        logger.debug(
            f"  累加 {masks.subject}: 脊髓体素 {int(np.count_nonzero(masks.cord))}, "
            f"病灶体素 {int(np.count_nonzero(masks.lesion))}"
        )

    def check_not_empty(self) -> None:
        """所有受试者处理完后，确认至少有一个受试者贡献了数据"""
        if not self.subjects:
            raise MissingInputError("未找到任何受试者的脊髓 / 病灶分割文件")
