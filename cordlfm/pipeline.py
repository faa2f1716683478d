#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
LFM 主流程

对受试者列表中的每个受试者:
    查找分割文件与形变场 -> 映射到模板空间 (可复用缓存) -> 累加
全部受试者累加完成后计算病灶频率图。

任一受试者出错即中止整个流程，不输出缺少受试者的频率图。
"""

import time
from collections import deque
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Union

from .aggregation.cohort_sum import CohortSum
from .aggregation.frequency_map import build_frequency_map, save_frequency_map
from .config import LFMConfig
from .matching.file_matcher import match_subject
from .registration.subject_resampler import (
    TemplateSpaceMasks,
    load_cached,
    resample_subject,
    template_output_paths,
)
from .registration.warp_backends import WarpBackend, get_warp_backend
from .template import TemplateResources
from .utils.logger import get_logger

logger = get_logger(__name__)


def read_subject_list(subjects_file: Union[str, Path]) -> List[str]:
    """读取受试者列表，每行一个，忽略空行"""
    subjects_file = Path(subjects_file)
    if not subjects_file.exists():
        raise FileNotFoundError(f"受试者列表不存在: {subjects_file}")

    with open(subjects_file, 'r', encoding='utf-8') as f:
        return [line.strip() for line in f if line.strip()]


def process_subject(
    subject: str,
    config: LFMConfig,
    template: TemplateResources,
    backend: WarpBackend
) -> TemplateSpaceMasks:
    """
    处理单个受试者，返回其模板空间 mask

    overwrite 关闭且两个缓存文件都存在时，直接读取缓存，不再查找输入文件。
    """
    subject_dir = Path(config.data_dir) / subject / config.subject_dir
    output_paths = template_output_paths(
        subject_dir, subject, config.cord_suffix, config.lesion_suffix
    )

    logger.info(f"处理受试者: {subject}")

    if not config.overwrite and all(p.exists() for p in output_paths):
        logger.info(f"  {subject} 已完成，不覆盖")
        return load_cached(subject, output_paths)

    inputs = match_subject(
        subject,
        subject_dir,
        image_pattern=config.image_pattern,
        cord_suffix=config.cord_suffix,
        lesion_suffix=config.lesion_suffix,
        warp_pattern=config.warp_pattern,
    )
    return resample_subject(inputs, template.reference, output_paths, backend)


def iter_subject_masks(
    subjects: List[str],
    config: LFMConfig,
    template: TemplateResources,
    backend: WarpBackend
) -> Iterator[TemplateSpaceMasks]:
    """
    按受试者列表顺序产出模板空间 mask

    jobs > 1 时在线程池中并行处理，同时在处理中的受试者不超过 jobs 个，
    已交给调用方的结果不再保留引用；结果仍按列表顺序交给调用方累加，
    第一个错误抛出后取消尚未开始的受试者。
    """
    if config.jobs <= 1:
        for subject in subjects:
            yield process_subject(subject, config, template, backend)
        return

    remaining = iter(subjects)
    pending = deque()

    with ThreadPoolExecutor(max_workers=config.jobs) as executor:

        def submit_next():
            subject = next(remaining, None)
            if subject is not None:
                pending.append(
                    executor.submit(process_subject, subject, config, template, backend)
                )

        try:
            for _ in range(config.jobs):
                submit_next()
            while pending:
                masks = pending.popleft().result()
                yield masks
                masks = None
                submit_next()
        finally:
            for future in pending:
                future.cancel()


def log_parameters(config: LFMConfig) -> None:
    """输出运行参数"""
    logger.info("运行参数:")
    for key, value in config.to_dict().items():
        logger.info(f"  {key} = {value}")


def run_pipeline(
    config: LFMConfig,
    backend: Optional[WarpBackend] = None
) -> Dict[str, Path]:
    """
    运行完整流程

    Args:
        config: 运行参数
        backend: 重采样后端，默认按 config.backend 创建

    Returns:
        outputs: 输出文件路径字典 (lfm / meta / 中间结果)
    """
    start = time.time()
    logger.info("=" * 60)
    logger.info("脊髓病灶频率图 (LFM)")
    logger.info("=" * 60)
    log_parameters(config)

    template = TemplateResources.from_prefix(config.template_prefix)
    template.check_exists()
    if backend is None:
        backend = get_warp_backend(config.backend)

    subjects = read_subject_list(config.subjects_file)
    logger.info(f"受试者数: {len(subjects)}")

    shape, affine = template.load_grid()
    cohort = CohortSum.zeros(shape, affine)

    for masks in iter_subject_masks(subjects, config, template, backend):
        cohort.accumulate(masks)

    cohort.check_not_empty()
    logger.info(f"累加完成: {cohort.n_subjects} 例受试者")
    if cohort.cached_subjects:
        logger.info(f"  其中 {len(cohort.cached_subjects)} 例使用已有的模板空间缓存")

    result = build_frequency_map(
        cohort,
        template.load_levels(),
        mask_to_coverage=config.mask_to_coverage,
        level_min=config.level_min,
        level_max=config.level_max,
    )
    outputs = save_frequency_map(
        result,
        cohort,
        config.output,
        keep_intermediate=config.keep_intermediate,
        parameters=config.to_dict(),
    )

    logger.info("=" * 60)
    logger.info(f"流程完成，耗时 {time.time() - start:.1f} 秒")
    logger.info("=" * 60)
    return outputs
