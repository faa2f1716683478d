#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
分割文件与形变场匹配模块

在受试者目录中查找脊髓 / 病灶分割文件，并为每个分割文件确定唯一对应的
到模板空间的形变场 (warp field)。

命名约定:
    分割文件:  (<subject>_)?<pattern><suffix>.nii.gz
    形变场:    <分割文件去掉 suffix 的部分><warp_pattern>.nii.gz
    兜底形变场: (<subject>_)?<warp_pattern>.nii.gz

pattern / suffix / warp_pattern 均按正则表达式解释 (例如默认的
".*?warp_anat2template")，受试者名和 .nii.gz 后缀按字面匹配。
带受试者前缀和不带前缀的文件名都会被接受，二者匹配结果合并后再检查唯一性。
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Union

from ..errors import MissingInputError, ResolutionError
from ..utils.io import NIFTI_EXT
from ..utils.logger import get_logger

logger = get_logger(__name__)

_EXT_RE = re.escape(NIFTI_EXT)


class MaskKind(str, Enum):
    """mask 类型"""
    CORD = "cord"
    LESION = "lesion"


@dataclass(frozen=True)
class MaskInstance:
    """受试者原始空间中的一个二值 mask 文件"""
    path: Path
    kind: MaskKind


@dataclass(frozen=True)
class Transform:
    """受试者原始空间 -> 模板空间的形变场文件"""
    path: Path


@dataclass(frozen=True)
class MatchedPair:
    """分割文件及其唯一对应的形变场"""
    mask: MaskInstance
    transform: Transform


@dataclass
class SubjectInputs:
    """一个受试者解析完成的全部输入"""
    subject: str
    subject_dir: Path
    cord: List[MatchedPair] = field(default_factory=list)
    lesion: List[MatchedPair] = field(default_factory=list)

    def pairs(self, kind: MaskKind) -> List[MatchedPair]:
        return self.cord if kind is MaskKind.CORD else self.lesion


def _compile(regex: str) -> "re.Pattern":
    try:
        return re.compile(regex)
    except re.error as e:
        raise ValueError(f"无效的文件名模式 {regex!r}: {e}") from e


def _list_files(directory: Path) -> List[str]:
    """列出目录下 (递归) 所有文件的相对 POSIX 路径，已排序"""
    return sorted(
        p.relative_to(directory).as_posix()
        for p in directory.rglob("*")
        if p.is_file()
    )


def _find(directory: Path, regex: str) -> List[Path]:
    compiled = _compile(regex)
    return [directory / rel for rel in _list_files(directory) if compiled.fullmatch(rel)]


def _subject_prefix(subject: str) -> str:
    return f"(?:{re.escape(subject)}_)?"


def find_segmentations(
    subject_dir: Union[str, Path],
    subject: str,
    pattern: str,
    suffix: str
) -> List[Path]:
    """
    查找分割文件

    Args:
        subject_dir: 受试者数据目录
        subject: 受试者 ID
        pattern: 图像名模式 (正则)
        suffix: 分割后缀 (正则)，例如 "_seg" / "_lesionseg"

    Returns:
        segmentations: 按路径排序的分割文件列表
    """
    subject_dir = Path(subject_dir)
    regex = f"{_subject_prefix(subject)}(?:{pattern})(?:{suffix}){_EXT_RE}"
    return _find(subject_dir, regex)


def find_warp_for_segmentation(
    subject_dir: Union[str, Path],
    subject: str,
    segmentation: Union[str, Path],
    suffix: str,
    warp_pattern: str
) -> Path:
    """
    查找分割文件对应的形变场

    先按 "分割文件名去掉后缀 + warp_pattern" 查找；找不到时退回到
    "(<subject>_)?<warp_pattern>" 在整个受试者目录中查找。
    最终必须恰好找到一个，否则抛出 ResolutionError。

    Args:
        subject_dir: 受试者数据目录
        subject: 受试者 ID
        segmentation: 分割文件路径
        suffix: 分割后缀 (正则)
        warp_pattern: 形变场模式 (正则)

    Returns:
        warp: 形变场路径
    """
    subject_dir = Path(subject_dir)
    segmentation = Path(segmentation)
    rel = segmentation.relative_to(subject_dir).as_posix()

    stem = re.sub(f"(?:{suffix}){_EXT_RE}$", "", rel)
    candidates = _find(subject_dir, f"{re.escape(stem)}(?:{warp_pattern}){_EXT_RE}")

    if not candidates:
        logger.debug(f"  {rel}: 未找到同名形变场，改为在受试者目录中查找")
        candidates = _find(
            subject_dir, f"{_subject_prefix(subject)}(?:{warp_pattern}){_EXT_RE}"
        )

    if len(candidates) != 1:
        raise ResolutionError(segmentation, candidates)

    logger.debug(f"  形变场: {candidates[0].name}")
    return candidates[0]


def match_mask_kind(
    subject_dir: Union[str, Path],
    subject: str,
    kind: MaskKind,
    pattern: str,
    suffix: str,
    warp_pattern: str
) -> List[MatchedPair]:
    """
    查找某一类 mask 的全部 (分割文件, 形变场) 对

    Raises:
        MissingInputError: 没有找到任何分割文件
        ResolutionError: 某个分割文件没有恰好一个形变场
    """
    subject_dir = Path(subject_dir)
    segmentations = find_segmentations(subject_dir, subject, pattern, suffix)
    logger.info(f"  [{kind.value}] 找到 {len(segmentations)} 个分割文件")

    if not segmentations:
        raise MissingInputError(
            f"受试者 {subject} 未找到 {kind.value} 分割文件 "
            f"(目录: {subject_dir}, 后缀: {suffix})"
        )

    pairs = []
    for seg in segmentations:
        logger.debug(f"  分割文件: {seg.name}")
        warp = find_warp_for_segmentation(subject_dir, subject, seg, suffix, warp_pattern)
        pairs.append(MatchedPair(MaskInstance(seg, kind), Transform(warp)))

    return pairs


def match_subject(
    subject: str,
    subject_dir: Union[str, Path],
    image_pattern: str,
    cord_suffix: str,
    lesion_suffix: str,
    warp_pattern: str
) -> SubjectInputs:
    """
    解析一个受试者的脊髓和病灶输入

    Args:
        subject: 受试者 ID
        subject_dir: 受试者数据目录 (<data_dir>/<subject>/<subject_subdir>)
        image_pattern: 图像名模式
        cord_suffix: 脊髓分割后缀
        lesion_suffix: 病灶分割后缀
        warp_pattern: 形变场模式

    Returns:
        inputs: SubjectInputs
    """
    subject_dir = Path(subject_dir)
    if not subject_dir.is_dir():
        raise FileNotFoundError(f"受试者目录不存在: {subject_dir}")

    inputs = SubjectInputs(subject=subject, subject_dir=subject_dir)
    inputs.cord = match_mask_kind(
        subject_dir, subject, MaskKind.CORD, image_pattern, cord_suffix, warp_pattern
    )
    inputs.lesion = match_mask_kind(
        subject_dir, subject, MaskKind.LESION, image_pattern, lesion_suffix, warp_pattern
    )
    return inputs
