"""
文件匹配模块

在受试者目录中查找分割文件及其对应的形变场
"""

from .file_matcher import (
    MaskKind,
    MaskInstance,
    Transform,
    MatchedPair,
    SubjectInputs,
    find_segmentations,
    find_warp_for_segmentation,
    match_mask_kind,
    match_subject,
)

__all__ = [
    'MaskKind',
    'MaskInstance',
    'Transform',
    'MatchedPair',
    'SubjectInputs',
    'find_segmentations',
    'find_warp_for_segmentation',
    'match_mask_kind',
    'match_subject',
]
