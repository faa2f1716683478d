#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
分割文件与形变场匹配测试
"""

import numpy as np
import pytest

from conftest import SHAPE, write_volume

WARP = ".*?warp_anat2template"


def touch_volume(path):
    return write_volume(path, np.zeros(SHAPE, dtype=np.uint8))


class TestFindSegmentations:
    """分割文件查找测试"""

    def test_prefixed_and_bare_names(self, tmp_path):
        """带受试者前缀和不带前缀的文件名都被接受"""
        from cordlfm.matching import find_segmentations

        touch_volume(tmp_path / "sub-01_t2w_seg.nii.gz")
        touch_volume(tmp_path / "t2w_seg.nii.gz")

        found = find_segmentations(tmp_path, "sub-01", "t2w", "_seg")

        assert [p.name for p in found] == ["sub-01_t2w_seg.nii.gz", "t2w_seg.nii.gz"]

    def test_ignores_other_suffixes_and_outputs(self, tmp_path):
        """不匹配病灶分割、其他受试者及模板空间输出"""
        from cordlfm.matching import find_segmentations

        touch_volume(tmp_path / "sub-01_t2w_seg.nii.gz")
        touch_volume(tmp_path / "sub-01_t2w_lesionseg.nii.gz")
        touch_volume(tmp_path / "sub-02_t2w_seg.nii.gz")
        touch_volume(tmp_path / "sub-01_seg_template.nii.gz")

        found = find_segmentations(tmp_path, "sub-01", "t2w", "_seg")

        assert [p.name for p in found] == ["sub-01_t2w_seg.nii.gz"]

    def test_pattern_is_regex(self, tmp_path):
        """图像名模式按正则表达式解释"""
        from cordlfm.matching import find_segmentations

        touch_volume(tmp_path / "sub-01_t2w_run-1_seg.nii.gz")
        touch_volume(tmp_path / "sub-01_t2w_run-2_seg.nii.gz")

        found = find_segmentations(tmp_path, "sub-01", "t2w_run-[0-9]", "_seg")

        assert len(found) == 2

    def test_invalid_pattern(self, tmp_path):
        from cordlfm.matching import find_segmentations

        with pytest.raises(ValueError):
            find_segmentations(tmp_path, "sub-01", "t2w(", "_seg")


class TestFindWarp:
    """形变场查找测试"""

    def test_warp_from_segmentation_name(self, tmp_path):
        """按分割文件名匹配形变场"""
        from cordlfm.matching import find_warp_for_segmentation

        seg = touch_volume(tmp_path / "sub-01_t2w_seg.nii.gz")
        touch_volume(tmp_path / "sub-01_t2w_warp_anat2template.nii.gz")
        touch_volume(tmp_path / "sub-01_t1w_warp_anat2template.nii.gz")

        warp = find_warp_for_segmentation(tmp_path, "sub-01", seg, "_seg", WARP)

        assert warp.name == "sub-01_t2w_warp_anat2template.nii.gz"

    def test_fallback_to_subject_warp(self, tmp_path):
        """分割文件名找不到时退回到受试者目录中的形变场"""
        from cordlfm.matching import find_warp_for_segmentation

        seg = touch_volume(tmp_path / "sub-01_t2w_seg.nii.gz")
        touch_volume(tmp_path / "sub-01_warp_anat2template.nii.gz")

        warp = find_warp_for_segmentation(tmp_path, "sub-01", seg, "_seg", "warp_anat2template")

        assert warp.name == "sub-01_warp_anat2template.nii.gz"

    def test_missing_warp(self, tmp_path):
        """没有形变场"""
        from cordlfm.errors import ResolutionError
        from cordlfm.matching import find_warp_for_segmentation

        seg = touch_volume(tmp_path / "sub-01_t2w_seg.nii.gz")

        with pytest.raises(ResolutionError, match="sub-01_t2w_seg") as excinfo:
            find_warp_for_segmentation(tmp_path, "sub-01", seg, "_seg", WARP)
        assert excinfo.value.candidates == []

    def test_ambiguous_warp(self, tmp_path):
        """多个形变场时不猜测"""
        from cordlfm.errors import ResolutionError
        from cordlfm.matching import find_warp_for_segmentation

        seg = touch_volume(tmp_path / "sub-01_t2w_seg.nii.gz")
        touch_volume(tmp_path / "sub-01_t2w_warp_anat2template.nii.gz")
        touch_volume(tmp_path / "sub-01_t2w_rigid_warp_anat2template.nii.gz")

        with pytest.raises(ResolutionError) as excinfo:
            find_warp_for_segmentation(tmp_path, "sub-01", seg, "_seg", WARP)
        assert len(excinfo.value.candidates) == 2

    def test_ambiguous_fallback(self, tmp_path):
        """兜底查找到多个形变场"""
        from cordlfm.errors import ResolutionError
        from cordlfm.matching import find_warp_for_segmentation

        seg = touch_volume(tmp_path / "sub-01_t2w_seg.nii.gz")
        touch_volume(tmp_path / "sub-01_t1w_warp_anat2template.nii.gz")
        touch_volume(tmp_path / "sub-01_dwi_warp_anat2template.nii.gz")

        with pytest.raises(ResolutionError):
            find_warp_for_segmentation(tmp_path, "sub-01", seg, "_seg", WARP)


class TestMatchSubject:
    """受试者匹配测试"""

    def test_match_subject(self, tmp_path):
        from cordlfm.matching import MaskKind, match_subject

        touch_volume(tmp_path / "sub-01_t2w_seg.nii.gz")
        touch_volume(tmp_path / "sub-01_t2w_lesionseg.nii.gz")
        touch_volume(tmp_path / "sub-01_t2w_warp_anat2template.nii.gz")

        inputs = match_subject(
            "sub-01", tmp_path, image_pattern="t2w", cord_suffix="_seg",
            lesion_suffix="_lesionseg", warp_pattern=WARP
        )

        assert len(inputs.cord) == 1 and len(inputs.lesion) == 1
        assert inputs.cord[0].mask.kind is MaskKind.CORD
        assert inputs.lesion[0].mask.kind is MaskKind.LESION
        assert inputs.cord[0].transform.path == inputs.lesion[0].transform.path

    def test_multiple_segmentations_each_with_warp(self, tmp_path):
        """多个分割文件各自匹配自己的形变场"""
        from cordlfm.matching import MaskKind, match_mask_kind

        for run in ("run-1", "run-2"):
            touch_volume(tmp_path / f"sub-01_t2w_{run}_seg.nii.gz")
            touch_volume(tmp_path / f"sub-01_t2w_{run}_warp_anat2template.nii.gz")

        pairs = match_mask_kind(tmp_path, "sub-01", MaskKind.CORD, "t2w_run-[12]", "_seg", WARP)

        assert [(p.mask.path.name, p.transform.path.name) for p in pairs] == [
            ("sub-01_t2w_run-1_seg.nii.gz", "sub-01_t2w_run-1_warp_anat2template.nii.gz"),
            ("sub-01_t2w_run-2_seg.nii.gz", "sub-01_t2w_run-2_warp_anat2template.nii.gz"),
        ]

    def test_no_segmentation(self, tmp_path):
        """没有分割文件"""
        from cordlfm.errors import MissingInputError
        from cordlfm.matching import match_subject

        touch_volume(tmp_path / "sub-01_t2w_seg.nii.gz")
        touch_volume(tmp_path / "sub-01_t2w_warp_anat2template.nii.gz")

        with pytest.raises(MissingInputError, match="lesion"):
            match_subject("sub-01", tmp_path, "t2w", "_seg", "_lesionseg", WARP)

    def test_missing_subject_dir(self, tmp_path):
        from cordlfm.matching import match_subject

        with pytest.raises(FileNotFoundError):
            match_subject("sub-01", tmp_path / "nope", "t2w", "_seg", "_lesionseg", WARP)
