#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
异常定义

所有异常都会中止整个流程（不跳过受试者），由命令行入口统一转换为非零退出码。
文件系统错误直接使用内置的 OSError / FileNotFoundError。
"""


class LFMError(Exception):
    """LFM 流程错误基类"""


class ResolutionError(LFMError):
    """某个分割文件匹配到的形变场不是恰好一个"""

    def __init__(self, segmentation, candidates):
        self.segmentation = segmentation
        self.candidates = list(candidates)
        super().__init__(
            f"分割文件 {segmentation} 未找到恰好 1 个形变场 "
            f"(找到 {len(self.candidates)} 个: {[str(c) for c in self.candidates]})"
        )


class MissingInputError(LFMError):
    """缺少输入：受试者没有分割文件，或没有任何受试者贡献数据"""


class GridMismatchError(LFMError):
    """模板空间体数据的网格与累加器不一致"""
