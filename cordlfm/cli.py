#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
命令行入口

使用方法:
    make-lfm -d output/data_processed -s subjects.txt -o LFM.nii.gz

    # 复用已有的模板空间结果，只重新计算频率图
    make-lfm -r 0

    # 从配置文件读取参数 (命令行参数优先)
    make-lfm --config config.yaml
"""

import argparse
import logging
import sys
from typing import List, Optional

import yaml

from .config import load_config
from .errors import LFMError
from .pipeline import run_pipeline
from .utils.logger import setup_logger

EPILOG = """
示例:
  # 默认参数 (PAM50 模板，C1-T12)
  make-lfm

  # 只统计颈段 (C1-C7)，不使用覆盖 mask
  make-lfm -a 1 -b 7 -m 0

  # 使用 SimpleITK 后端，4 个线程
  make-lfm --backend sitk --jobs 4
"""


def build_parser() -> argparse.ArgumentParser:
    """构建参数解析器 (默认值为 None，便于与配置文件合并)"""
    parser = argparse.ArgumentParser(
        prog="make-lfm",
        description="沿脊髓生成病灶频率图 (Lesion Frequency Map)",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=EPILOG,
    )
    parser.add_argument('-d', '--data-dir', dest='data_dir',
                        help='数据目录 (默认: output/data_processed)')
    parser.add_argument('-s', '--subjects-file', dest='subjects_file',
                        help='受试者列表文件，每行一个 (默认: subjects.txt)')
    parser.add_argument('-f', '--subject-dir', dest='subject_dir',
                        help='受试者目录下的数据子目录 (默认: anat)')
    parser.add_argument('-i', '--image-pattern', dest='image_pattern',
                        help='图像名模式，同时匹配 "<subject>_" 前缀 (默认: t2w)')
    parser.add_argument('-l', '--lesion-suffix', dest='lesion_suffix',
                        help='病灶分割后缀 (二值) (默认: _lesionseg)')
    parser.add_argument('-c', '--cord-suffix', dest='cord_suffix',
                        help='脊髓分割后缀 (二值) (默认: _seg)')
    parser.add_argument('-w', '--warp-pattern', dest='warp_pattern',
                        help='到模板空间的形变场模式 (默认: .*?warp_anat2template)')
    parser.add_argument('-o', '--output', dest='output',
                        help='输出 LFM 文件 (默认: LFM.nii.gz)')
    parser.add_argument('-r', '--overwrite', dest='overwrite', type=int, choices=[0, 1],
                        help='1: 即使模板空间结果已存在也重新计算 (默认: 1)')
    parser.add_argument('-m', '--mask-to-coverage', dest='mask_to_coverage',
                        type=int, choices=[0, 1],
                        help='1: 未被所有受试者脊髓覆盖的区域置 0 (默认: 1)')
    parser.add_argument('-t', '--template-prefix', dest='template_prefix',
                        help='模板前缀 (默认: $SCT_DIR/data/PAM50/template/PAM50_)')
    parser.add_argument('-a', '--level-min', dest='level_min', type=int,
                        help='结果中保留的最小节段 (默认: 1, C1)')
    parser.add_argument('-b', '--level-max', dest='level_max', type=int,
                        help='结果中保留的最大节段 (默认: 20, T12)')

    parser.add_argument('--config', default=None,
                        help='YAML 配置文件 (参数位于 lfm: 段)')
    parser.add_argument('--backend', choices=['ants', 'sitk'], default=None,
                        help='重采样后端 (默认: ants)')
    parser.add_argument('--jobs', type=int, default=None,
                        help='并行处理受试者的线程数 (默认: 1)')
    parser.add_argument('--keep-intermediate', dest='keep_intermediate',
                        action='store_true', default=None,
                        help='在输出目录保留求和及 mask 文件')
    parser.add_argument('--log-dir', dest='log_dir', default=None,
                        help='日志文件目录 (默认只输出到终端)')
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='输出调试信息')
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """主函数，返回退出码"""
    parser = build_parser()
    args = parser.parse_args(argv)

    overrides = vars(args).copy()
    config_path = overrides.pop('config')
    verbose = overrides.pop('verbose')

    level = logging.DEBUG if verbose else logging.INFO
    logger = setup_logger("cordlfm", log_dir=args.log_dir, level=level)

    try:
        config = load_config(config_path, overrides)
        if config.log_dir and not args.log_dir:
            logger = setup_logger("cordlfm", log_dir=config.log_dir, level=level)
        run_pipeline(config)
    except (LFMError, OSError, ValueError, ImportError, yaml.YAMLError) as e:
        logger.error(f"流程执行失败: {e}")
        logger.debug("详细信息", exc_info=True)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
