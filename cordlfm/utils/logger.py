#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
日志配置模块

统一管理项目的日志输出格式和目标
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

# 全局 logger 缓存
_loggers = {}

LOG_FORMAT = '%(asctime)s | %(levelname)-8s | %(name)s | %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def setup_logger(
    name: str,
    log_dir: Optional[str] = None,
    level: int = logging.INFO,
    console: bool = True,
    file: bool = True
) -> logging.Logger:
    """
    设置并返回一个 logger 实例

    重复调用会重新配置 handlers，命令行入口可以据此覆盖默认配置。

    Args:
        name: logger 名称
        log_dir: 日志文件目录
        level: 日志级别
        console: 是否输出到控制台 (stderr)
        file: 是否写入文件

    Returns:
        logger: 配置好的 logger 实例
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)

    # 控制台输出
    if console:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    # 文件输出
    if file and log_dir:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)

        timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
        log_file = log_dir / f"{name}_{timestamp}.log"

        file_handler = logging.FileHandler(log_file, encoding='utf-8')
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    _loggers[name] = logger
    return logger


def get_logger(name: str) -> logging.Logger:
    """
    获取 logger

    包内模块的 logger 不单独挂 handler，日志向上传递给 "cordlfm" logger，
    由 setup_logger 统一配置。

    Args:
        name: logger 名称

    Returns:
        logger: logger 实例
    """
    if name in _loggers:
        return _loggers[name]
    logger = logging.getLogger(name)
    _loggers[name] = logger
    return logger
