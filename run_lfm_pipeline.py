#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
脊髓病灶频率图 (LFM) - 主流程入口脚本

在仓库目录中直接运行，无需安装:
    python run_lfm_pipeline.py --config config.yaml
"""

import sys
from pathlib import Path

# 添加项目根目录到路径
PROJECT_ROOT = Path(__file__).parent
sys.path.insert(0, str(PROJECT_ROOT))

from cordlfm.cli import main


if __name__ == "__main__":
    sys.exit(main())
