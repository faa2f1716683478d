"""
脊髓病灶频率图 (LFM) 构建工具 - 源代码包

模块结构:
- utils: 工具函数库 (数据读写、日志、体素运算)
- matching: 分割文件与形变场匹配
- registration: 将受试者 mask 变换到模板空间
- aggregation: 队列求和与频率图计算
- pipeline: 主流程
- cli: 命令行入口
"""

__version__ = "1.0.0"
__author__ = "Cord LFM Project"
