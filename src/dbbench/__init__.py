"""
dbbench - 关系型与文档型存储的对比基准
在不同数据规模下对同一组读/写/更新/删除/聚合负载计时
"""

__version__ = "1.0.0"
