"""
运行环境快照
记录基准所在主机的基本信息，写入结果工件
"""
import platform
from datetime import datetime
from typing import Any, Dict

import psutil


def environment_snapshot() -> Dict[str, Any]:
    """采集主机信息"""
    memory = psutil.virtual_memory()
    return {
        'timestamp': datetime.utcnow().isoformat(),
        'platform': platform.platform(),
        'python_version': platform.python_version(),
        'cpu_count': psutil.cpu_count(logical=True),
        'cpu_usage_percent': psutil.cpu_percent(interval=None),
        'memory_total_mb': round(memory.total / (1024 * 1024), 1),
        'memory_usage_percent': memory.percent,
    }
