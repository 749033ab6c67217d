"""图像压缩处理引擎模块。

包含批量处理和并发执行等核心处理逻辑。
"""

from .batch import BatchProcessor
from .concurrent_executor import ConcurrentExecutor


__all__ = [
    "BatchProcessor",
    "ConcurrentExecutor",
]
