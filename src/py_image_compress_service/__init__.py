"""临时图片压缩服务。

批量压缩上传的图片，结果保存在带过期时间的私有工作区中，
凭 job ID 与令牌下载单个文件或 ZIP 归档。
"""

__version__ = "0.1.0"
__description__ = "带令牌访问控制的临时图片压缩服务，基于 Pillow 11"

# 核心功能导出
from .models.compression_result import BatchItemFailure, BatchItemSuccess, BatchResult
from .service import CompressionService


__all__ = [
    "BatchItemFailure",
    "BatchItemSuccess",
    "BatchResult",
    "CompressionService",
    "get_version",
]


def get_version() -> str:
    """获取版本号。"""
    return __version__
