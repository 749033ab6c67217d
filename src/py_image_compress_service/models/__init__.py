"""数据模型包。

定义 job、压缩选项与结果相关的数据结构和模型。
"""

from .compression_config import CompressionOptions, UploadedImage, clamp_quality
from .compression_result import (
    BatchItemFailure,
    BatchItemSuccess,
    BatchResult,
    CompressionPayload,
)
from .constants import (
    FailureCategory,
    ImageFormats,
    QualityDefaults,
    ValidationLimits,
)
from .job import Job


__all__ = [
    "BatchItemFailure",
    "BatchItemSuccess",
    "BatchResult",
    "CompressionOptions",
    "CompressionPayload",
    "FailureCategory",
    "ImageFormats",
    "Job",
    "QualityDefaults",
    "UploadedImage",
    "ValidationLimits",
    "clamp_quality",
]
