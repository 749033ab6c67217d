"""核心模块包。

图片识别、格式处理与编码器适配。
"""

from .codec import CodecOutput, ImageCodec
from .formats import FormatProcessor, fit_within, get_save_parameters
from .inspection import ImageProbe, extract_icc_profile, probe_image


__all__ = [
    "CodecOutput",
    "FormatProcessor",
    "ImageCodec",
    "ImageProbe",
    "extract_icc_profile",
    "fit_within",
    "get_save_parameters",
    "probe_image",
]
