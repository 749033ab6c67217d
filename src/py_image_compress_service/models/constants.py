"""图像处理相关常量定义。

输出格式白名单、Pillow 格式名映射以及各类限制。
"""

from typing import Final


class ImageFormats:
    """输出与输入格式管理"""

    # 用户友好的别名 → 规范扩展名
    ALIASES: Final[dict[str, str]] = {
        "jpeg": "jpg",
    }

    # 允许的输出格式（规范扩展名）
    OUTPUT_FORMATS: Final[tuple[str, ...]] = ("jpg", "png", "webp", "avif")

    # 规范扩展名 → Pillow 格式名
    PIL_FORMATS: Final[dict[str, str]] = {
        "jpg": "JPEG",
        "png": "PNG",
        "webp": "WEBP",
        "avif": "AVIF",
    }

    # 允许的输入格式（由 Pillow 根据文件字节识别，而非客户端声明）
    INPUT_PIL_FORMATS: Final[frozenset[str]] = frozenset(PIL_FORMATS.values())

    # Pillow 识别出的变体格式 → 基础格式
    # MPO 是手机相机常见的多帧 JPEG，第一帧就是普通 JPEG
    PIL_FORMAT_ALIASES: Final[dict[str, str]] = {
        "MPO": "JPEG",
    }

    MIME_TYPES: Final[dict[str, str]] = {
        "jpg": "image/jpeg",
        "png": "image/png",
        "webp": "image/webp",
        "avif": "image/avif",
    }

    @classmethod
    def normalize(cls, format_name: str) -> str | None:
        """标准化格式名，不在白名单内时返回 None"""
        value = format_name.strip().lower().lstrip(".")
        value = cls.ALIASES.get(value, value)
        return value if value in cls.OUTPUT_FORMATS else None

    @classmethod
    def canonical_pil_format(cls, pil_format: str) -> str:
        """将 Pillow 识别出的变体格式归并为基础格式"""
        value = pil_format.upper()
        return cls.PIL_FORMAT_ALIASES.get(value, value)

    @classmethod
    def extension_for_pil(cls, pil_format: str) -> str | None:
        """Pillow 格式名 → 规范扩展名"""
        for ext, fmt in cls.PIL_FORMATS.items():
            if fmt == pil_format.upper():
                return ext
        return None

    @classmethod
    def get_mime_type(cls, file_name: str) -> str:
        """按文件扩展名获取 MIME 类型"""
        ext = file_name.rsplit(".", 1)[-1].lower() if "." in file_name else ""
        ext = cls.ALIASES.get(ext, ext)
        return cls.MIME_TYPES.get(ext, "application/octet-stream")


class QualityDefaults:
    """质量相关默认值"""

    DEFAULT: Final[int] = 78
    MIN_QUALITY: Final[int] = 1
    MAX_QUALITY: Final[int] = 100

    # AVIF 的质量按比例缩放且不低于该值
    AVIF_SCALE: Final[float] = 0.6
    AVIF_FLOOR: Final[int] = 35

    # WebP 在请求质量上略微提高，但不超过上限
    WEBP_BOOST: Final[int] = 5
    WEBP_CEILING: Final[int] = 90


class ValidationLimits:
    """验证相关限制"""

    # 每个请求的文件数与单文件大小
    MAX_BATCH_FILES: Final[int] = 20
    MAX_FILE_SIZE: Final[int] = 20 * 1024 * 1024

    # 编码前的最大像素尺寸
    MAX_DIMENSION: Final[int] = 6000


class FailureCategory:
    """单个文件失败的稳定分类"""

    UNSUPPORTED: Final[str] = "unsupported"
    FORMAT: Final[str] = "format"
    INTERNAL: Final[str] = "internal"
