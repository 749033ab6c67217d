"""压缩配置模型。

定义批量压缩请求的参数、上传项以及编码器选项。
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .constants import ImageFormats, QualityDefaults, ValidationLimits


class UploadedImage(BaseModel):
    """客户端上传的单个文件

    content_type 仅作参考，真实类型始终由文件字节重新识别。
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(description="客户端提供的原始文件名")
    data: bytes = Field(description="文件内容", repr=False)
    content_type: str | None = Field(None, description="客户端声明的 MIME 类型")

    @property
    def size(self) -> int:
        return len(self.data)


class CompressionOptions(BaseModel):
    """批量压缩选项

    格式属于请求级参数，不在白名单内时整个请求被拒绝；
    质量超出范围或无法解析时被修正而不是拒绝。
    """

    target_format: str = Field("webp", description="输出格式（规范扩展名）")
    quality: int = Field(QualityDefaults.DEFAULT, description="压缩质量")
    icc_profile: bytes | None = Field(None, description="嵌入输出的 ICC 配置", repr=False)
    max_dimension: int = Field(
        ValidationLimits.MAX_DIMENSION, gt=0, description="编码前的最大像素尺寸"
    )

    @field_validator("target_format", mode="before")
    @classmethod
    def validate_target_format(cls, v: Any) -> str:
        if not isinstance(v, str) or not v.strip():
            raise ValueError("格式不能为空")

        normalized = ImageFormats.normalize(v)
        if normalized is None:
            raise ValueError(
                f"不支持的格式: {v}，支持的格式: {list(ImageFormats.OUTPUT_FORMATS)}"
            )
        return normalized

    @field_validator("quality", mode="before")
    @classmethod
    def clamp_quality(cls, v: Any) -> int:
        return clamp_quality(v)

    @property
    def pil_format(self) -> str:
        """Pillow 使用的格式名"""
        return ImageFormats.PIL_FORMATS[self.target_format]


def clamp_quality(
    value: Any,
    default: int = QualityDefaults.DEFAULT,
    minimum: int = QualityDefaults.MIN_QUALITY,
    maximum: int = QualityDefaults.MAX_QUALITY,
) -> int:
    """将任意输入修正为合法质量值

    无法解析（None、空串、非数字）时使用默认值，数值则截断到 [minimum, maximum]。
    """
    if value is None or isinstance(value, bool):
        return default

    try:
        number = float(str(value).strip())
    except ValueError:
        return default

    if number != number:  # NaN
        return default

    number = min(max(number, minimum), maximum)
    return int(round(number))
