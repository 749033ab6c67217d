"""编码器适配模块。

输入原始图片字节和目标格式/质量，返回压缩后的字节。
压缩结果比原图大时返回原图字节，调用方永远不会得到比源文件更大的"压缩"文件。
"""

from io import BytesIO

from PIL import Image, ImageOps
from pydantic import BaseModel, Field

from ..exceptions import ProcessingError, handle_image_errors
from ..models.compression_config import CompressionOptions
from ..models.constants import FailureCategory
from ..utils.logging_helpers import get_logger
from .formats import FormatProcessor, fit_within, get_save_parameters, quantize_for_png
from .inspection import probe_image


logger = get_logger()


class CodecOutput(BaseModel):
    """编码结果"""

    data: bytes = Field(repr=False)
    extension: str = Field(description="输出文件扩展名")
    input_size: int = Field(ge=0)
    output_size: int = Field(ge=0)
    was_resized: bool = False
    kept_original: bool = Field(False, description="是否因压缩后变大而保留原图")


class ImageCodec:
    """基于 Pillow 的编码器"""

    def __init__(self, format_processor: FormatProcessor | None = None):
        self.format_processor = format_processor or FormatProcessor()

    def compress(self, data: bytes, options: CompressionOptions) -> CodecOutput:
        """压缩单张图片

        Raises:
            UnsupportedFormatError: 输入不是允许的、可解码的图片
            ProcessingError: 目标格式无法编码或编码过程失败
        """
        probe = probe_image(data)

        if not self.format_processor.can_encode(options.pil_format):
            raise ProcessingError(
                f"当前环境无法编码 {options.pil_format}",
                category=FailureCategory.FORMAT,
            )

        encoded, was_resized = self._encode(data, options)

        if len(encoded) > len(data):
            logger.info(
                f"压缩后文件变大 ({len(data)} → {len(encoded)} 字节)，保留原图"
            )
            return CodecOutput(
                data=data,
                extension=probe.extension,
                input_size=len(data),
                output_size=len(data),
                kept_original=True,
            )

        return CodecOutput(
            data=encoded,
            extension=options.target_format,
            input_size=len(data),
            output_size=len(encoded),
            was_resized=was_resized,
        )

    @handle_image_errors("图像编码")
    def _encode(self, data: bytes, options: CompressionOptions) -> tuple[bytes, bool]:
        """解码、旋转、缩放、转换色彩模式并编码"""
        target_format = options.pil_format

        with Image.open(BytesIO(data)) as source:
            img = ImageOps.exif_transpose(source)
            img, source_profile = self.format_processor.convert_to_srgb(img)
            # 参考图片的配置优先，否则沿用仍然匹配像素的源配置
            icc_profile = options.icc_profile or source_profile
            img, was_resized = fit_within(img, options.max_dimension)
            img = self.format_processor.prepare_for_format(img, target_format)

            if target_format == "PNG":
                img = quantize_for_png(img, options.quality)

            buffer = BytesIO()
            img.save(
                buffer, **get_save_parameters(target_format, options.quality, icc_profile)
            )

        return buffer.getvalue(), was_resized
