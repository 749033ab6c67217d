"""图片识别模块。

客户端声明的 Content-Type 不可信，这里根据文件字节本身判断真实类型。
"""

from io import BytesIO

from PIL import Image, UnidentifiedImageError
from pydantic import BaseModel, Field

from ..exceptions import UnsupportedFormatError
from ..models.constants import ImageFormats
from ..utils.logging_helpers import get_logger


logger = get_logger()


class ImageProbe(BaseModel):
    """根据字节识别出的图片基本信息"""

    pil_format: str = Field(description="Pillow 格式名")
    extension: str = Field(description="规范扩展名")
    width: int = Field(gt=0)
    height: int = Field(gt=0)
    icc_profile: bytes | None = Field(None, repr=False)


def probe_image(data: bytes) -> ImageProbe:
    """识别并校验图片

    Pillow 通过文件头签名识别格式，随后 verify() 检查结构完整性。
    像素数超过 Pillow 的 DecompressionBombWarning 阈值但仍在
    2 倍阈值（MAX_IMAGE_PIXELS * 2）以内的大图照常处理，编码前会被缩小；
    超过 2 倍阈值时 Pillow 抛出 DecompressionBombError，视为不支持。

    Raises:
        UnsupportedFormatError: 不是图片、已损坏或不在允许的格式内
    """
    if not data:
        raise UnsupportedFormatError("空文件")

    try:
        with Image.open(BytesIO(data)) as img:
            detected = (img.format or "").upper()
            width, height = img.size
            icc_profile = img.info.get("icc_profile")
            img.verify()
    except UnidentifiedImageError as e:
        raise UnsupportedFormatError("无法识别的图像格式") from e
    except Image.DecompressionBombError as e:
        raise UnsupportedFormatError(f"图像像素数过大: {e}") from e
    except (OSError, SyntaxError, ValueError, EOFError) as e:
        raise UnsupportedFormatError(f"图像数据损坏: {e}") from e

    pil_format = ImageFormats.canonical_pil_format(detected)
    extension = ImageFormats.extension_for_pil(pil_format)
    if pil_format not in ImageFormats.INPUT_PIL_FORMATS or extension is None:
        raise UnsupportedFormatError(f"不允许的图像类型: {detected or '未知'}")

    logger.debug(f"识别为 {detected} {width}x{height}")
    return ImageProbe(
        pil_format=pil_format,
        extension=extension,
        width=width,
        height=height,
        icc_profile=icc_profile or None,
    )


def extract_icc_profile(data: bytes) -> bytes | None:
    """从参考图片中提取 ICC 配置，没有配置时返回 None"""
    return probe_image(data).icc_profile
