"""格式处理器模块。

为目标格式准备图片（色彩模式转换、缩放）并生成 Pillow 保存参数。
"""

import logging
from io import BytesIO
from typing import Any

from PIL import Image, ImageCms

from ..models.constants import ImageFormats, QualityDefaults


logger = logging.getLogger(__name__)

_WHITE = (255, 255, 255)
_SRGB_PROFILE = ImageCms.createProfile("sRGB")
# 可以按 ICC 配置转换到 sRGB 的色彩模式，其他模式直接转换
_CMS_INPUT_MODES = ("L", "CMYK")


class FormatProcessor:
    """格式处理器"""

    def __init__(self) -> None:
        """初始化格式处理器，探测各输出格式的编码支持"""
        self.supported_formats = {
            fmt: self._check_format_support(fmt)
            for fmt in ImageFormats.PIL_FORMATS.values()
        }

        unsupported = sorted(f for f, ok in self.supported_formats.items() if not ok)
        if unsupported:
            logger.warning(f"当前 Pillow 不支持编码以下格式: {unsupported}")

    @staticmethod
    def _check_format_support(format_name: str) -> bool:
        """检查特定格式是否可以编码和回读"""
        try:
            buffer = BytesIO()
            Image.new("RGB", (1, 1), color="red").save(buffer, format=format_name)
            buffer.seek(0)
            with Image.open(buffer) as probe:
                probe.load()
            return True
        except Exception as e:
            logger.debug(f"格式 {format_name} 不支持: {e}")
            return False

    def can_encode(self, format_name: str) -> bool:
        return self.supported_formats.get(format_name, False)

    def convert_to_srgb(self, img: Image.Image) -> tuple[Image.Image, bytes | None]:
        """按源 ICC 配置将非 RGB 图片转换到 sRGB

        Returns:
            tuple: (图片, 仍然描述该图片像素的 ICC 配置)
            RGB/RGBA 图片保留原配置；其他模式转换后像素已是 sRGB，不再携带源配置。
        """
        profile = img.info.get("icc_profile") or None
        if profile is None or img.mode in ("RGB", "RGBA"):
            return img, profile

        if img.mode not in _CMS_INPUT_MODES:
            return img, None

        try:
            source_profile = ImageCms.ImageCmsProfile(BytesIO(profile))
            img = ImageCms.profileToProfile(
                img, source_profile, _SRGB_PROFILE, outputMode="RGB"
            )
        except (ImageCms.PyCMSError, OSError, ValueError) as e:
            # 配置与色彩模式不匹配时退回普通转换
            logger.warning(f"无法按 ICC 配置转换 {img.mode} 图片，直接转换: {e}")
        return img, None

    def prepare_for_format(self, img: Image.Image, target_format: str) -> Image.Image:
        """为目标格式准备图片

        Args:
            img: PIL图片对象
            target_format: Pillow 格式名

        Returns:
            Image.Image: 处理后的图片对象
        """
        img = self._to_srgb_mode(img)

        if target_format == "JPEG":
            return self._prepare_for_jpeg(img)
        # PNG / WEBP / AVIF 都支持 RGBA
        return img

    @staticmethod
    def _to_srgb_mode(img: Image.Image) -> Image.Image:
        """统一为 RGB/RGBA，保留透明通道"""
        has_alpha = img.mode in ("RGBA", "LA", "PA") or (
            img.mode == "P" and "transparency" in img.info
        )

        if has_alpha:
            return img if img.mode == "RGBA" else img.convert("RGBA")
        if img.mode != "RGB":
            # CMYK、灰度、16 位等模式统一转换
            return img.convert("RGB")
        return img

    @staticmethod
    def _prepare_for_jpeg(img: Image.Image) -> Image.Image:
        """JPEG 不支持透明度，合成到白色背景上"""
        if img.mode != "RGBA":
            return img

        background = Image.new("RGB", img.size, _WHITE)
        background.paste(img, mask=img.split()[-1])
        return background


def fit_within(img: Image.Image, max_dimension: int) -> tuple[Image.Image, bool]:
    """将图片缩小到 max_dimension 见方以内，保持宽高比，不放大

    Returns:
        tuple: (图片, 是否缩小)
    """
    width, height = img.size
    if width <= max_dimension and height <= max_dimension:
        return img, False

    ratio = min(max_dimension / width, max_dimension / height)
    new_size = (max(1, int(width * ratio)), max(1, int(height * ratio)))
    logger.info(f"图片尺寸 {width}x{height} 超过限制 {max_dimension}，缩小到 {new_size}")
    return img.resize(new_size, Image.Resampling.LANCZOS), True


def quantize_for_png(img: Image.Image, quality: int) -> Image.Image:
    """PNG 的"质量"通过调色板量化实现，质量 100 时保持无损"""
    if quality >= QualityDefaults.MAX_QUALITY:
        return img

    colors = max(16, min(256, round(quality * 2.56)))
    method = (
        Image.Quantize.FASTOCTREE if img.mode == "RGBA" else Image.Quantize.MEDIANCUT
    )
    return img.quantize(colors=colors, method=method)


def get_save_parameters(
    format_name: str, quality: int, icc_profile: bytes | None = None
) -> dict[str, Any]:
    """获取保存参数

    Args:
        format_name: Pillow 格式名
        quality: 已修正到合法范围的质量
        icc_profile: 需要嵌入的 ICC 配置

    Returns:
        dict: 传给 Image.save 的参数（包含 format）
    """
    params: dict[str, Any] = {"format": format_name}

    match format_name:
        case "JPEG":
            params.update(get_jpeg_params(quality))
        case "PNG":
            params.update(get_png_params())
        case "WEBP":
            params.update(get_webp_params(quality))
        case "AVIF":
            params.update(get_avif_params(quality))

    if icc_profile:
        params["icc_profile"] = icc_profile

    return params


def get_jpeg_params(quality: int) -> dict[str, Any]:
    """获取JPEG压缩参数

    - optimize: 额外处理以找到最优哈夫曼表
    - progressive: 渐进式JPEG，适合网络传输
    - subsampling=2: 4:2:0 色度子采样
    """
    return {
        "quality": quality,
        "optimize": True,
        "progressive": True,
        "subsampling": 2,
    }


def get_png_params() -> dict[str, Any]:
    """获取PNG压缩参数，量化在保存前单独完成"""
    return {
        "optimize": True,
        "compress_level": 9,
    }


def get_webp_params(quality: int) -> dict[str, Any]:
    """获取WebP压缩参数

    method=6 最慢但压缩效果最好；质量略微上调但不超过上限。
    """
    webp_quality = min(quality + QualityDefaults.WEBP_BOOST, QualityDefaults.WEBP_CEILING)
    return {
        "quality": webp_quality,
        "method": 6,
    }


def get_avif_params(quality: int) -> dict[str, Any]:
    """获取AVIF压缩参数

    AVIF 在同等数值下画质更高，按比例降低质量并设置下限。
    """
    avif_quality = max(
        round(quality * QualityDefaults.AVIF_SCALE), QualityDefaults.AVIF_FLOOR
    )
    return {
        "quality": avif_quality,
        "speed": 6,
        "subsampling": "4:2:0",
    }
