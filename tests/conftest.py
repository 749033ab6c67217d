"""测试配置文件。

提供测试所需的fixtures和配置。
"""

import time
from collections.abc import Callable
from io import BytesIO
from pathlib import Path

import pytest
from PIL import Image, ImageCms, ImageDraw

from py_image_compress_service import config as config_module
from py_image_compress_service.config import AppConfig, reset_config
from py_image_compress_service.service import CompressionService
from py_image_compress_service.storage.workspace import WorkspaceStore


class FakeClock:
    """可手动推进的时钟"""

    def __init__(self, start: float | None = None):
        self.current = time.time() if start is None else start

    def __call__(self) -> float:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += seconds


def _draw_pattern(img: Image.Image) -> None:
    """画一些色块，避免纯色图片压缩结果过于极端"""
    draw = ImageDraw.Draw(img)
    width, height = img.size
    for i in range(40):
        x, y = (i * 37) % width, (i * 23) % height
        color = (i * 5 % 256, i * 7 % 256, i * 11 % 256)
        draw.rectangle([x, y, x + width // 6, y + height // 6], fill=color)


def render_image(
    format: str = "PNG",
    size: tuple[int, int] = (200, 150),
    mode: str = "RGB",
    **save_kwargs,
) -> bytes:
    """生成图片字节

    PNG 默认不压缩，保证重新编码后一定变小。
    """
    color = (255, 255, 255, 0) if mode == "RGBA" else "white"
    img = Image.new(mode, size, color=color)
    _draw_pattern(img)

    if format == "PNG":
        save_kwargs.setdefault("compress_level", 0)

    buffer = BytesIO()
    img.save(buffer, format=format, **save_kwargs)
    return buffer.getvalue()


@pytest.fixture
def image_bytes() -> Callable[..., bytes]:
    """图片字节生成器fixture"""
    return render_image


@pytest.fixture(scope="session")
def icc_profile() -> bytes:
    """sRGB ICC 配置字节"""
    return ImageCms.ImageCmsProfile(ImageCms.createProfile("sRGB")).tobytes()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(tmp_path: Path, clock: FakeClock) -> WorkspaceStore:
    """使用临时目录和假时钟的工作区存储"""
    return WorkspaceStore(tmp_path / "jobs", ttl_seconds=3600, clock=clock)


@pytest.fixture
def app_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> AppConfig:
    """工作区根目录指向临时目录的配置"""
    monkeypatch.setenv("PIC_TMP_ROOT", str(tmp_path / "service_jobs"))
    monkeypatch.setenv("PIC_MAX_WORKERS", "2")
    # 测试结束后恢复全局配置
    monkeypatch.setattr(config_module, "config", config_module.config)
    return reset_config()


@pytest.fixture
def service(app_config: AppConfig, clock: FakeClock) -> CompressionService:
    return CompressionService(app_config, clock=clock)
