"""统一配置管理模块。

提供应用程序的全局配置管理，包括默认值、环境变量支持等。
"""

import os
import tempfile
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class StorageDefaults:
    """工作区存储相关的默认配置"""

    # 所有 job 工作区的根目录
    TMP_ROOT: str = str(Path(tempfile.gettempdir()) / "py_image_compress_jobs")

    # job 生命周期 - 创建后固定过期，访问不会续期
    JOB_TTL_SECONDS: int = 60 * 60

    # 清理任务
    SWEEP_INTERVAL_SECONDS: int = 10 * 60
    ORPHAN_GRACE_SECONDS: int = 4 * 60 * 60

    # 流式下载的块大小
    STREAM_CHUNK_SIZE: int = 64 * 1024


@dataclass(frozen=True)
class CompressionDefaults:
    """压缩相关的默认配置"""

    DEFAULT_FORMAT: str = "webp"

    # 超过该尺寸的图片在编码前缩小
    MAX_DIMENSION: int = 6000

    # 并发设置
    MAX_WORKERS: int = 4


@dataclass(frozen=True)
class UploadLimits:
    """请求级别的上传限制"""

    MAX_FILES: int = 20
    MAX_FILE_SIZE: int = 20 * 1024 * 1024


@dataclass(frozen=True)
class ServerDefaults:
    """HTTP 服务配置"""

    HOST: str = "0.0.0.0"
    PORT: int = 3080


@dataclass(frozen=True)
class LoggingDefaults:
    """日志相关的默认配置"""

    # 日志级别
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    # 文件日志
    ENABLE_FILE_LOGGING: bool = False
    LOG_FILE_PATH: str = "py_image_compress_service.log"
    LOG_FILE_MAX_SIZE: int = 10 * 1024 * 1024  # 10MB
    LOG_FILE_BACKUP_COUNT: int = 5


class AppConfig:
    """应用程序配置管理器

    支持环境变量覆盖默认配置
    """

    def __init__(self):
        self.storage = StorageDefaults()
        self.compression = CompressionDefaults()
        self.limits = UploadLimits()
        self.server = ServerDefaults()
        self.logging = LoggingDefaults()

        # 从环境变量加载配置
        self._load_from_env()

    def _load_from_env(self):
        """从环境变量加载配置"""
        # 存储配置
        if tmp_root := os.getenv("PIC_TMP_ROOT"):
            object.__setattr__(self.storage, "TMP_ROOT", tmp_root)

        if ttl := os.getenv("PIC_JOB_TTL_SECONDS"):
            object.__setattr__(self.storage, "JOB_TTL_SECONDS", int(ttl))

        if interval := os.getenv("PIC_SWEEP_INTERVAL_SECONDS"):
            object.__setattr__(self.storage, "SWEEP_INTERVAL_SECONDS", int(interval))

        if grace := os.getenv("PIC_ORPHAN_GRACE_SECONDS"):
            object.__setattr__(self.storage, "ORPHAN_GRACE_SECONDS", int(grace))

        # 压缩配置
        if default_format := os.getenv("PIC_DEFAULT_FORMAT"):
            object.__setattr__(
                self.compression, "DEFAULT_FORMAT", default_format.lower()
            )

        if max_dimension := os.getenv("PIC_MAX_DIMENSION"):
            object.__setattr__(self.compression, "MAX_DIMENSION", int(max_dimension))

        if max_workers := os.getenv("PIC_MAX_WORKERS"):
            object.__setattr__(self.compression, "MAX_WORKERS", int(max_workers))

        # 上传限制
        if max_files := os.getenv("PIC_MAX_FILES"):
            object.__setattr__(self.limits, "MAX_FILES", int(max_files))

        if max_file_size := os.getenv("PIC_MAX_FILE_SIZE"):
            object.__setattr__(self.limits, "MAX_FILE_SIZE", int(max_file_size))

        # 服务配置
        if host := os.getenv("PIC_HOST"):
            object.__setattr__(self.server, "HOST", host)

        if port := os.getenv("PIC_PORT") or os.getenv("PORT"):
            object.__setattr__(self.server, "PORT", int(port))

        # 日志配置
        if log_level := os.getenv("PIC_LOG_LEVEL"):
            object.__setattr__(self.logging, "LOG_LEVEL", log_level.upper())

        if enable_file_log := os.getenv("PIC_ENABLE_FILE_LOGGING"):
            object.__setattr__(
                self.logging,
                "ENABLE_FILE_LOGGING",
                enable_file_log.lower() in ("true", "1", "yes"),
            )

    @property
    def tmp_root(self) -> Path:
        """工作区根目录"""
        return Path(self.storage.TMP_ROOT)


# 全局配置实例
config = AppConfig()


def get_config() -> AppConfig:
    """获取全局配置实例"""
    return config


def reset_config() -> AppConfig:
    """按当前环境变量重建全局配置（主要用于测试）"""
    global config
    config = AppConfig()
    return config
