"""压缩服务门面。

组合工作区存储、批量处理器、归档构建器和清理任务，
为 HTTP 与 MCP 两种入口提供相同的行为和响应结构。
"""

import time
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import quote

from .config import AppConfig, get_config
from .engine.batch import BatchProcessor
from .models.compression_config import UploadedImage
from .models.compression_result import BatchResult, CompressionPayload
from .models.constants import ImageFormats
from .models.job import Job
from .storage.archive import ArchiveBuilder
from .storage.reaper import Reaper
from .storage.streams import LeasedStream
from .storage.workspace import WorkspaceStore
from .utils.file_helpers import iter_file_chunks, write_stream_atomic
from .utils.logging_helpers import get_logger


logger = get_logger()


@dataclass
class StreamHandle:
    """一次下载：持有租约的数据流及响应元数据"""

    stream: LeasedStream
    file_name: str
    media_type: str
    size: int | None = None

    def close(self) -> None:
        self.stream.close()


class CompressionService:
    """压缩服务

    所有下载和打包都必须先通过 authorize()，
    未知 job、已过期 job 和错误令牌对调用方表现完全一致。
    """

    def __init__(
        self,
        app_config: AppConfig | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.config = app_config or get_config()
        storage = self.config.storage

        self.store = WorkspaceStore(
            self.config.tmp_root, storage.JOB_TTL_SECONDS, clock=clock
        )
        self.processor = BatchProcessor(
            self.store,
            max_files=self.config.limits.MAX_FILES,
            max_file_size=self.config.limits.MAX_FILE_SIZE,
            max_dimension=self.config.compression.MAX_DIMENSION,
            default_format=self.config.compression.DEFAULT_FORMAT,
            max_workers=self.config.compression.MAX_WORKERS,
        )
        self.archive = ArchiveBuilder(self.store, storage.STREAM_CHUNK_SIZE)
        self.reaper = Reaper(
            self.store,
            interval_seconds=storage.SWEEP_INTERVAL_SECONDS,
            orphan_grace_seconds=storage.ORPHAN_GRACE_SECONDS,
        )

    # ==================== 提交 ====================

    def compress_batch(
        self,
        images: list[UploadedImage],
        format: str | None = None,
        quality: object = None,
        profile_ref: bytes | None = None,
    ) -> CompressionPayload:
        """压缩一个批次并返回响应体

        Raises:
            ValidationError: 请求本身无效，没有创建任何 job
        """
        options = self.processor.build_options(format, quality, profile_ref)
        job, result = self.processor.process(images, options)
        return self.build_payload(job, result)

    def build_payload(self, job: Job, result: BatchResult) -> CompressionPayload:
        """构建对外响应，令牌只出现在这里"""
        token = job.token.get_secret_value()

        payload: CompressionPayload = {
            "jobId": job.id,
            "token": token,
            "count": result.get_success_count(),
            "results": [
                {
                    "originalName": item.original_name,
                    "outputName": item.output_name,
                    "originalBytes": item.original_bytes,
                    "outputBytes": item.output_bytes,
                    "savedBytes": item.saved_bytes,
                    "savedHuman": item.get_saved_human(),
                    "url": self.download_url(job.id, item.output_name, token),
                }
                for item in result.successes
            ],
            "errors": [
                {
                    "file": item.original_name,
                    "friendly": item.friendly,
                    "technical": item.technical,
                }
                for item in result.failures
            ],
            "expiresInMs": int(self.store.ttl_seconds * 1000),
        }
        if result.successes:
            payload["zipUrl"] = self.zip_url(job.id, token)
        return payload

    @staticmethod
    def download_url(job_id: str, file_name: str, token: str) -> str:
        return f"/download/{job_id}/{quote(file_name)}?t={quote(token)}"

    @staticmethod
    def zip_url(job_id: str, token: str) -> str:
        return f"/zip/{job_id}?t={quote(token)}"

    # ==================== 读取 ====================

    def open_download(
        self, job_id: str, token: str | None, file_name: str
    ) -> StreamHandle:
        """打开单个输出文件

        Raises:
            AuthError: 未授权
            FileNotFoundError: 已授权但该文件不属于此 job
        """
        job = self.store.authorize(job_id, token)
        path = self.store.file_path(job, file_name)
        size = path.stat().st_size

        stream = LeasedStream(
            self.store,
            job,
            lambda: iter_file_chunks(path, self.config.storage.STREAM_CHUNK_SIZE),
        )
        return StreamHandle(
            stream=stream,
            file_name=file_name,
            media_type=ImageFormats.get_mime_type(file_name),
            size=size,
        )

    def open_archive(self, job_id: str, token: str | None) -> StreamHandle:
        """打开 job 的 ZIP 归档流

        Raises:
            AuthError: 未授权
        """
        job = self.store.authorize(job_id, token)
        return StreamHandle(
            stream=self.archive.open(job),
            file_name=f"compressed_{job.id}.zip",
            media_type="application/zip",
        )

    def export_file(
        self, job_id: str, token: str | None, file_name: str, output_path: str | Path
    ) -> int:
        """将单个输出文件保存到本地，返回字节数

        Raises:
            AuthError: 未授权
            FileNotFoundError: 已授权但该文件不属于此 job
        """
        handle = self.open_download(job_id, token, file_name)
        try:
            written = write_stream_atomic(Path(output_path), handle.stream)
        finally:
            handle.close()

        logger.info(f"job {job_id} 的文件 {file_name} 已保存到 {output_path}")
        return written

    def export_archive(
        self, job_id: str, token: str | None, output_path: str | Path
    ) -> int:
        """将归档写入本地文件，返回字节数

        Raises:
            AuthError: 未授权
        """
        job = self.store.authorize(job_id, token)
        return self.archive.write_to(job, Path(output_path))

    def list_files(self, job_id: str, token: str | None) -> list[dict[str, object]]:
        """列出 job 的输出文件及下载地址

        Raises:
            AuthError: 未授权
        """
        job = self.store.authorize(job_id, token)
        token_value = job.token.get_secret_value()
        workspace = self.store.workspace_path(job.id)

        files = []
        for name in self.store.snapshot_files(job):
            try:
                size = (workspace / name).stat().st_size
            except FileNotFoundError:
                logger.warning(f"job {job.id} 的文件 {name} 在磁盘上缺失")
                continue
            files.append(
                {
                    "name": name,
                    "bytes": size,
                    "url": self.download_url(job.id, name, token_value),
                }
            )
        return files

    def delete_job(self, job_id: str) -> None:
        self.store.delete(job_id)
