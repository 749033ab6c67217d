"""归档构建模块。

将 job 的所有输出文件打包为 ZIP，边压缩边输出，不在内存或磁盘中缓存整个归档。
"""

import io
import zipfile
from collections.abc import Iterator
from pathlib import Path

from ..models.job import Job
from ..utils.file_helpers import write_stream_atomic
from ..utils.logging_helpers import get_logger
from .streams import LeasedStream
from .workspace import WorkspaceStore


logger = get_logger()


class _ChunkSink(io.RawIOBase):
    """不可 seek 的写入端，zipfile 写入的字节暂存在这里等待取走"""

    def __init__(self) -> None:
        super().__init__()
        self._chunks: list[bytes] = []

    def writable(self) -> bool:
        return True

    def write(self, data) -> int:  # type: ignore[override]
        self._chunks.append(bytes(data))
        return len(data)

    def drain(self) -> bytes:
        data = b"".join(self._chunks)
        self._chunks.clear()
        return data


class ArchiveBuilder:
    """ZIP 归档构建器"""

    def __init__(self, store: WorkspaceStore, chunk_size: int = 64 * 1024):
        self.store = store
        self.chunk_size = chunk_size

    def open(self, job: Job) -> LeasedStream:
        """打开归档流，构造时即获取租约

        Raises:
            AuthError: job 在授权之后已被删除
        """
        return LeasedStream(self.store, job, lambda: self._iter_archive(job))

    def write_to(self, job: Job, output_path: Path) -> int:
        """将归档写入本地文件，返回写入的字节数

        先写入同目录下的临时文件，成功后再重命名；失败时删除不完整的文件。
        """
        output_path = Path(output_path)
        stream = self.open(job)
        try:
            written = write_stream_atomic(output_path, stream)
        finally:
            stream.close()

        logger.info(f"归档已写入 {output_path} ({written} 字节)")
        return written

    def _iter_archive(self, job: Job) -> Iterator[bytes]:
        """生成 ZIP 字节块

        文件列表在开始时快照；快照中存在但磁盘上缺失的文件跳过并记录警告。
        """
        names = self.store.snapshot_files(job)
        workspace = self.store.workspace_path(job.id)
        sink = _ChunkSink()

        with zipfile.ZipFile(
            sink, mode="w", compression=zipfile.ZIP_DEFLATED, compresslevel=9
        ) as zf:
            for name in names:
                path = workspace / name
                try:
                    source = open(path, "rb")
                except FileNotFoundError:
                    logger.warning(f"job {job.id} 的文件 {name} 在磁盘上缺失，跳过")
                    continue

                with source, zf.open(name, mode="w") as member:
                    while chunk := source.read(self.chunk_size):
                        member.write(chunk)
                        if data := sink.drain():
                            yield data

                if data := sink.drain():
                    yield data

        # 中央目录在关闭时写入
        if data := sink.drain():
            yield data

        logger.info(f"job {job.id} 归档完成，共 {len(names)} 个条目")

