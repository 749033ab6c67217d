"""文件工具函数模块。

提供工作区文件的原子写入和分块读取。
"""

import os
from collections.abc import Iterable, Iterator
from pathlib import Path

from .cleanup_helpers import TempFileManager


def write_stream_atomic(target: Path, chunks: Iterable[bytes]) -> int:
    """原子写入文件，返回写入的字节数

    先写入同目录下的临时文件并 fsync，再重命名为目标文件名。
    目标文件要么完整存在，要么不存在。
    """
    tmp_path = target.with_name(f".{target.name}.part")
    written = 0

    with TempFileManager() as temp_files:
        temp_files.register_temp_file(tmp_path)
        with open(tmp_path, "wb") as fh:
            for chunk in chunks:
                fh.write(chunk)
                written += len(chunk)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp_path, target)
        temp_files.discard(tmp_path)

    return written


def write_bytes_atomic(target: Path, data: bytes) -> None:
    write_stream_atomic(target, (data,))


def iter_file_chunks(path: Path, chunk_size: int) -> Iterator[bytes]:
    """按块读取文件，生成器关闭时文件句柄随之释放"""
    with open(path, "rb") as fh:
        while chunk := fh.read(chunk_size):
            yield chunk
