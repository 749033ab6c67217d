"""持有租约的分块数据流。

下载和打包在构造时立即获取租约，而不是等到第一次迭代，
授权与读取之间 job 被删除时调用方可以立即得到未授权错误。
"""

from collections.abc import Callable, Iterator
from contextlib import ExitStack

from ..models.job import Job
from .workspace import WorkspaceStore


class LeasedStream:
    """迭代结束、出错或被 close() 时释放文件句柄和租约"""

    def __init__(
        self,
        store: WorkspaceStore,
        job: Job,
        chunks_factory: Callable[[], Iterator[bytes]],
    ):
        self._stack = ExitStack()
        self._stack.enter_context(store.lease(job))
        try:
            self._chunks = chunks_factory()
        except BaseException:
            self._stack.close()
            raise
        self.job = job

    def __iter__(self) -> Iterator[bytes]:
        try:
            yield from self._chunks
        finally:
            self.close()

    def close(self) -> None:
        """可重复调用"""
        close = getattr(self._chunks, "close", None)
        if close is not None:
            close()
        self._stack.close()
