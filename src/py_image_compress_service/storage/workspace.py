"""工作区存储模块。

内存中的 job 注册表：每个 job 拥有一个私有目录和一个访问令牌。
注册表是授权的唯一依据，磁盘扫描只用于崩溃后的清理。

线程安全：所有注册表修改都在同一把锁内完成，锁内不做磁盘 I/O。
"""

import secrets
import threading
import time
import uuid
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path

from pydantic import SecretStr

from ..exceptions import AuthError, ProcessingError
from ..models.job import Job
from ..utils.cleanup_helpers import remove_tree
from ..utils.logging_helpers import get_logger
from ..utils.naming_helpers import is_safe_member_name


logger = get_logger()


class WorkspaceStore:
    """job 注册表与工作区目录管理

    已过期或已删除、但仍有进行中读取的 job 放在 _graveyard 中，
    目录在最后一个读取结束后（或下一次清理时）才删除。
    """

    def __init__(
        self,
        root: Path,
        ttl_seconds: float,
        clock: Callable[[], float] = time.time,
    ):
        self.root = Path(root)
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._jobs: dict[str, Job] = {}
        self._graveyard: dict[str, Job] = {}
        self._lock = threading.Lock()

        self.root.mkdir(parents=True, exist_ok=True)
        logger.info(f"工作区存储初始化于 {self.root}")

    def now(self) -> float:
        return self._clock()

    # ==================== 路径 ====================

    def workspace_path(self, job_id: str) -> Path:
        return self.root / job_id

    def file_path(self, job: Job, file_name: str) -> Path:
        """job 拥有的文件路径；不属于该 job 的名称一律拒绝"""
        if not is_safe_member_name(file_name) or file_name not in job.files:
            raise FileNotFoundError(file_name)
        return self.workspace_path(job.id) / file_name

    # ==================== 生命周期 ====================

    def create(self) -> Job:
        """创建新的 job 及其空工作区目录"""
        token = secrets.token_urlsafe(32)

        with self._lock:
            job_id = uuid.uuid4().hex
            while job_id in self._jobs or job_id in self._graveyard:
                job_id = uuid.uuid4().hex

            created_at = self.now()
            job = Job(
                id=job_id,
                token=SecretStr(token),
                created_at=created_at,
                expires_at=created_at + self.ttl_seconds,
            )
            self._jobs[job_id] = job

        try:
            self.workspace_path(job_id).mkdir(parents=True, exist_ok=False)
        except OSError as e:
            with self._lock:
                self._jobs.pop(job_id, None)
            raise ProcessingError(f"创建工作区失败: {e}") from e

        logger.info(f"创建 job {job_id}")
        return job

    def authorize(self, job_id: str, token: str | None) -> Job:
        """校验 job 是否存在、未过期且令牌匹配

        过期的 job 在这里直接移出注册表，即使清理任务还没运行也不会被返回。

        Raises:
            AuthError: 两种失败原因对外表现一致
        """
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                raise AuthError("not_found")

            if job.is_expired(self.now()):
                self._retire_locked(job)
                logger.info(f"job {job_id} 已过期，移出注册表")
                raise AuthError("not_found")

        if not job.token_matches(token):
            logger.warning(f"job {job_id} 令牌不匹配")
            raise AuthError("invalid_token")

        return job

    def register_file(self, job_id: str, file_name: str) -> None:
        """登记已完整写入工作区的输出文件"""
        if not is_safe_member_name(file_name):
            raise ValueError(f"非法文件名: {file_name!r}")

        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                raise ProcessingError(f"job {job_id} 已不存在")
            job.files.add(file_name)
            job.reserved.discard(file_name)

    def reserve_name(self, job_id: str, choose: Callable[[set[str]], str]) -> str:
        """在锁内根据已占用名称选择一个新的文件名

        并发处理同一批次时，被选中的名称在写入完成前就被占用。
        """
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                raise ProcessingError(f"job {job_id} 已不存在")
            name = choose(job.files | job.reserved)
            job.reserved.add(name)
            return name

    def release_name(self, job_id: str, file_name: str) -> None:
        """写入失败时释放预留的文件名"""
        with self._lock:
            job = self._jobs.get(job_id)
            if job is not None:
                job.reserved.discard(file_name)

    def snapshot_files(self, job: Job) -> list[str]:
        """获取 job 当前文件集合的快照"""
        with self._lock:
            return job.snapshot_files()

    def delete(self, job_id: str) -> None:
        """删除 job 及其目录；幂等，不存在时什么都不做

        如果仍有进行中的下载，目录在最后一个读取结束时删除。
        """
        with self._lock:
            job = self._jobs.get(job_id)
            if job is not None:
                self._retire_locked(job)
            job = self._graveyard.get(job_id)
            if job is None or job.leases > 0:
                return
            del self._graveyard[job_id]

        if remove_tree(self.workspace_path(job_id)):
            logger.info(f"删除 job {job_id}")
        else:
            self.restore_purgeable(job)

    def _retire_locked(self, job: Job) -> None:
        """移出注册表，等待删除目录（调用方持有锁）"""
        self._jobs.pop(job.id, None)
        self._graveyard[job.id] = job

    # ==================== 读取租约 ====================

    @contextmanager
    def lease(self, job: Job) -> Iterator[Job]:
        """在下载或打包期间持有，保证目录不会被删除

        授权之后、获取租约之前 job 可能已被删除，此时同样视为未授权。
        """
        with self._lock:
            if self._jobs.get(job.id) is not job:
                raise AuthError("not_found")
            job.leases += 1
        try:
            yield job
        finally:
            with self._lock:
                job.leases -= 1
                purge = job.leases == 0 and self._graveyard.get(job.id) is job
                if purge:
                    del self._graveyard[job.id]
            if purge:
                remove_tree(self.workspace_path(job.id))
                logger.info(f"最后一个读取结束，删除 job {job.id}")

    # ==================== 清理支持 ====================

    def evict_expired(self) -> list[str]:
        """将所有过期 job 移出注册表，返回被移出的 ID"""
        now = self.now()
        with self._lock:
            expired = [job for job in self._jobs.values() if job.is_expired(now)]
            for job in expired:
                self._retire_locked(job)
        return [job.id for job in expired]

    def take_purgeable(self) -> list[Job]:
        """取出所有没有进行中读取、可以删除目录的已退役 job"""
        with self._lock:
            ready = [job for job in self._graveyard.values() if job.leases == 0]
            for job in ready:
                del self._graveyard[job.id]
        return ready

    def restore_purgeable(self, job: Job) -> None:
        """目录删除失败时放回，等待下一次清理"""
        with self._lock:
            if job.id not in self._jobs:
                self._graveyard.setdefault(job.id, job)

    def known_ids(self) -> set[str]:
        """注册表和待删除列表中的所有 ID"""
        with self._lock:
            return set(self._jobs) | set(self._graveyard)

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)

    def __contains__(self, job_id: object) -> bool:
        with self._lock:
            return job_id in self._jobs
