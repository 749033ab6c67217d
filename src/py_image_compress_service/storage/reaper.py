"""过期工作区清理模块。

定期移除过期 job 的注册项和目录，并删除进程崩溃后遗留的孤立目录。
清理过程中的文件系统错误只记录日志，不会中断清理。
"""

import asyncio
import contextlib
from dataclasses import dataclass

from ..utils.cleanup_helpers import remove_tree
from ..utils.logging_helpers import get_logger
from .workspace import WorkspaceStore


logger = get_logger()


@dataclass
class SweepReport:
    """一次清理的统计"""

    expired: int = 0
    purged: int = 0
    orphans: int = 0
    failures: int = 0


class Reaper:
    """后台清理任务"""

    def __init__(
        self,
        store: WorkspaceStore,
        interval_seconds: float = 600,
        orphan_grace_seconds: float = 4 * 60 * 60,
    ):
        self.store = store
        self.interval_seconds = interval_seconds
        self.orphan_grace_seconds = orphan_grace_seconds
        self._task: asyncio.Task | None = None

    def sweep(self) -> SweepReport:
        """执行一次清理"""
        report = SweepReport()
        report.expired = len(self.store.evict_expired())

        # 有进行中读取的 job 留在待删除列表中，由最后一个读取结束时删除
        for job in self.store.take_purgeable():
            if remove_tree(self.store.workspace_path(job.id)):
                report.purged += 1
            else:
                report.failures += 1
                self.store.restore_purgeable(job)

        self._sweep_orphans(report)

        if report.expired or report.purged or report.orphans or report.failures:
            logger.info(
                f"清理完成: 过期 {report.expired}, 删除 {report.purged}, "
                f"孤立目录 {report.orphans}, 失败 {report.failures}"
            )
        return report

    def _sweep_orphans(self, report: SweepReport) -> None:
        """删除注册表中不存在且足够旧的目录"""
        known = self.store.known_ids()
        now = self.store.now()

        try:
            entries = list(self.store.root.iterdir())
        except OSError as e:
            logger.warning(f"无法扫描工作区根目录 {self.store.root}: {e}")
            report.failures += 1
            return

        for entry in entries:
            if entry.name in known:
                continue
            try:
                if not entry.is_dir():
                    continue
                age = now - entry.stat().st_mtime
            except OSError as e:
                logger.warning(f"无法读取目录信息 {entry}: {e}")
                report.failures += 1
                continue

            if age <= self.orphan_grace_seconds:
                continue

            if remove_tree(entry):
                logger.info(f"删除孤立目录 {entry.name}")
                report.orphans += 1
            else:
                report.failures += 1

    # ==================== 后台循环 ====================

    async def run(self) -> None:
        """每隔 interval_seconds 在线程中执行一次清理，直到被取消"""
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                await asyncio.to_thread(self.sweep)
            except Exception as e:
                logger.error(f"清理任务出错: {e}")

    def start(self) -> None:
        """在当前事件循环中启动后台清理"""
        if self._task is not None and not self._task.done():
            return
        self._task = asyncio.create_task(self.run())
        logger.info(f"后台清理任务已启动，间隔 {self.interval_seconds} 秒")

    async def stop(self) -> None:
        """取消后台清理并等待其结束"""
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        logger.info("后台清理任务已停止")
