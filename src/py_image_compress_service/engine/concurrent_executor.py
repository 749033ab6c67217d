"""并发执行器模块。

提供通用的并发任务执行功能，结果顺序与输入顺序一致。
"""

from collections.abc import Callable, Sequence
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from typing import TypeVar

from ..utils.logging_helpers import get_logger


logger = get_logger()

T = TypeVar("T")
R = TypeVar("R")


class ConcurrentExecutor:
    """通用并发执行器

    Pillow 在编码时会释放 GIL，线程池即可获得并行效果；
    任务函数自己负责把异常转换为结果，这里只兜底。
    """

    def __init__(self, max_workers: int = 4):
        """初始化并发执行器

        Args:
            max_workers: 最大并发数
        """
        self.max_workers = max(1, max_workers)

    def execute_tasks(
        self,
        tasks: Sequence[T],
        task_function: Callable[[T], R],
        on_error: Callable[[T, Exception], R],
    ) -> list[R]:
        """执行并发任务

        Args:
            tasks: 任务参数列表
            task_function: 要执行的任务函数
            on_error: 任务函数抛出异常时生成结果

        Returns:
            list: 与 tasks 一一对应的结果
        """
        if not tasks:
            return []

        if self.max_workers == 1 or len(tasks) == 1:
            return [self._run_one(task, task_function, on_error) for task in tasks]

        results: list[R | None] = [None] * len(tasks)
        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(tasks))) as pool:
            future_to_index: dict[Future[R], int] = {
                pool.submit(task_function, task): index
                for index, task in enumerate(tasks)
            }
            self._collect_results(future_to_index, tasks, on_error, results)

        return results  # type: ignore[return-value]

    @staticmethod
    def _run_one(
        task: T,
        task_function: Callable[[T], R],
        on_error: Callable[[T, Exception], R],
    ) -> R:
        try:
            return task_function(task)
        except Exception as e:
            return on_error(task, e)

    @staticmethod
    def _collect_results(
        future_to_index: dict[Future[R], int],
        tasks: Sequence[T],
        on_error: Callable[[T, Exception], R],
        results: list[R | None],
    ) -> None:
        """收集任务执行结果，按原始下标放回"""
        for future in as_completed(future_to_index):
            index = future_to_index[future]
            try:
                results[index] = future.result()
            except Exception as e:
                logger.error(f"并发任务 #{index} 出错: {e}")
                results[index] = on_error(tasks[index], e)
