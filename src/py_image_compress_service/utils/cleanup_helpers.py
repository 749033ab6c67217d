"""清理工具模块。

提供工作区目录删除和临时文件资源管理功能，所有操作尽力而为。
"""

import shutil
from pathlib import Path
from typing import Any

from .logging_helpers import get_logger


logger = get_logger()


def remove_tree(directory: Path) -> bool:
    """递归删除目录

    目录不存在视为成功，使删除操作幂等。

    Returns:
        bool: 删除后目录是否已不存在
    """
    try:
        shutil.rmtree(directory)
        logger.debug(f"已删除目录: {directory}")
        return True
    except FileNotFoundError:
        return True
    except OSError as e:
        logger.warning(f"删除目录失败 {directory}: {e}")
        return False


class TempFileManager:
    """临时文件管理器

    退出上下文时删除所有已注册但仍然存在的文件，
    用于保证失败时不留下不完整的输出。
    """

    def __init__(self):
        self.temp_files: set[Path] = set()

    def register_temp_file(self, file_path: Path) -> None:
        """注册临时文件"""
        self.temp_files.add(file_path)

    def discard(self, file_path: Path) -> None:
        """文件已转正，不再需要清理"""
        self.temp_files.discard(file_path)

    def cleanup_temp_files(self) -> int:
        """清理所有注册的临时文件"""
        cleaned_count = 0
        for file_path in self.temp_files:
            try:
                file_path.unlink()
                cleaned_count += 1
                logger.debug(f"已清理临时文件: {file_path}")
            except FileNotFoundError:
                continue
            except OSError as e:
                logger.warning(f"清理临时文件失败 {file_path}: {e}")

        self.temp_files.clear()
        return cleaned_count

    def __enter__(self):
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """上下文管理器退出时清理临时文件"""
        del exc_type, exc_val, exc_tb
        self.cleanup_temp_files()
