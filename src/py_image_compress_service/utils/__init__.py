"""工具模块包。

提供纯工具函数，不包含业务逻辑。
"""

from .cleanup_helpers import TempFileManager, remove_tree
from .file_helpers import iter_file_chunks, write_bytes_atomic
from .logging_helpers import configure_logging, get_logger
from .message_formatter import MessageFormatter
from .naming_helpers import FileNamingStrategy, is_safe_member_name


__all__ = [
    "FileNamingStrategy",
    "MessageFormatter",
    "TempFileManager",
    "configure_logging",
    "get_logger",
    "is_safe_member_name",
    "iter_file_chunks",
    "remove_tree",
    "write_bytes_atomic",
]
