"""存储模块包。

job 注册表、工作区目录、归档流和后台清理。
"""

from .archive import ArchiveBuilder
from .reaper import Reaper, SweepReport
from .streams import LeasedStream
from .workspace import WorkspaceStore


__all__ = [
    "ArchiveBuilder",
    "LeasedStream",
    "Reaper",
    "SweepReport",
    "WorkspaceStore",
]
