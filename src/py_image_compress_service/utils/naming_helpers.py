"""文件命名工具模块。

提供统一的输出文件命名策略：清洗客户端提供的文件名，
并保证同一 job 内的输出名唯一。
"""

import itertools
import re
from collections.abc import Container
from pathlib import PurePosixPath, PureWindowsPath


# 允许出现在输出文件名中的字符之外的一律替换
_UNSAFE_CHARS = re.compile(r"[^\w.\- ]+", re.UNICODE)
_MAX_STEM_LENGTH = 120


class FileNamingStrategy:
    """文件命名策略类"""

    DEFAULT_STEM = "image"

    @staticmethod
    def sanitize_stem(original_name: str | None) -> str:
        """提取并清洗原始文件名的主干部分

        去掉任何目录部分（同时处理 POSIX 与 Windows 分隔符），
        移除控制字符和路径相关字符，避免写出工作区目录。
        """
        if not original_name:
            return FileNamingStrategy.DEFAULT_STEM

        # 客户端可能传入 "../../x.png" 或 "C:\\x.png"
        base = PureWindowsPath(PurePosixPath(original_name).name).name
        stem = base.rsplit(".", 1)[0] if "." in base.strip(".") else base

        stem = _UNSAFE_CHARS.sub("_", stem).strip(" .")
        stem = stem[:_MAX_STEM_LENGTH]

        return stem or FileNamingStrategy.DEFAULT_STEM

    @staticmethod
    def generate_output_name(
        original_name: str | None,
        extension: str,
        taken: Container[str] = (),
    ) -> str:
        """生成输出文件名（不含路径）

        Args:
            original_name: 客户端提供的原始文件名
            extension: 不带点的扩展名，如 "webp"
            taken: 已被占用的文件名

        Returns:
            str: 在 taken 中不存在的文件名
        """
        stem = FileNamingStrategy.sanitize_stem(original_name)
        candidate = f"{stem}.{extension}"
        if candidate not in taken:
            return candidate

        for counter in itertools.count(1):
            candidate = f"{stem}-{counter}.{extension}"
            if candidate not in taken:
                return candidate

        raise AssertionError("unreachable")


def is_safe_member_name(name: str) -> bool:
    """检查名称是否可以直接作为工作区内的文件名"""
    return (
        bool(name)
        and name not in {".", ".."}
        and "/" not in name
        and "\\" not in name
        and "\x00" not in name
    )
