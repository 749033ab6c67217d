"""消息格式化工具模块。

提供统一的错误消息、用户提示消息格式化功能。
"""

from pathlib import Path


class MessageFormatter:
    """统一的消息格式化器"""

    # 面向用户的固定提示
    UNAUTHORIZED = "未授权或链接已过期。"
    FILE_NOT_IN_JOB = "该任务中不存在此文件。"
    NO_FILES = "未收到任何文件。"
    INTERNAL_ERROR = "服务器内部错误，请稍后重试。"

    FRIENDLY_BY_CATEGORY = {
        "unsupported": (
            "此文件无法处理。仅支持有效的图片（JPG、PNG、WebP、AVIF），"
            "或者文件可能已损坏。"
        ),
        "format": "无法输出为所请求的格式。",
        "internal": "压缩此文件时发生内部错误。",
    }

    @staticmethod
    def friendly_for(category: str) -> str:
        """按失败类别获取面向用户的提示"""
        return MessageFormatter.FRIENDLY_BY_CATEGORY.get(
            category, MessageFormatter.FRIENDLY_BY_CATEGORY["internal"]
        )

    @staticmethod
    def file_not_found(file_path: str | Path) -> str:
        """文件不存在错误消息"""
        return f"文件不存在: {file_path}"

    @staticmethod
    def too_many_files(count: int, limit: int) -> str:
        return f"每次请求最多 {limit} 个文件（收到 {count} 个）。"

    @staticmethod
    def file_too_large(name: str, size: int, limit: int) -> str:
        return f"文件过大: {name} ({size} 字节，上限 {limit} 字节)"

    @staticmethod
    def invalid_format(value: str, allowed: list[str]) -> str:
        return f"请求的输出格式无效: {value}，支持: {', '.join(allowed)}"

    @staticmethod
    def operation_failed(
        operation: str, target: str | Path, error: Exception | None = None
    ) -> str:
        """操作失败消息"""
        msg = f"{operation}失败: {target}"
        if error:
            msg += f" - {error}"
        return msg

    @staticmethod
    def format_error(operation: str, target: str | Path, error: Exception) -> str:
        """格式化通用错误消息"""
        return f"{operation}失败 [{target}]: {error}"
