"""图像压缩服务异常处理模块。

定义统一的异常类和错误处理机制：请求级验证错误直接拒绝整个请求，
单个文件的错误被转换为失败结果，批量继续处理。
"""

from collections.abc import Callable
from functools import wraps
from typing import Literal, TypeVar

from PIL.Image import DecompressionBombError, UnidentifiedImageError

from .models.compression_result import BatchItemFailure
from .models.constants import FailureCategory
from .utils.logging_helpers import get_logger
from .utils.message_formatter import MessageFormatter


logger = get_logger()
T = TypeVar("T")


# 统一的异常类型
class CompressionError(Exception):
    """压缩服务错误基类"""

    def __init__(self, message: str, file_name: str | None = None):
        super().__init__(message)
        self.message = message
        self.file_name = file_name


class ValidationError(CompressionError):
    """请求参数验证错误 - 在任何文件 I/O 之前拒绝整个请求"""

    def __init__(
        self, message: str, file_name: str | None = None, status_code: int = 400
    ):
        super().__init__(message, file_name)
        self.status_code = status_code


class UnsupportedFormatError(CompressionError):
    """单个文件无法解码或类型不在允许范围内"""

    pass


class ProcessingError(CompressionError):
    """编码器或文件系统的内部错误"""

    def __init__(
        self,
        message: str,
        file_name: str | None = None,
        category: str = FailureCategory.INTERNAL,
    ):
        super().__init__(message, file_name)
        self.category = category


class AuthError(CompressionError):
    """job 不存在、已过期或令牌不匹配

    reason 只用于服务端诊断，对外一律表现为未授权。
    """

    def __init__(self, reason: Literal["not_found", "invalid_token"]):
        super().__init__(MessageFormatter.UNAUTHORIZED)
        self.reason = reason


# 异常处理装饰器
def handle_image_errors(operation_name: str = "图像处理"):
    """统一的图像处理异常处理装饰器

    将 Pillow 抛出的异常映射到本模块的异常体系。

    Args:
        operation_name: 操作名称，用于日志记录
    """

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        def wrapper(*args, **kwargs) -> T:
            try:
                return func(*args, **kwargs)
            except CompressionError:
                raise
            except UnidentifiedImageError as e:
                logger.debug(f"{operation_name} - 无法识别图像格式: {e}")
                raise UnsupportedFormatError(f"无法识别的图像格式: {e}") from e
            except DecompressionBombError as e:
                logger.warning(f"{operation_name} - 图像过大: {e}")
                raise UnsupportedFormatError(
                    f"图像像素数过大，可能存在安全风险: {e}"
                ) from e
            except (SyntaxError, EOFError) as e:
                # Pillow 对截断或损坏的数据会抛出这些异常
                logger.debug(f"{operation_name} - 图像数据损坏: {e}")
                raise UnsupportedFormatError(f"图像数据损坏: {e}") from e
            except OSError as e:
                logger.error(f"{operation_name} - 文件操作失败: {e}")
                raise ProcessingError(f"文件操作失败: {e}") from e
            except (ValueError, TypeError) as e:
                logger.error(f"{operation_name} - 参数错误: {e}")
                raise ProcessingError(f"参数错误: {e}") from e
            except Exception as e:
                logger.error(f"{operation_name} - 未知错误: {e}")
                raise ProcessingError(f"处理失败: {e}") from e

        return wrapper

    return decorator


class ErrorHandler:
    """统一错误处理器

    提供标准化的错误处理和日志记录功能。
    """

    @staticmethod
    def _log_error(
        operation: str, target: str, error: Exception, level: str = "error"
    ) -> None:
        """标准化的错误日志记录

        Args:
            operation: 操作名称
            target: 相关文件名
            error: 异常对象
            level: 日志级别 ("error", "warning", "debug")
        """
        log_msg = MessageFormatter.format_error(operation, target, error)
        getattr(logger, level, logger.error)(log_msg)

    @staticmethod
    def _create_failure(
        original_name: str, category: str, technical: str
    ) -> BatchItemFailure:
        return BatchItemFailure(
            original_name=original_name,
            category=category,
            friendly=MessageFormatter.friendly_for(category),
            technical=technical,
        )

    @staticmethod
    def to_failure(
        error: Exception, original_name: str, operation: str = "图像压缩"
    ) -> BatchItemFailure:
        """将单个文件的异常转换为失败结果，按异常类型分发"""
        match error:
            case UnsupportedFormatError() as ufe:
                ErrorHandler._log_error(operation, original_name, ufe, "warning")
                return ErrorHandler._create_failure(
                    original_name, FailureCategory.UNSUPPORTED, ufe.message
                )
            case ProcessingError() as pe:
                ErrorHandler._log_error(operation, original_name, pe, "error")
                return ErrorHandler._create_failure(
                    original_name, pe.category, pe.message
                )
            case PermissionError() as pe:
                ErrorHandler._log_error(
                    f"{operation} - 权限错误", original_name, pe, "error"
                )
                return ErrorHandler._create_failure(
                    original_name, FailureCategory.INTERNAL, "写入工作区失败"
                )
            case OSError() as ose:
                ErrorHandler._log_error(
                    f"{operation} - 系统错误", original_name, ose, "error"
                )
                return ErrorHandler._create_failure(
                    original_name, FailureCategory.INTERNAL, "写入工作区失败"
                )
            case _:
                logger.exception(
                    MessageFormatter.format_error(operation, original_name, error)
                )
                return ErrorHandler._create_failure(
                    original_name, FailureCategory.INTERNAL, "未知错误"
                )
