"""图像压缩 MCP 服务器。

与 HTTP 接口共享同一套 job 存储语义：压缩结果写入临时工作区，
之后凭 job ID 和令牌取回单个文件或整个 ZIP 归档。
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

from fastmcp import FastMCP

from .exceptions import AuthError, CompressionError, ValidationError
from .models.compression_config import UploadedImage
from .service import CompressionService
from .utils.logging_helpers import get_logger
from .utils.message_formatter import MessageFormatter


# MCP 服务器响应类型定义
MCPCompressionResponse = dict[str, Any]
MCPJobResponse = dict[str, Any]


class MCPResponseBuilder:
    """MCP 服务器响应构建器，专门用于构建符合 MCP 协议的响应格式。"""

    @staticmethod
    def error(
        message: str,
        error_type: str = "general",
        details: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """构建错误结果。

        Args:
            message: 错误消息
            error_type: 错误类型
            details: 额外的错误详情

        Returns:
            dict: 标准化的错误响应
        """
        result: dict[str, Any] = {
            "success": False,
            "error": message,
            "error_type": error_type,
        }

        if details:
            result["details"] = details

        return result

    @staticmethod
    def validation_error(message: str, field: str | None = None) -> dict[str, Any]:
        details = {"field": field} if field else None
        return MCPResponseBuilder.error(
            message=message,
            error_type="validation",
            details=details,
        )

    @staticmethod
    def file_error(message: str, file_path: str | None = None) -> dict[str, Any]:
        details = {"file_path": file_path} if file_path else None
        return MCPResponseBuilder.error(
            message=message,
            error_type="file",
            details=details,
        )

    @staticmethod
    def unauthorized() -> dict[str, Any]:
        """未授权响应对所有原因完全一致"""
        return MCPResponseBuilder.error(
            message=MessageFormatter.UNAUTHORIZED,
            error_type="unauthorized",
        )

    @staticmethod
    def processing_error(message: str, operation: str | None = None) -> dict[str, Any]:
        details = {"operation": operation} if operation else None
        return MCPResponseBuilder.error(
            message=message,
            error_type="processing",
            details=details,
        )


logger = get_logger()

_service: CompressionService | None = None


def get_service() -> CompressionService:
    """延迟创建全局服务实例"""
    global _service
    if _service is None:
        _service = CompressionService()
    return _service


@asynccontextmanager
async def lifespan(server: FastMCP) -> AsyncIterator[None]:
    """服务器运行期间执行后台清理"""
    reaper = get_service().reaper
    reaper.start()
    try:
        yield
    finally:
        await reaper.stop()


# 创建MCP应用
mcp: FastMCP[Any] = FastMCP("图像压缩服务", lifespan=lifespan)


# ============================================================================
# 工具实现（与 MCP 注册分离，便于直接调用）
# ============================================================================


def _load_inputs(input_paths: list[str], max_file_size: int) -> list[UploadedImage]:
    """读取本地文件作为上传项

    Raises:
        FileNotFoundError: 路径不存在或不是文件
        ValidationError: 文件过大
    """
    images = []
    for raw_path in input_paths:
        path = Path(raw_path)
        if not path.is_file():
            raise FileNotFoundError(raw_path)

        size = path.stat().st_size
        if size > max_file_size:
            raise ValidationError(
                MessageFormatter.file_too_large(path.name, size, max_file_size),
                file_name=path.name,
                status_code=413,
            )
        images.append(UploadedImage(name=path.name, data=path.read_bytes()))
    return images


def run_compress_images(
    service: CompressionService,
    input_paths: list[str],
    format: str | None = None,
    quality: int | str | None = None,
    profile_ref_path: str | None = None,
) -> MCPCompressionResponse:
    try:
        limits = service.config.limits
        if len(input_paths) > limits.MAX_FILES:
            return MCPResponseBuilder.validation_error(
                MessageFormatter.too_many_files(len(input_paths), limits.MAX_FILES),
                "input_paths",
            )

        images = _load_inputs(input_paths, limits.MAX_FILE_SIZE)
        profile_ref = None
        if profile_ref_path:
            profile_ref = _load_inputs([profile_ref_path], limits.MAX_FILE_SIZE)[0].data

        payload = service.compress_batch(images, format, quality, profile_ref)
        return {"success": True, **payload}

    except FileNotFoundError as e:
        logger.error(MessageFormatter.operation_failed("读取输入", str(e)))
        return MCPResponseBuilder.file_error(MessageFormatter.file_not_found(str(e)), str(e))
    except ValidationError as e:
        return MCPResponseBuilder.validation_error(e.message)
    except CompressionError as e:
        logger.error(MessageFormatter.operation_failed("批量压缩", "input_paths", e))
        return MCPResponseBuilder.processing_error(e.message, "批量压缩")
    except OSError as e:
        logger.error(MessageFormatter.operation_failed("批量压缩", "input_paths", e))
        return MCPResponseBuilder.processing_error(
            MessageFormatter.operation_failed("批量压缩", "input_paths", e), "批量压缩"
        )


def run_list_job_files(
    service: CompressionService, job_id: str, token: str
) -> MCPJobResponse:
    try:
        files = service.list_files(job_id, token)
    except AuthError:
        return MCPResponseBuilder.unauthorized()

    return {
        "success": True,
        "jobId": job_id,
        "count": len(files),
        "files": files,
        "zipUrl": service.zip_url(job_id, token) if files else None,
    }


def run_download_file(
    service: CompressionService,
    job_id: str,
    token: str,
    file_name: str,
    output_path: str,
) -> MCPJobResponse:
    target = Path(output_path)
    if target.is_dir():
        target = target / file_name

    try:
        written = service.export_file(job_id, token, file_name, target)
    except AuthError:
        return MCPResponseBuilder.unauthorized()
    except OSError as e:
        # 包括不属于该 job 的文件名（FileNotFoundError）
        logger.error(MessageFormatter.operation_failed("保存文件", target, e))
        return MCPResponseBuilder.file_error(
            MessageFormatter.operation_failed("保存文件", file_name, e), str(target)
        )

    return {
        "success": True,
        "jobId": job_id,
        "file": file_name,
        "output_path": str(target),
        "bytes": written,
    }


def run_export_archive(
    service: CompressionService, job_id: str, token: str, output_path: str
) -> MCPJobResponse:
    target = Path(output_path)
    if target.is_dir():
        target = target / f"compressed_{job_id}.zip"

    try:
        written = service.export_archive(job_id, token, target)
    except AuthError:
        return MCPResponseBuilder.unauthorized()
    except OSError as e:
        logger.error(MessageFormatter.operation_failed("导出归档", target, e))
        return MCPResponseBuilder.file_error(
            MessageFormatter.operation_failed("导出归档", target, e), str(target)
        )

    return {
        "success": True,
        "jobId": job_id,
        "output_path": str(target),
        "bytes": written,
    }


# ============================================================================
# MCP 工具
# ============================================================================


@mcp.tool()
def compress_images(
    input_paths: list[str],
    format: str | None = None,
    quality: int | None = None,
    profile_ref_path: str | None = None,
) -> MCPCompressionResponse:
    """批量压缩本地图片到临时工作区

    Args:
        input_paths: 输入图片路径（最多 20 个）
        format: 输出格式 jpg/jpeg/png/webp/avif，默认 webp
        quality: 压缩质量 1-100，默认 78，超出范围时自动修正
        profile_ref_path: 可选的参考图片，其 ICC 配置会嵌入所有输出

    Returns:
        dict: jobId、token、每个文件的结果与失败原因、过期时间
    """
    return run_compress_images(
        get_service(), input_paths, format, quality, profile_ref_path
    )


@mcp.tool()
def list_job_files(job_id: str, token: str) -> MCPJobResponse:
    """列出 job 中的输出文件

    Args:
        job_id: compress_images 返回的 jobId
        token: compress_images 返回的 token
    """
    return run_list_job_files(get_service(), job_id, token)


@mcp.tool()
def download_file(
    job_id: str, token: str, file_name: str, output_path: str
) -> MCPJobResponse:
    """将 job 中的单个输出文件保存到本地

    结果中的 url 字段指向 HTTP 服务的下载路由，MCP 模式下用本工具取回文件。

    Args:
        job_id: compress_images 返回的 jobId
        token: compress_images 返回的 token
        file_name: 结果中的 outputName
        output_path: 目标文件路径；为目录时使用 file_name 作为文件名
    """
    return run_download_file(get_service(), job_id, token, file_name, output_path)


@mcp.tool()
def export_archive(job_id: str, token: str, output_path: str) -> MCPJobResponse:
    """将 job 的全部输出打包为 ZIP 并保存到本地

    Args:
        job_id: compress_images 返回的 jobId
        token: compress_images 返回的 token
        output_path: 目标文件路径；为目录时使用默认文件名
    """
    return run_export_archive(get_service(), job_id, token, output_path)


# ============================================================================
# 应用入口
# ============================================================================


def main() -> None:
    """启动 MCP 服务器"""
    logger.info("启动图片压缩 MCP 服务器")
    mcp.run()
