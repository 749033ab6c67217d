"""HTTP 接口模块。

上传、单文件下载与 ZIP 下载。下载地址中的令牌是唯一的访问凭证，
未授权的请求（未知 job、已过期或令牌错误）统一返回同一个 403 响应。
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Any
from urllib.parse import quote

import anyio
from fastapi import FastAPI, File, Form, Query, Request, UploadFile
from fastapi.responses import JSONResponse, PlainTextResponse, StreamingResponse
from starlette.concurrency import run_in_threadpool
from starlette.types import Receive, Scope, Send

from .. import __version__
from ..exceptions import AuthError, ValidationError
from ..models.compression_config import UploadedImage
from ..service import CompressionService, StreamHandle
from ..utils.logging_helpers import get_logger
from ..utils.message_formatter import MessageFormatter


logger = get_logger()


def _content_disposition(file_name: str) -> str:
    ascii_name = file_name.encode("ascii", "replace").decode("ascii").replace('"', "_")
    return f"attachment; filename=\"{ascii_name}\"; filename*=UTF-8''{quote(file_name)}"


class LeasedStreamingResponse(StreamingResponse):
    """流式响应结束、出错或客户端断开时都会释放租约"""

    def __init__(self, handle: StreamHandle, **kwargs: Any):
        super().__init__(handle.stream, media_type=handle.media_type, **kwargs)
        self.handle = handle

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        try:
            await super().__call__(scope, receive, send)
        finally:
            # 最后一个租约释放时可能删除目录，放到线程池执行；请求被取消时也要执行完
            with anyio.CancelScope(shield=True):
                await run_in_threadpool(self.handle.close)


def _stream_response(handle: StreamHandle) -> LeasedStreamingResponse:
    headers = {"Content-Disposition": _content_disposition(handle.file_name)}
    if handle.size is not None:
        headers["Content-Length"] = str(handle.size)
    return LeasedStreamingResponse(handle, headers=headers)


def _read_upload(upload: UploadFile, limit: int) -> UploadedImage:
    """读取上传文件，最多多读一个字节用于判断是否超限"""
    data = upload.file.read(limit + 1)
    return UploadedImage(
        name=upload.filename or "",
        data=data,
        content_type=upload.content_type,
    )


def create_app(service: CompressionService | None = None) -> FastAPI:
    """创建 FastAPI 应用

    Args:
        service: 压缩服务实例，默认按全局配置创建
    """
    service = service or CompressionService()
    limits = service.config.limits

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # 清理上次进程遗留的目录
        await asyncio.to_thread(service.reaper.sweep)
        service.reaper.start()
        try:
            yield
        finally:
            await service.reaper.stop()

    app = FastAPI(
        title="Image Compression Service",
        description="批量压缩图片，通过带令牌的临时链接下载结果。",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.service = service

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError):
        logger.info(f"拒绝请求 {request.url.path}: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(AuthError)
    async def auth_error_handler(request: Request, exc: AuthError):
        # reason 只写日志，响应对所有原因完全一致
        logger.info(f"未授权访问 {request.url.path} ({exc.reason})")
        return PlainTextResponse(MessageFormatter.UNAUTHORIZED, status_code=403)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error(f"未处理的异常 {request.url.path}: {exc}", exc_info=exc)
        return JSONResponse(
            status_code=500, content={"error": MessageFormatter.INTERNAL_ERROR}
        )

    @app.post("/api/compress")
    def compress(
        images: list[UploadFile] | None = File(None),
        format: str | None = Form(None),
        quality: str | None = Form(None),
        profileRef: UploadFile | None = File(None),
    ):
        """上传并压缩一批图片"""
        images = images or []
        if len(images) > limits.MAX_FILES:
            raise ValidationError(
                MessageFormatter.too_many_files(len(images), limits.MAX_FILES),
                status_code=413,
            )

        uploads = [_read_upload(upload, limits.MAX_FILE_SIZE) for upload in images]
        profile_ref = None
        if profileRef is not None:
            profile_ref = profileRef.file.read(limits.MAX_FILE_SIZE + 1)
            if len(profile_ref) > limits.MAX_FILE_SIZE:
                raise ValidationError(
                    MessageFormatter.file_too_large(
                        profileRef.filename or "profileRef",
                        len(profile_ref),
                        limits.MAX_FILE_SIZE,
                    ),
                    status_code=413,
                )

        return service.compress_batch(uploads, format, quality, profile_ref)

    @app.get("/download/{job_id}/{file_name}")
    def download(job_id: str, file_name: str, t: str | None = Query(None)):
        """下载单个输出文件"""
        try:
            handle = service.open_download(job_id, t, file_name)
        except FileNotFoundError:
            return PlainTextResponse(MessageFormatter.FILE_NOT_IN_JOB, status_code=404)
        return _stream_response(handle)

    @app.get("/zip/{job_id}")
    def download_zip(job_id: str, t: str | None = Query(None)):
        """以 ZIP 形式下载 job 的全部输出"""
        return _stream_response(service.open_archive(job_id, t))

    @app.get("/health")
    async def health():
        return {"status": "ok", "version": __version__}

    return app
