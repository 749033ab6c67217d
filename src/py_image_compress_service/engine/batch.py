"""批量处理器模块。

一次上传批次对应一个 job：校验请求、创建工作区、逐个压缩并登记输出文件。
单个文件的失败不会影响同批次的其他文件。
"""

from pydantic import ValidationError as PydanticValidationError

from ..core.codec import ImageCodec
from ..core.inspection import extract_icc_profile
from ..exceptions import ErrorHandler, UnsupportedFormatError, ValidationError
from ..models.compression_config import CompressionOptions, UploadedImage
from ..models.compression_result import (
    BatchItemFailure,
    BatchItemSuccess,
    BatchResult,
)
from ..models.constants import ImageFormats, ValidationLimits
from ..models.job import Job
from ..storage.workspace import WorkspaceStore
from ..utils.file_helpers import write_bytes_atomic
from ..utils.logging_helpers import get_logger
from ..utils.message_formatter import MessageFormatter
from ..utils.naming_helpers import FileNamingStrategy
from .concurrent_executor import ConcurrentExecutor


logger = get_logger()


class BatchProcessor:
    """批量图像处理器"""

    def __init__(
        self,
        store: WorkspaceStore,
        codec: ImageCodec | None = None,
        max_files: int = ValidationLimits.MAX_BATCH_FILES,
        max_file_size: int = ValidationLimits.MAX_FILE_SIZE,
        max_dimension: int = ValidationLimits.MAX_DIMENSION,
        default_format: str = "webp",
        max_workers: int = 4,
    ):
        """初始化批量处理器

        Args:
            store: 工作区存储
            codec: 编码器，默认使用 Pillow 实现
            max_files: 每个请求的最大文件数
            max_file_size: 单个文件的最大字节数
            max_dimension: 编码前的最大像素尺寸
            default_format: 未指定格式时的输出格式
            max_workers: 最大并发数
        """
        self.store = store
        self.codec = codec or ImageCodec()
        self.max_files = max_files
        self.max_file_size = max_file_size
        self.max_dimension = max_dimension
        self.default_format = default_format
        self.concurrent_executor = ConcurrentExecutor(max_workers)

    # ==================== 请求校验 ====================

    def build_options(
        self,
        format: str | None = None,
        quality: object = None,
        profile_ref: bytes | None = None,
    ) -> CompressionOptions:
        """由请求参数构建压缩选项

        格式无效时拒绝整个请求；质量无效时使用默认值；
        参考图片无法解析或不含 ICC 配置时忽略。

        Raises:
            ValidationError: 输出格式不在白名单内
        """
        target_format = format if format and format.strip() else self.default_format

        try:
            options = CompressionOptions(
                target_format=target_format,
                quality=quality,
                max_dimension=self.max_dimension,
            )
        except PydanticValidationError as e:
            raise ValidationError(
                MessageFormatter.invalid_format(
                    target_format, list(ImageFormats.OUTPUT_FORMATS)
                )
            ) from e

        if profile_ref:
            icc_profile = self._load_icc_profile(profile_ref)
            if icc_profile:
                options = options.model_copy(update={"icc_profile": icc_profile})

        return options

    @staticmethod
    def _load_icc_profile(profile_ref: bytes) -> bytes | None:
        try:
            icc_profile = extract_icc_profile(profile_ref)
        except UnsupportedFormatError as e:
            logger.warning(f"ICC 参考图片无法解析，已忽略: {e.message}")
            return None

        if icc_profile is None:
            logger.warning("ICC 参考图片不包含 ICC 配置，已忽略")
        return icc_profile

    def validate_request(self, images: list[UploadedImage]) -> None:
        """在任何文件 I/O 之前校验请求的形状

        Raises:
            ValidationError: 空批次 (400)、文件过多或过大 (413)
        """
        if not images:
            raise ValidationError(MessageFormatter.NO_FILES)

        if len(images) > self.max_files:
            raise ValidationError(
                MessageFormatter.too_many_files(len(images), self.max_files),
                status_code=413,
            )

        for image in images:
            if image.size > self.max_file_size:
                raise ValidationError(
                    MessageFormatter.file_too_large(
                        image.name, image.size, self.max_file_size
                    ),
                    file_name=image.name,
                    status_code=413,
                )

    # ==================== 批量处理 ====================

    def process(
        self, images: list[UploadedImage], options: CompressionOptions
    ) -> tuple[Job, BatchResult]:
        """处理一个批次

        N 个输入总是得到 N 个结果（成功或失败）。
        没有任何成功结果时，工作区立即删除。

        Returns:
            tuple: (job, 批量结果)
        """
        self.validate_request(images)
        job = self.store.create()

        items = self.concurrent_executor.execute_tasks(
            tasks=images,
            task_function=lambda image: self._process_one(job.id, image, options),
            on_error=lambda image, e: ErrorHandler.to_failure(e, image.name),
        )

        result = BatchResult(
            job_id=job.id,
            successes=[r for r in items if isinstance(r, BatchItemSuccess)],
            failures=[r for r in items if isinstance(r, BatchItemFailure)],
        )

        if not result.successes:
            logger.info(f"job {job.id} 没有任何成功结果，删除工作区")
            self.store.delete(job.id)

        logger.info(f"job {job.id}: {result.get_summary()}")
        return job, result

    def _process_one(
        self, job_id: str, image: UploadedImage, options: CompressionOptions
    ) -> BatchItemSuccess:
        """压缩单个文件，写入工作区后再登记"""
        output = self.codec.compress(image.data, options)

        output_name = self.store.reserve_name(
            job_id,
            lambda taken: FileNamingStrategy.generate_output_name(
                image.name, output.extension, taken
            ),
        )
        try:
            write_bytes_atomic(self.store.workspace_path(job_id) / output_name, output.data)
            self.store.register_file(job_id, output_name)
        except BaseException:
            self.store.release_name(job_id, output_name)
            raise

        success = BatchItemSuccess(
            original_name=image.name,
            output_name=output_name,
            original_bytes=output.input_size,
            output_bytes=output.output_size,
            format_used=output.extension,
            was_resized=output.was_resized,
        )
        logger.debug(f"{image.name} → {output_name}: {success.get_summary()}")
        return success
