"""模型、异常映射与工具函数测试。"""

import pytest
from PIL import UnidentifiedImageError
from pydantic import SecretStr
from pydantic import ValidationError as PydanticValidationError

from py_image_compress_service.exceptions import (
    ErrorHandler,
    ProcessingError,
    UnsupportedFormatError,
    handle_image_errors,
)
from py_image_compress_service.models.compression_result import (
    BatchItemFailure,
    BatchItemSuccess,
    BatchResult,
)
from py_image_compress_service.models.constants import FailureCategory, ImageFormats
from py_image_compress_service.models.job import Job
from py_image_compress_service.utils.naming_helpers import (
    FileNamingStrategy,
    is_safe_member_name,
)


def _success(original: int, output: int, name: str = "a.webp") -> BatchItemSuccess:
    return BatchItemSuccess(
        original_name="a.png",
        output_name=name,
        original_bytes=original,
        output_bytes=output,
        format_used="webp",
    )


class TestResults:
    """结果模型测试"""

    def test_saved_bytes(self):
        item = _success(2048, 1024)

        assert item.saved_bytes == 1024
        assert item.get_compression_ratio() == 50.0
        assert item.get_saved_human() == "1.0 KiB"
        assert "50.0%" in item.get_summary()

    def test_output_never_larger(self):
        with pytest.raises(PydanticValidationError):
            _success(100, 101)

    def test_batch_summary(self):
        failure = BatchItemFailure(
            original_name="x.png",
            category=FailureCategory.UNSUPPORTED,
            friendly="f",
            technical="t",
        )
        result = BatchResult(
            job_id="j", successes=[_success(300, 100), _success(200, 200)], failures=[failure]
        )

        assert result.get_total_count() == 3
        assert result.get_success_count() == 2
        assert result.get_total_size_saved() == 200
        assert "2/3" in result.get_summary()


class TestJob:
    """Job 模型测试"""

    def test_token_matches(self):
        job = Job(id="a", token=SecretStr("secret"), created_at=0, expires_at=10)

        assert job.token_matches("secret")
        assert not job.token_matches("secreT")
        assert not job.token_matches(None)
        assert not job.token_matches("")

    def test_expiry_boundary(self):
        job = Job(id="a", token=SecretStr("s"), created_at=0, expires_at=10)

        assert not job.is_expired(9.999)
        assert job.is_expired(10)

    def test_internal_fields_not_serialized(self):
        job = Job(id="a", token=SecretStr("s"), created_at=0, expires_at=10)
        dumped = job.model_dump()

        assert "leases" not in dumped
        assert "reserved" not in dumped


class TestErrorMapping:
    """异常映射测试"""

    @pytest.mark.parametrize(
        ("error", "category"),
        [
            (UnsupportedFormatError("bad"), FailureCategory.UNSUPPORTED),
            (ProcessingError("enc", category=FailureCategory.FORMAT), FailureCategory.FORMAT),
            (ProcessingError("enc"), FailureCategory.INTERNAL),
            (PermissionError("denied"), FailureCategory.INTERNAL),
            (OSError("disk full"), FailureCategory.INTERNAL),
            (RuntimeError("boom"), FailureCategory.INTERNAL),
        ],
    )
    def test_to_failure(self, error, category):
        failure = ErrorHandler.to_failure(error, "x.png")

        assert failure.original_name == "x.png"
        assert failure.category == category
        assert failure.friendly

    def test_decorator_maps_pillow_errors(self):
        @handle_image_errors("测试")
        def unidentified():
            raise UnidentifiedImageError("nope")

        @handle_image_errors("测试")
        def broken():
            raise ValueError("bad value")

        with pytest.raises(UnsupportedFormatError):
            unidentified()
        with pytest.raises(ProcessingError):
            broken()


class TestNaming:
    """文件命名测试"""

    @pytest.mark.parametrize(
        ("original", "stem"),
        [
            ("photo.png", "photo"),
            ("archive.tar.gz", "archive.tar"),
            ("../../secret.png", "secret"),
            ("..\\..\\win.jpg", "win"),
            ("we<ird>:na|me?.png", "we_ird_na_me_"),
            (".hidden", "hidden"),
            ("", "image"),
            (None, "image"),
        ],
    )
    def test_sanitize_stem(self, original, stem):
        assert FileNamingStrategy.sanitize_stem(original) == stem

    def test_generate_output_name(self):
        taken = {"a.webp", "a-1.webp"}
        assert FileNamingStrategy.generate_output_name("a.png", "webp", taken) == "a-2.webp"

    @pytest.mark.parametrize(
        ("name", "safe"),
        [("a.webp", True), ("", False), ("..", False), ("a/b", False), ("a\\b", False)],
    )
    def test_is_safe_member_name(self, name, safe):
        assert is_safe_member_name(name) is safe

    def test_mime_types(self):
        assert ImageFormats.get_mime_type("x.jpg") == "image/jpeg"
        assert ImageFormats.get_mime_type("x.avif") == "image/avif"
        assert ImageFormats.get_mime_type("x.bin") == "application/octet-stream"
