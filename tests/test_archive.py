"""归档构建测试。"""

import zipfile
from io import BytesIO

import pytest

from py_image_compress_service.exceptions import AuthError
from py_image_compress_service.storage.archive import ArchiveBuilder
from py_image_compress_service.utils.file_helpers import write_bytes_atomic


@pytest.fixture
def builder(store) -> ArchiveBuilder:
    # 小块大小，确保归档分多次输出
    return ArchiveBuilder(store, chunk_size=1024)


@pytest.fixture
def files() -> dict[str, bytes]:
    return {
        "a.webp": b"A" * 5000,
        "b.jpg": bytes(range(256)) * 40,
        "c.png": b"",
    }


@pytest.fixture
def job(store, files):
    job = store.create()
    for name, data in files.items():
        write_bytes_atomic(store.workspace_path(job.id) / name, data)
        store.register_file(job.id, name)
    return job


def _read_zip(data: bytes) -> dict[str, bytes]:
    with zipfile.ZipFile(BytesIO(data)) as zf:
        assert zf.testzip() is None
        return {info.filename: zf.read(info) for info in zf.infolist()}


class TestArchiveBuilder:
    """ZIP 归档测试"""

    def test_archive_contains_all_files(self, builder, job, files):
        chunks = list(builder.open(job))

        assert len(chunks) > 1
        assert _read_zip(b"".join(chunks)) == files

    def test_entries_are_deflated_without_directories(self, builder, job):
        data = b"".join(builder.open(job))

        with zipfile.ZipFile(BytesIO(data)) as zf:
            for info in zf.infolist():
                assert "/" not in info.filename
                assert info.compress_type == zipfile.ZIP_DEFLATED

    def test_missing_file_skipped(self, store, builder, job, files):
        store.register_file(job.id, "ghost.webp")

        entries = _read_zip(b"".join(builder.open(job)))

        assert "ghost.webp" not in entries
        assert set(entries) == set(files)

    def test_empty_job(self, store, builder):
        empty = store.create()
        assert _read_zip(b"".join(builder.open(empty))) == {}

    def test_lease_held_while_streaming(self, store, builder, job):
        stream = builder.open(job)
        assert job.leases == 1

        iterator = iter(stream)
        next(iterator)
        store.delete(job.id)
        assert store.workspace_path(job.id).exists()

        rest = b"".join(iterator)
        assert rest
        assert job.leases == 0
        assert not store.workspace_path(job.id).exists()

    def test_close_releases_lease(self, store, builder, job):
        stream = builder.open(job)
        next(iter(stream))

        stream.close()
        stream.close()

        assert job.leases == 0
        store.delete(job.id)
        assert not store.workspace_path(job.id).exists()

    def test_files_registered_after_start_not_included(self, store, builder, job, files):
        """文件列表在开始输出时快照，之后登记的文件不会进入归档"""
        stream = builder.open(job)
        iterator = iter(stream)
        first = next(iterator)

        write_bytes_atomic(store.workspace_path(job.id) / "late.webp", b"late")
        store.register_file(job.id, "late.webp")

        entries = _read_zip(first + b"".join(iterator))

        assert "late.webp" not in entries
        assert set(entries) == set(files)
        assert "late.webp" in _read_zip(b"".join(builder.open(job)))

    def test_open_after_delete(self, store, builder, job):
        store.delete(job.id)
        with pytest.raises(AuthError):
            builder.open(job)

    def test_write_to(self, builder, job, files, tmp_path):
        target = tmp_path / "out" / "archive.zip"
        target.parent.mkdir()

        written = builder.write_to(job, target)

        assert written == target.stat().st_size
        assert _read_zip(target.read_bytes()) == files
        assert [p.name for p in target.parent.iterdir()] == ["archive.zip"]
        assert job.leases == 0

    def test_write_to_failure_leaves_nothing(self, builder, job, tmp_path):
        target = tmp_path / "missing_dir" / "archive.zip"

        with pytest.raises(OSError):
            builder.write_to(job, target)

        assert not target.parent.exists()
        assert job.leases == 0
