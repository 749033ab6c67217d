"""MCP 服务器测试。"""

import zipfile

import pytest

from py_image_compress_service.mcp_server import (
    MCPResponseBuilder,
    run_compress_images,
    run_download_file,
    run_export_archive,
    run_list_job_files,
)


@pytest.fixture
def input_files(tmp_path, image_bytes) -> list[str]:
    inputs = tmp_path / "inputs"
    inputs.mkdir()
    (inputs / "cat.png").write_bytes(image_bytes("PNG"))
    (inputs / "dog.jpg").write_bytes(image_bytes("JPEG", quality=100))
    return [str(inputs / "cat.png"), str(inputs / "dog.jpg")]


@pytest.fixture
def compressed(service, input_files) -> dict:
    response = run_compress_images(service, input_files, format="jpeg", quality=60)
    assert response["success"]
    return response


class TestMCPTools:
    """MCP 工具测试"""

    def test_mcp_server_imports(self):
        from py_image_compress_service.mcp_server import mcp

        assert mcp is not None

    def test_mcp_core_tools(self):
        from py_image_compress_service.mcp_server import (
            compress_images,
            download_file,
            export_archive,
            list_job_files,
        )

        assert compress_images.name == "compress_images"
        assert list_job_files.name == "list_job_files"
        assert export_archive.name == "export_archive"
        assert download_file.name == "download_file"

    def test_compress_images(self, compressed):
        assert compressed["count"] == 2
        assert [r["outputName"] for r in compressed["results"]] == ["cat.jpg", "dog.jpg"]
        assert compressed["errors"] == []

    def test_missing_input(self, service, tmp_path):
        response = run_compress_images(service, [str(tmp_path / "nope.png")])

        assert response["success"] is False
        assert response["error_type"] == "file"
        assert len(service.store) == 0

    def test_invalid_format(self, service, input_files):
        response = run_compress_images(service, input_files, format="bmp")

        assert response["error_type"] == "validation"

    def test_list_job_files(self, service, compressed):
        response = run_list_job_files(service, compressed["jobId"], compressed["token"])

        assert response["success"]
        assert [f["name"] for f in response["files"]] == ["cat.jpg", "dog.jpg"]
        assert response["zipUrl"] == compressed["zipUrl"]

    def test_unauthorized_is_uniform(self, service, compressed):
        wrong_token = run_list_job_files(service, compressed["jobId"], "wrong")
        unknown_job = run_list_job_files(service, "0" * 32, compressed["token"])

        assert wrong_token == unknown_job == MCPResponseBuilder.unauthorized()

    def test_export_archive(self, service, compressed, tmp_path):
        target = tmp_path / "export.zip"
        response = run_export_archive(
            service, compressed["jobId"], compressed["token"], str(target)
        )

        assert response["success"]
        assert response["bytes"] == target.stat().st_size
        with zipfile.ZipFile(target) as zf:
            assert sorted(zf.namelist()) == ["cat.jpg", "dog.jpg"]

    def test_export_archive_into_directory(self, service, compressed, tmp_path):
        response = run_export_archive(
            service, compressed["jobId"], compressed["token"], str(tmp_path)
        )

        assert response["output_path"].endswith(f"compressed_{compressed['jobId']}.zip")

    def test_export_archive_unauthorized(self, service, compressed, tmp_path):
        target = tmp_path / "export.zip"
        response = run_export_archive(service, compressed["jobId"], "nope", str(target))

        assert response == MCPResponseBuilder.unauthorized()
        assert not target.exists()

    def test_download_file(self, service, compressed, tmp_path):
        result = compressed["results"][0]
        target = tmp_path / "saved.jpg"

        response = run_download_file(
            service,
            compressed["jobId"],
            compressed["token"],
            result["outputName"],
            str(target),
        )

        on_disk = service.store.workspace_path(compressed["jobId"]) / result["outputName"]
        assert response["success"]
        assert response["bytes"] == result["outputBytes"]
        assert target.read_bytes() == on_disk.read_bytes()

    def test_download_file_into_directory(self, service, compressed, tmp_path):
        out_dir = tmp_path / "downloads"
        out_dir.mkdir()

        response = run_download_file(
            service, compressed["jobId"], compressed["token"], "cat.jpg", str(out_dir)
        )

        assert response["output_path"] == str(out_dir / "cat.jpg")
        assert [p.name for p in out_dir.iterdir()] == ["cat.jpg"]

    def test_download_file_not_in_job(self, service, compressed, tmp_path):
        target = tmp_path / "x.jpg"
        response = run_download_file(
            service,
            compressed["jobId"],
            compressed["token"],
            "../secret.jpg",
            str(target),
        )

        assert response["success"] is False
        assert response["error_type"] == "file"
        assert not target.exists()

    def test_download_file_unauthorized(self, service, compressed, tmp_path):
        response = run_download_file(
            service, compressed["jobId"], "wrong", "cat.jpg", str(tmp_path / "x.jpg")
        )

        assert response == MCPResponseBuilder.unauthorized()
        job = service.store.authorize(compressed["jobId"], compressed["token"])
        assert job.leases == 0
