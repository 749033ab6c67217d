"""工作区存储测试。"""

from concurrent.futures import ThreadPoolExecutor

import pytest

from py_image_compress_service.exceptions import AuthError, ProcessingError
from py_image_compress_service.utils.file_helpers import write_bytes_atomic
from py_image_compress_service.utils.naming_helpers import FileNamingStrategy


def _add_file(store, job, name: str, data: bytes = b"data") -> None:
    write_bytes_atomic(store.workspace_path(job.id) / name, data)
    store.register_file(job.id, name)


class TestLifecycle:
    """job 生命周期测试"""

    def test_create(self, store, clock):
        job = store.create()

        assert store.workspace_path(job.id).is_dir()
        assert job.id in store
        assert len(job.id) == 32
        assert job.token.get_secret_value()
        assert job.created_at == clock()
        assert job.expires_at == clock() + 3600
        assert job.files == set()

    def test_ids_and_tokens_unique(self, store):
        jobs = [store.create() for _ in range(5)]

        assert len({job.id for job in jobs}) == 5
        assert len({job.token.get_secret_value() for job in jobs}) == 5

    def test_token_not_in_repr(self, store):
        job = store.create()
        assert job.token.get_secret_value() not in repr(job)

    def test_delete_idempotent(self, store):
        job = store.create()
        _add_file(store, job, "a.webp")

        store.delete(job.id)
        store.delete(job.id)
        store.delete("does-not-exist")

        assert job.id not in store
        assert not store.workspace_path(job.id).exists()


class TestAuthorize:
    """授权测试"""

    def test_valid_token(self, store):
        job = store.create()
        assert store.authorize(job.id, job.token.get_secret_value()) is job

    def test_wrong_token_and_unknown_job_look_the_same(self, store):
        job = store.create()

        with pytest.raises(AuthError) as wrong_token:
            store.authorize(job.id, "not-the-token")
        with pytest.raises(AuthError) as unknown_job:
            store.authorize("0" * 32, job.token.get_secret_value())

        assert wrong_token.value.reason == "invalid_token"
        assert unknown_job.value.reason == "not_found"
        assert str(wrong_token.value) == str(unknown_job.value)

    @pytest.mark.parametrize("token", [None, ""])
    def test_missing_token(self, store, token):
        job = store.create()
        with pytest.raises(AuthError):
            store.authorize(job.id, token)

    def test_expired_job_evicted_on_lookup(self, store, clock):
        job = store.create()
        token = job.token.get_secret_value()

        clock.advance(3599)
        assert store.authorize(job.id, token) is job

        clock.advance(1)
        with pytest.raises(AuthError) as exc_info:
            store.authorize(job.id, token)

        assert exc_info.value.reason == "not_found"
        assert job.id not in store
        # 目录由清理任务删除，但 ID 仍被记录为待删除
        assert job.id in store.known_ids()

    def test_deleted_job_unauthorized(self, store):
        job = store.create()
        store.delete(job.id)

        with pytest.raises(AuthError):
            store.authorize(job.id, job.token.get_secret_value())


class TestFiles:
    """文件登记测试"""

    def test_file_path_only_for_owned_names(self, store):
        job = store.create()
        other = store.create()
        _add_file(store, job, "a.webp")
        _add_file(store, other, "b.webp")

        assert store.file_path(job, "a.webp") == store.workspace_path(job.id) / "a.webp"
        with pytest.raises(FileNotFoundError):
            store.file_path(job, "b.webp")
        with pytest.raises(FileNotFoundError):
            store.file_path(job, "../" + other.id + "/b.webp")

    def test_register_rejects_path_names(self, store):
        job = store.create()
        with pytest.raises(ValueError):
            store.register_file(job.id, "../escape.webp")

    def test_register_on_deleted_job(self, store):
        job = store.create()
        store.delete(job.id)

        with pytest.raises(ProcessingError):
            store.register_file(job.id, "a.webp")

    def test_reserved_names_are_unique(self, store):
        job = store.create()

        def choose(taken):
            return FileNamingStrategy.generate_output_name("photo.png", "webp", taken)

        first = store.reserve_name(job.id, choose)
        second = store.reserve_name(job.id, choose)
        store.register_file(job.id, first)
        third = store.reserve_name(job.id, choose)

        assert [first, second, third] == ["photo.webp", "photo-1.webp", "photo-2.webp"]

    def test_released_name_can_be_reused(self, store):
        job = store.create()

        def choose(taken):
            return FileNamingStrategy.generate_output_name("photo.png", "webp", taken)

        name = store.reserve_name(job.id, choose)
        store.release_name(job.id, name)

        assert store.reserve_name(job.id, choose) == name


class TestLeases:
    """读取租约测试"""

    def test_delete_deferred_while_leased(self, store):
        job = store.create()
        _add_file(store, job, "a.webp")
        workspace = store.workspace_path(job.id)

        with store.lease(job):
            store.delete(job.id)
            assert job.id not in store
            assert workspace.exists()
            assert (workspace / "a.webp").read_bytes() == b"data"

        assert not workspace.exists()
        assert job.id not in store.known_ids()

    def test_nested_leases(self, store):
        job = store.create()
        workspace = store.workspace_path(job.id)

        with store.lease(job):
            with store.lease(job):
                store.delete(job.id)
            assert workspace.exists()
        assert not workspace.exists()

    def test_lease_after_delete_unauthorized(self, store):
        job = store.create()
        store.delete(job.id)

        with pytest.raises(AuthError):
            with store.lease(job):
                pass

    def test_lease_released_on_error(self, store):
        job = store.create()

        with pytest.raises(RuntimeError):
            with store.lease(job):
                raise RuntimeError("boom")

        assert job.leases == 0


class TestConcurrency:
    """多线程并发访问注册表"""

    def test_create_authorize_evict_in_parallel(self, store, clock):
        def create_and_check(_):
            job = store.create()
            token = job.token.get_secret_value()
            for _ in range(20):
                assert store.authorize(job.id, token) is job
                assert store.evict_expired() == []
            return job

        with ThreadPoolExecutor(max_workers=8) as pool:
            jobs = list(pool.map(create_and_check, range(32)))

        assert len({job.id for job in jobs}) == 32
        assert len(store) == 32

        clock.advance(3601)

        def authorize_expired(job):
            with pytest.raises(AuthError):
                store.authorize(job.id, job.token.get_secret_value())

        with ThreadPoolExecutor(max_workers=8) as pool:
            sweeps = [pool.submit(store.evict_expired) for _ in range(8)]
            list(pool.map(authorize_expired, jobs))
            evicted = [job_id for future in sweeps for job_id in future.result()]

        # 每个 job 只被移出一次，无论是由清理还是由查询移出
        assert len(evicted) == len(set(evicted))
        assert len(store) == 0
        assert store.known_ids() == {job.id for job in jobs}

        purged = store.take_purgeable()
        assert {job.id for job in purged} == {job.id for job in jobs}
        assert store.known_ids() == set()
