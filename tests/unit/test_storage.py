"""
Unit tests for the blob storage backends.
"""

import pytest

from geoquiz.config import Settings
from geoquiz.delivery.storage import (
    JsonFileStorage,
    MemoryStorage,
    SqliteBlobStorage,
    create_storage,
)


@pytest.fixture(params=["memory", "json", "sqlite"])
def storage(request, tmp_path):
    if request.param == "memory":
        yield MemoryStorage()
    elif request.param == "json":
        yield JsonFileStorage(tmp_path / "state")
    else:
        backend = SqliteBlobStorage(tmp_path / "state.db")
        yield backend
        backend.close()


class TestBlobContract:
    """Get/set/delete behave the same on every backend."""

    def test_missing_key(self, storage):
        assert storage.get_blob("nope") is None

    def test_set_and_get(self, storage):
        storage.set_blob("k", '{"a": 1}')
        assert storage.get_blob("k") == '{"a": 1}'

    def test_overwrite(self, storage):
        storage.set_blob("k", "one")
        storage.set_blob("k", "two")
        assert storage.get_blob("k") == "two"

    def test_delete(self, storage):
        storage.set_blob("k", "one")
        storage.delete_blob("k")
        storage.delete_blob("k")
        assert storage.get_blob("k") is None

    def test_unicode(self, storage):
        storage.set_blob("k", "Súdwest-Fryslân")
        assert storage.get_blob("k") == "Súdwest-Fryslân"


class TestJsonFileStorage:
    """Tests for the file backend."""

    def test_one_file_per_key(self, tmp_path):
        storage = JsonFileStorage(tmp_path)
        storage.set_blob("nl_quiz_progress", "{}")

        assert (tmp_path / "nl_quiz_progress.json").read_text(encoding="utf-8") == "{}"

    def test_no_temp_files_left(self, tmp_path):
        storage = JsonFileStorage(tmp_path)
        storage.set_blob("k", "x")
        storage.set_blob("k", "y")

        assert [p.name for p in tmp_path.iterdir()] == ["k.json"]


class TestSqliteBlobStorage:
    """Tests for the SQLite backend."""

    def test_survives_reopen(self, tmp_path):
        first = SqliteBlobStorage(tmp_path / "state.db")
        first.set_blob("k", "v")
        first.close()

        second = SqliteBlobStorage(tmp_path / "state.db")
        assert second.get_blob("k") == "v"
        second.close()


class TestFactory:
    """Tests for create_storage."""

    @pytest.mark.parametrize(
        "backend, expected",
        [("memory", MemoryStorage), ("json", JsonFileStorage), ("sqlite", SqliteBlobStorage)],
    )
    def test_backend_selection(self, tmp_path, backend, expected):
        settings = Settings(storage_backend=backend, state_dir=tmp_path)
        storage = create_storage(settings)

        assert isinstance(storage, expected)
        if isinstance(storage, SqliteBlobStorage):
            storage.close()
