"""
Unit tests for progress export files and import sources.

Remote sources are served through httpx.MockTransport.
"""

import json

import httpx
import pytest

from geoquiz.delivery import transfer
from geoquiz.delivery.transfer import (
    export_filename,
    import_from_source,
    is_url,
    read_import_source,
    write_export_file,
)
from geoquiz.exceptions import ImportSourceError


def record(level=1):
    return {"level": level, "streak": 0, "totalCorrect": 1, "totalWrong": 0, "lastSeen": 5}


@pytest.fixture
def mock_http(monkeypatch):
    """Route httpx.AsyncClient through a handler keyed by URL path."""
    responses = {}

    def handler(request: httpx.Request) -> httpx.Response:
        status, body = responses.get(request.url.path, (404, ""))
        return httpx.Response(status, text=body)

    real_client = httpx.AsyncClient

    def client_factory(*args, **kwargs):
        kwargs["transport"] = httpx.MockTransport(handler)
        return real_client(*args, **kwargs)

    monkeypatch.setattr(transfer.httpx, "AsyncClient", client_factory)
    return responses


class TestExportFiles:
    """Tests for export file naming and writing."""

    def test_filename_uses_utc_date(self):
        assert export_filename(1_700_000_000_000) == "progress-2023-11-14.json"

    def test_filename_with_time(self):
        assert export_filename(1_700_000_000_000, prefix="progress-backup", with_time=True) == (
            "progress-backup-2023-11-14T221320.json"
        )

    def test_write_round_trips_through_import(self, store, tmp_path):
        store.update_progress(["GM0363"], [])
        path = write_export_file(store.export_progress_data(), tmp_path / "exports")

        assert path.name == "progress-2023-11-14.json"
        payload = json.loads(path.read_text(encoding="utf-8"))
        assert payload["version"] == 1
        assert payload["progress"]["GM0363"]["level"] == 1

    def test_is_url(self):
        assert is_url("https://example.org/p.json")
        assert not is_url("exports/p.json")


class TestReadImportSource:
    """Tests for read_import_source."""

    @pytest.mark.asyncio
    async def test_reads_local_file(self, tmp_path):
        path = tmp_path / "p.json"
        path.write_text(json.dumps({"x": record()}), encoding="utf-8")

        assert await read_import_source(path) == {"x": record()}

    @pytest.mark.asyncio
    async def test_missing_file(self, tmp_path):
        with pytest.raises(ImportSourceError):
            await read_import_source(tmp_path / "missing.json")

    @pytest.mark.asyncio
    async def test_invalid_json(self, tmp_path):
        path = tmp_path / "p.json"
        path.write_text("{nope", encoding="utf-8")

        with pytest.raises(ImportSourceError, match="not valid JSON"):
            await read_import_source(path)

    @pytest.mark.asyncio
    async def test_reads_url(self, mock_http):
        mock_http["/progress.json"] = (200, json.dumps({"progress": {"x": record()}}))

        data = await read_import_source("https://example.org/progress.json")

        assert data["progress"]["x"]["level"] == 1

    @pytest.mark.asyncio
    async def test_http_error(self, mock_http):
        with pytest.raises(ImportSourceError, match="404"):
            await read_import_source("https://example.org/missing.json")


class TestImportFromSource:
    """Tests for import_from_source."""

    @pytest.mark.asyncio
    async def test_import_file_replaces(self, store, tmp_path):
        store.update_progress(["old"], [])
        path = tmp_path / "p.json"
        path.write_text(json.dumps({"version": 1, "progress": {"x": record(level=3)}}), encoding="utf-8")

        result = await import_from_source(store, path)

        assert result.ok
        assert set(store.progress) == {"x"}

    @pytest.mark.asyncio
    async def test_import_url_merges(self, store, mock_http):
        store.update_progress(["x"], [])
        mock_http["/p.json"] = (200, json.dumps({"x": record(level=3)}))

        result = await import_from_source(store, "https://example.org/p.json", mode="merge")

        assert result.ok
        assert store.get("x").level == 3
        assert store.get("x").total_correct == 2

    @pytest.mark.asyncio
    async def test_unreadable_source_leaves_store_unchanged(self, store, tmp_path):
        store.update_progress(["x"], [])
        before = store.progress

        result = await import_from_source(store, tmp_path / "missing.json")

        assert not result.ok
        assert result.message
        assert store.progress == before

    @pytest.mark.asyncio
    async def test_invalid_payload_leaves_store_unchanged(self, store, tmp_path):
        store.update_progress(["x"], [])
        before = store.progress
        path = tmp_path / "p.json"
        path.write_text(json.dumps({"x": {"level": "max"}}), encoding="utf-8")

        result = await import_from_source(store, path)

        assert not result.ok
        assert store.progress == before
