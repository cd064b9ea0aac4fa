"""
Progress transfer: export files and import sources.

Exports are UTF-8 JSON files named ``progress-<YYYY-MM-DD>.json``.
Imports are read from a local file or an http(s) URL; reading is the
only asynchronous step, and a failed read never touches the store.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any

import httpx
from loguru import logger

from geoquiz.core.progress import ImportMode, ImportResult
from geoquiz.exceptions import ImportSourceError

if TYPE_CHECKING:
    from geoquiz.delivery.progress_store import ProgressStore


def export_filename(exported_at_ms: int, prefix: str = "progress", with_time: bool = False) -> str:
    """File name for an export taken at the given epoch-ms time (UTC)."""
    stamp = datetime.fromtimestamp(exported_at_ms / 1000, tz=timezone.utc)
    fmt = "%Y-%m-%dT%H%M%S" if with_time else "%Y-%m-%d"
    return f"{prefix}-{stamp.strftime(fmt)}.json"


def write_export_file(
    payload: dict[str, Any],
    directory: Path,
    prefix: str = "progress",
    with_time: bool = False,
) -> Path:
    """
    Write an export envelope to ``directory``.

    Args:
        payload: Result of ProgressStore.export_progress_data()
        directory: Target directory (created if missing)
        prefix: File name prefix
        with_time: Add the time of day to the file name

    Returns:
        Path of the written file
    """
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / export_filename(payload["exportedAt"], prefix=prefix, with_time=with_time)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(payload, f, ensure_ascii=False, indent=2)
    return path


def is_url(source: str) -> bool:
    return source.startswith(("http://", "https://"))


async def read_import_source(source: str | Path, timeout: float = 30.0) -> Any:
    """
    Read and parse JSON from a file path or URL.

    Raises:
        ImportSourceError: The source could not be read or is not JSON
    """
    source_str = str(source)
    if is_url(source_str):
        try:
            async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as client:
                response = await client.get(source_str)
                response.raise_for_status()
                text = response.text
        except httpx.HTTPStatusError as e:
            raise ImportSourceError(f"Server returned {e.response.status_code} for {source_str}") from e
        except httpx.RequestError as e:
            raise ImportSourceError(f"Could not fetch {source_str}: {e}") from e
    else:
        try:
            text = Path(source_str).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise ImportSourceError(f"Could not read {source_str}: {e}") from e

    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise ImportSourceError(f"{source_str} is not valid JSON: {e}") from e


async def import_from_source(
    store: ProgressStore,
    source: str | Path,
    mode: ImportMode = "replace",
    timeout: float = 30.0,
) -> ImportResult:
    """Read a source and import it into the store."""
    try:
        data = await read_import_source(source, timeout=timeout)
    except ImportSourceError as e:
        logger.warning(f"Import failed: {e}")
        return ImportResult(ok=False, message=str(e))
    return store.import_progress_data(data, mode)
