# services/export.py
# CineTrack - Watchlist export/import file format
# Copyright (c) 2025-2026 CineTrack
from __future__ import annotations

import json
from datetime import date
from typing import Any, Iterable, Mapping

from ct_platform.items import InvalidItem, check_item, strip_for_export

EXPORT_PREFIX = "cinetrack_watchlist_"
IMPORT_ERROR = "Import failed. Please ensure the file is a valid CineTrack JSON export."
EXPORT_ERROR = "Failed to export watchlist."
READ_ERROR = "Failed to read the selected file."


class ImportFormatError(ValueError):
    pass


def export_filename(today: date | None = None) -> str:
    d = today or date.today()
    return f"{EXPORT_PREFIX}{d.isoformat()}.json"


def dump_watchlist(items: Iterable[Mapping[str, Any]]) -> str:
    return json.dumps([strip_for_export(i) for i in items], indent=2, ensure_ascii=False)


def parse_import(raw: str | bytes) -> list[dict[str, Any]]:
    """Parse an export file into stripped items; raises before anything is applied."""
    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = raw.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise ImportFormatError("File content is not readable.") from e
    try:
        data = json.loads(raw)
    except ValueError as e:
        raise ImportFormatError(f"Invalid JSON: {e}") from e
    if not isinstance(data, list):
        raise ImportFormatError("Invalid file format: Not an array.")
    out: list[dict[str, Any]] = []
    for n, row in enumerate(data):
        try:
            out.append(strip_for_export(check_item(row)))
        except InvalidItem as e:
            raise ImportFormatError(f"item {n}: {e}") from e
    return out
