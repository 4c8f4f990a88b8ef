# CineTrack test scripts
from __future__ import annotations

import json
from datetime import date

import pytest

from conftest import movie, show
from services.export import ImportFormatError, dump_watchlist, export_filename, parse_import


def test_export_filename() -> None:
    assert export_filename(date(2025, 3, 9)) == "cinetrack_watchlist_2025-03-09.json"


def test_dump_strips_heavy_fields() -> None:
    body = dump_watchlist([movie(1, watched=True, tags=[], credits={"cast": []}, clientOpId="s:1")])
    rows = json.loads(body)
    assert rows[0]["id"] == 1
    assert "credits" not in rows[0]
    assert "clientOpId" not in rows[0]
    assert "\n  " in body


def test_parse_import_accepts_bom_bytes() -> None:
    raw = "\ufeff" + json.dumps([show(5, watchedEpisodes={"1": [1]}, tags=["x"])])
    rows = parse_import(raw.encode("utf-8"))
    assert rows[0]["watchedEpisodes"] == {"1": [1]}


def test_parse_import_strips_transient_fields() -> None:
    rows = parse_import(json.dumps([movie(1, watched=False, images={"posters": []})]))
    assert "images" not in rows[0]


@pytest.mark.parametrize(
    "raw, fragment",
    [
        ("{}", "Not an array"),
        ("nope", "Invalid JSON"),
        ('[{"media_type": "movie"}]', "item 0"),
        ('[{"id": 1, "media_type": "movie"}, {"id": 2}]', "item 1"),
    ],
)
def test_parse_import_errors(raw: str, fragment: str) -> None:
    with pytest.raises(ImportFormatError) as ei:
        parse_import(raw)
    assert fragment in str(ei.value)
