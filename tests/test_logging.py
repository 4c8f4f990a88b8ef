# CineTrack test scripts
from __future__ import annotations

import io
import json
from pathlib import Path

import _logging
from _logging import Logger
from ct_platform.config_base import save_config


def test_module_tag_and_level_filter() -> None:
    out = io.StringIO()
    lg = Logger(out, level="warn", use_color=False, show_time=False)
    lg("hidden", level="INFO", module="WATCHLIST")
    lg("shown", level="WARN", module="WATCHLIST")
    lg("custom label falls back to info", level="WebHook")
    assert out.getvalue() == "[WATCHLIST] WARN shown\n"


def test_success_label_and_json_sink(tmp_path: Path) -> None:
    out = io.StringIO()
    lg = Logger(out, use_color=False, show_time=False)
    sink = tmp_path / "log.jsonl"
    lg.enable_json(str(sink))
    lg("imported 3 items", level="SUCCESS", module="EXPORT", extra={"count": 3})

    assert out.getvalue() == "[EXPORT] SUCCESS imported 3 items\n"
    rec = json.loads(sink.read_text(encoding="utf-8").strip())
    assert rec["level"] == "SUCCESS"
    assert rec["module"] == "EXPORT"
    assert rec["extra"] == {"count": 3}


def test_debug_follows_runtime_config(config_base: Path) -> None:
    out = io.StringIO()
    lg = Logger(out, use_color=False, show_time=False)

    _logging.reset_debug_cache()
    lg("quiet", level="DEBUG")
    assert out.getvalue() == ""

    save_config({"runtime": {"debug": True}})
    _logging.reset_debug_cache()
    lg("loud", level="DEBUG")
    assert out.getvalue() == "DEBUG loud\n"
    _logging.reset_debug_cache()
