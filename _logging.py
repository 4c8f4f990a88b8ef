# _logging.py
# CineTrack - Console logger with colored module tags and optional JSON-lines sink.
from __future__ import annotations
import sys, datetime, json, threading, time
from typing import Any, Optional, TextIO, Mapping, Dict

RESET = "\033[0m"
DIM = "\033[90m"

# display label -> ANSI color
TAG_COLORS: Dict[str, str] = {
    "DEBUG": "\033[33m",
    "INFO": "\033[94m",
    "WARN": "\033[33m",
    "ERROR": "\033[91m",
    "SUCCESS": "\033[92m",
}

LEVELS = {"silent": 60, "error": 40, "warn": 30, "info": 20, "debug": 10}

# level argument -> (severity, display label)
_LABELS: Dict[str, tuple[str, str]] = {
    "debug": ("debug", "DEBUG"),
    "info": ("info", "INFO"),
    "warn": ("warn", "WARN"),
    "warning": ("warn", "WARN"),
    "error": ("error", "ERROR"),
    "success": ("info", "SUCCESS"),
}

# runtime.debug from config.json, re-read at most every few seconds
_DEBUG_TTL = 5.0
_dbg_state: Dict[str, Any] = {"on": False, "at": 0.0}


def _debug_enabled() -> bool:
    now = time.time()
    if now - _dbg_state["at"] > _DEBUG_TTL:
        try:
            from ct_platform.config_base import load_config
            _dbg_state["on"] = bool((load_config().get("runtime") or {}).get("debug"))
        except (OSError, ValueError, ImportError):
            _dbg_state["on"] = False
        _dbg_state["at"] = now
    return bool(_dbg_state["on"])


def reset_debug_cache() -> None:
    _dbg_state.update(on=False, at=0.0)


class Logger:
    """Writes "[ts] [MODULE] LABEL message" lines; debug output follows runtime.debug."""

    def __init__(
        self,
        stream: TextIO = sys.stdout,
        level: str = "info",
        *,
        use_color: bool = True,
        show_time: bool = True,
        module: str = "",
        _shared: Optional[Dict[str, Any]] = None,
    ):
        self.stream = stream
        self.module = module
        self.use_color = use_color
        self.show_time = show_time
        # level, json sink and lock are shared by every bound copy
        self._shared: Dict[str, Any] = _shared if _shared is not None else {
            "level_no": LEVELS.get(level, 20),
            "json": None,
            "lock": threading.Lock(),
        }

    # configuration
    def set_level(self, level: str) -> None:
        self._shared["level_no"] = LEVELS.get(level, self._shared["level_no"])

    def enable_json(self, file_path: str) -> None:
        with self._shared["lock"]:
            old = self._shared["json"]
            self._shared["json"] = open(file_path, "a", encoding="utf-8")
        if old:
            old.close()

    def bind(self, module: str) -> "Logger":
        return Logger(
            self.stream,
            use_color=self.use_color,
            show_time=self.show_time,
            module=module,
            _shared=self._shared,
        )

    # output
    def _line(self, label: str, msg: str) -> str:
        col = TAG_COLORS.get(label) if self.use_color else None
        tag = f"{col}{label}{RESET}" if col else label
        head = f"[{self.module}] " if self.module else ""
        line = f"{head}{tag} {msg}"
        if not self.show_time:
            return line
        ts = datetime.datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        return f"{DIM}[{ts}]{RESET} {line}" if self.use_color else f"[{ts}] {line}"

    def _emit(self, severity: str, label: str, msg: str, extra: Optional[Mapping[str, Any]] = None) -> None:
        if severity == "debug":
            if not _debug_enabled():
                return
        elif self._shared["level_no"] > LEVELS.get(severity, 20):
            return
        with self._shared["lock"]:
            self.stream.write(self._line(label, msg) + "\n")
            self.stream.flush()
            sink = self._shared["json"]
            if sink:
                rec: Dict[str, Any] = {
                    "ts": datetime.datetime.now(datetime.timezone.utc).isoformat(timespec="milliseconds"),
                    "level": label,
                    "module": self.module or None,
                    "msg": msg,
                }
                if extra:
                    rec["extra"] = dict(extra)
                sink.write(json.dumps(rec, ensure_ascii=False, default=str) + "\n")
                sink.flush()

    def debug(self, msg: str, extra: Optional[Mapping[str, Any]] = None) -> None:
        self._emit("debug", "DEBUG", msg, extra)

    def info(self, msg: str, extra: Optional[Mapping[str, Any]] = None) -> None:
        self._emit("info", "INFO", msg, extra)

    def warn(self, msg: str, extra: Optional[Mapping[str, Any]] = None) -> None:
        self._emit("warn", "WARN", msg, extra)

    def error(self, msg: str, extra: Optional[Mapping[str, Any]] = None) -> None:
        self._emit("error", "ERROR", msg, extra)

    # log("text", level="INFO", module="WATCHLIST")
    def __call__(
        self,
        message: str,
        *,
        level: str = "INFO",
        module: Optional[str] = None,
        extra: Optional[Mapping[str, Any]] = None,
    ) -> None:
        severity, label = _LABELS.get((level or "info").lower(), ("info", "INFO"))
        target = self.bind(module) if module else self
        target._emit(severity, label, str(message), extra)


# default instance
log = Logger()

__all__ = ["Logger", "log", "LEVELS", "reset_debug_cache"]
