# ct_platform/local_state.py
# CineTrack - Persisted client-local key/value state (session, UI flags).
from __future__ import annotations

import json
import threading
from pathlib import Path
from typing import Any

from ct_platform.config_base import CONFIG_BASE, _write_json_atomic

TOKEN_KEY = "cinetrack_token"
USER_KEY = "cinetrack_user"
SIDEBAR_KEY = "sidebarCollapsed"
DEMO_WELCOME_KEY = "cinetrack_demo_welcome_shown"


class LocalState:
    """Plain key/value store backed by one JSON file. No schema versioning."""

    def __init__(self, path: Path | None = None) -> None:
        self.path = Path(path) if path else CONFIG_BASE() / "local_state.json"
        self._lock = threading.Lock()
        self._data: dict[str, Any] = self._load()

    def _load(self) -> dict[str, Any]:
        try:
            if self.path.exists():
                data = json.loads(self.path.read_text(encoding="utf-8"))
                if isinstance(data, dict):
                    return data
        except (OSError, ValueError):
            pass
        return {}

    def _save(self) -> None:
        _write_json_atomic(self.path, self._data)

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._data[key] = value
            self._save()

    def remove(self, *keys: str) -> None:
        with self._lock:
            changed = False
            for k in keys:
                if k in self._data:
                    del self._data[k]
                    changed = True
            if changed:
                self._save()

    # session
    @property
    def token(self) -> str | None:
        tok = self.get(TOKEN_KEY)
        return str(tok) if tok else None

    @property
    def user(self) -> dict[str, Any] | None:
        u = self.get(USER_KEY)
        return dict(u) if isinstance(u, dict) else None

    def save_session(self, token: str, user: dict[str, Any] | None) -> None:
        with self._lock:
            self._data[TOKEN_KEY] = token
            self._data[USER_KEY] = dict(user or {})
            self._save()

    def clear_session(self) -> None:
        self.remove(TOKEN_KEY, USER_KEY)

    # ui flags
    @property
    def sidebar_collapsed(self) -> bool:
        return bool(self.get(SIDEBAR_KEY, False))

    @sidebar_collapsed.setter
    def sidebar_collapsed(self, value: bool) -> None:
        self.set(SIDEBAR_KEY, bool(value))

    @property
    def demo_welcome_shown(self) -> bool:
        return bool(self.get(DEMO_WELCOME_KEY, False))

    def mark_demo_welcome_shown(self) -> None:
        self.set(DEMO_WELCOME_KEY, True)
