# services/notifications.py
# CineTrack - In-memory notification inbox fed by the real-time channel
# Copyright (c) 2025-2026 CineTrack
from __future__ import annotations

import threading
from datetime import datetime, timezone
from typing import Any, Callable, Mapping

from _logging import log as _real_log


def log(msg: str, level: str = "INFO") -> None:
    _real_log(msg, level=level, module="NOTIFY")


def _note_id(n: Mapping[str, Any]) -> str | None:
    v = n.get("_id") if n.get("_id") is not None else n.get("id")
    return str(v) if v is not None else None


class NotificationInbox:
    """Newest-first list of notifications; ids come from the server (``_id`` or ``id``)."""

    def __init__(self, limit: int = 200) -> None:
        self.limit = max(1, int(limit))
        self._items: list[dict[str, Any]] = []
        self._lock = threading.Lock()
        self._unsubs: list[Callable[[], None]] = []

    def add(self, note: Any) -> bool:
        if not isinstance(note, Mapping):
            log(f"ignoring malformed notification: {note!r}", "WARN")
            return False
        row = dict(note)
        nid = _note_id(row)
        row.setdefault("read", False)
        with self._lock:
            if nid is not None:
                self._items = [n for n in self._items if _note_id(n) != nid]
            self._items.insert(0, row)
            del self._items[self.limit:]
        log(f"new notification: {row.get('title') or '?'} - {row.get('message') or ''}".rstrip(" -"), "DEBUG")
        return True

    def mark_read(self, data: Any) -> bool:
        nid = _note_id(data) if isinstance(data, Mapping) else None
        if nid is None:
            return False
        now = datetime.now(timezone.utc).isoformat()
        with self._lock:
            for n in self._items:
                if _note_id(n) == nid and not n.get("read"):
                    n["read"] = True
                    n["readAt"] = n.get("readAt") or now
                    return True
        return False

    def remove(self, data: Any) -> bool:
        nid = _note_id(data) if isinstance(data, Mapping) else None
        if nid is None:
            return False
        with self._lock:
            before = len(self._items)
            self._items = [n for n in self._items if _note_id(n) != nid]
            return len(self._items) != before

    def mark_all_read(self, _data: Any = None) -> int:
        now = datetime.now(timezone.utc).isoformat()
        changed = 0
        with self._lock:
            for n in self._items:
                if not n.get("read"):
                    n["read"] = True
                    n["readAt"] = n.get("readAt") or now
                    changed += 1
        return changed

    @property
    def items(self) -> list[dict[str, Any]]:
        with self._lock:
            return [dict(n) for n in self._items]

    @property
    def unread_count(self) -> int:
        with self._lock:
            return sum(1 for n in self._items if not n.get("read"))

    def bind_channel(self, channel: Any) -> None:
        self.unbind_channel()
        self._unsubs = [
            channel.on_notification(self.add),
            channel.on_notification_read(self.mark_read),
            channel.on_notification_delete(self.remove),
            channel.on_notification_read_all(self.mark_all_read),
        ]

    def unbind_channel(self) -> None:
        for off in self._unsubs:
            off()
        self._unsubs = []
