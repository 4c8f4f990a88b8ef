# services/navigation.py
# CineTrack - Screen stack and active tab (platform-neutral modal routing)
# Copyright (c) 2025-2026 CineTrack
from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any, Callable

TABS: tuple[str, ...] = ("discover", "lists", "recommendations", "stats")
ROOT = "root"


@dataclass(frozen=True)
class Screen:
    name: str
    payload: dict[str, Any] = field(default_factory=dict)


Listener = Callable[["Screen"], None]


class ScreenStack:
    """Push/pop named screens over a fixed root. Popping the root does nothing."""

    def __init__(self, tab: str = "discover") -> None:
        self._stack: list[Screen] = [Screen(ROOT)]
        self._tab = self._check_tab(tab)
        self._listeners: list[Listener] = []
        self._lock = threading.RLock()

    @staticmethod
    def _check_tab(tab: str) -> str:
        if tab not in TABS:
            raise ValueError(f"unknown tab: {tab!r} (expected one of {', '.join(TABS)})")
        return tab

    def _notify(self) -> None:
        cur = self.current
        for fn in list(self._listeners):
            fn(cur)

    # stack
    def push(self, name: str, payload: dict[str, Any] | None = None) -> Screen:
        name = (name or "").strip()
        if not name or name == ROOT:
            raise ValueError("screen name must be a non-empty string other than 'root'")
        scr = Screen(name, dict(payload or {}))
        with self._lock:
            self._stack.append(scr)
        self._notify()
        return scr

    def pop(self) -> Screen | None:
        with self._lock:
            if len(self._stack) <= 1:
                return None
            top = self._stack.pop()
        self._notify()
        return top

    def replace(self, name: str, payload: dict[str, Any] | None = None) -> Screen:
        with self._lock:
            if len(self._stack) > 1:
                self._stack.pop()
        return self.push(name, payload)

    def reset(self) -> None:
        with self._lock:
            if len(self._stack) == 1:
                return
            del self._stack[1:]
        self._notify()

    @property
    def current(self) -> Screen:
        with self._lock:
            return self._stack[-1]

    @property
    def depth(self) -> int:
        with self._lock:
            return len(self._stack) - 1

    def is_open(self, name: str) -> bool:
        with self._lock:
            return any(s.name == name for s in self._stack[1:])

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _off() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _off

    # tab
    @property
    def tab(self) -> str:
        return self._tab

    @tab.setter
    def tab(self, value: str) -> None:
        self._tab = self._check_tab(value)
