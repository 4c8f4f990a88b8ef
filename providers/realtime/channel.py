# providers/realtime/channel.py
# CineTrack - Socket.IO push channel (watchlist + notification events)
# Copyright (c) 2025-2026 CineTrack
from __future__ import annotations

import threading
import time
from typing import Any, Callable

import socketio
from socketio import exceptions as sio_exceptions

from _logging import log as _real_log
from ct_platform.config_base import realtime_url


def log(msg: str, level: str = "INFO") -> None:
    _real_log(msg, level=level, module="REALTIME")


WATCHLIST_UPDATE = "watchlist:update"
WATCHLIST_DELETE = "watchlist:delete"
WATCHLIST_SYNC = "watchlist:sync"
NOTIFICATION_NEW = "notification:new"
NOTIFICATION_READ = "notification:read"
NOTIFICATION_DELETE = "notification:delete"
NOTIFICATION_READ_ALL = "notification:read-all"

EVENTS: tuple[str, ...] = (
    WATCHLIST_UPDATE,
    WATCHLIST_DELETE,
    WATCHLIST_SYNC,
    NOTIFICATION_NEW,
    NOTIFICATION_READ,
    NOTIFICATION_DELETE,
    NOTIFICATION_READ_ALL,
)

Handler = Callable[[Any], None]


def _default_client(**kw: Any) -> Any:
    return socketio.Client(**kw)


class RealtimeChannel:
    """Token-authenticated push connection. Owns only the client handle and listeners."""

    def __init__(
        self,
        load_cfg: Callable[[], dict[str, Any]],
        token_fn: Callable[[], str | None],
        client_factory: Callable[..., Any] | None = None,
    ) -> None:
        self.load_cfg = load_cfg
        self.token_fn = token_fn
        self._factory = client_factory or _default_client
        self._handlers: dict[str, list[Handler]] = {e: [] for e in EVENTS}
        self._hlock = threading.Lock()
        self._sio: Any = None
        self._stop = threading.Event()
        self._bg: threading.Thread | None = None
        self._attempt = 0

    # ── listeners ─────────────────────────────────────────────────────────
    def on(self, event: str, handler: Handler) -> Callable[[], None]:
        if event not in self._handlers:
            raise ValueError(f"unknown event: {event}")
        with self._hlock:
            self._handlers[event].append(handler)

        def _off() -> None:
            with self._hlock:
                self._handlers[event] = [h for h in self._handlers[event] if h is not handler]

        return _off

    def on_update(self, handler: Handler) -> Callable[[], None]:
        return self.on(WATCHLIST_UPDATE, handler)

    def on_delete(self, handler: Handler) -> Callable[[], None]:
        return self.on(WATCHLIST_DELETE, handler)

    def on_sync(self, handler: Handler) -> Callable[[], None]:
        return self.on(WATCHLIST_SYNC, handler)

    def on_notification(self, handler: Handler) -> Callable[[], None]:
        return self.on(NOTIFICATION_NEW, handler)

    def on_notification_read(self, handler: Handler) -> Callable[[], None]:
        return self.on(NOTIFICATION_READ, handler)

    def on_notification_delete(self, handler: Handler) -> Callable[[], None]:
        return self.on(NOTIFICATION_DELETE, handler)

    def on_notification_read_all(self, handler: Handler) -> Callable[[], None]:
        return self.on(NOTIFICATION_READ_ALL, handler)

    def dispatch(self, event: str, data: Any = None) -> None:
        with self._hlock:
            handlers = list(self._handlers.get(event) or [])
        for h in handlers:
            try:
                h(data)
            except Exception as e:  # a broken listener must not kill the socket thread
                log(f"handler for {event} failed: {e}", "ERROR")

    # ── connection ────────────────────────────────────────────────────────
    def _rt_cfg(self) -> dict[str, Any]:
        return dict((self.load_cfg() or {}).get("realtime") or {})

    def _new_client(self, rt: dict[str, Any]) -> Any:
        sio = self._factory(
            reconnection=True,
            reconnection_attempts=int(rt.get("reconnection_attempts", 10)),
            reconnection_delay=float(rt.get("reconnection_delay", 1.0)),
            reconnection_delay_max=float(rt.get("reconnection_delay_max", 10.0)),
        )
        sio.on("connect", handler=lambda *a: log("connected for real-time sync", "DEBUG"))
        sio.on("disconnect", handler=lambda *a: log(f"disconnected{(' - ' + str(a[0])) if a else ''}", "DEBUG"))
        sio.on("connect_error", handler=lambda *a: log(f"connection error - {a[0] if a else '?'}", "WARN"))
        for ev in EVENTS:
            sio.on(ev, handler=lambda *a, _ev=ev: self.dispatch(_ev, a[0] if a else None))
        return sio

    def _connect_once(self) -> Any:
        token = self.token_fn()
        if not token:
            return None
        cfg = self.load_cfg() or {}
        rt = dict(cfg.get("realtime") or {})
        sio = self._new_client(rt)
        self._sio = sio
        try:
            sio.connect(
                realtime_url(cfg),
                auth={"token": token},
                transports=list(rt.get("transports") or ["websocket", "polling"]),
                wait_timeout=float(rt.get("timeout", 20.0)),
            )
        except sio_exceptions.ConnectionError as e:
            log(f"connect failed: {e}", "WARN")
            return None
        if self._stop.is_set():
            # disconnect() ran while the handshake was in flight
            self._drop(sio)
            return None
        self._attempt = 0
        return sio

    def _loop(self) -> None:
        rt = self._rt_cfg()
        max_attempts = int(rt.get("reconnection_attempts", 10))
        base = float(rt.get("reconnection_delay", 1.0))
        cap = float(rt.get("reconnection_delay_max", 10.0))
        while not self._stop.is_set():
            sio = self._connect_once()
            if sio is not None:
                # the client reconnects on its own; wait() returns once it gives up
                sio.wait()
            if self._stop.is_set() or not self.token_fn():
                break
            self._attempt += 1
            if self._attempt > max_attempts:
                log(f"giving up after {max_attempts} attempts", "WARN")
                break
            delay = min(cap, base * (2 ** min(self._attempt - 1, 5))) + (time.time() % 0.5)
            log(f"reconnecting after {delay:.1f}s", "DEBUG")
            self._stop.wait(delay)

    def connect(self) -> bool:
        """Start the background connection. Returns False when skipped."""
        if not bool(self._rt_cfg().get("enabled", True)):
            return False
        if self.is_connected() or (self._bg and self._bg.is_alive()):
            return True
        if not self.token_fn():
            log("no auth token, skipping connection", "DEBUG")
            return False
        self._stop.clear()
        self._attempt = 0
        self._bg = threading.Thread(target=self._loop, name="RealtimeChannel", daemon=True)
        self._bg.start()
        return True

    def _drop(self, sio: Any) -> None:
        if self._sio is sio:
            self._sio = None
        try:
            sio.disconnect()
        except Exception as e:
            log(f"disconnect failed: {e}", "DEBUG")

    def disconnect(self) -> None:
        self._stop.set()
        sio, self._sio = self._sio, None
        if sio is not None:
            self._drop(sio)
        bg, self._bg = self._bg, None
        if bg and bg.is_alive() and bg is not threading.current_thread():
            bg.join(timeout=2.0)

    def is_connected(self) -> bool:
        sio = self._sio
        return bool(sio is not None and getattr(sio, "connected", False))

    def is_alive(self) -> bool:
        return bool(self._bg and self._bg.is_alive())
