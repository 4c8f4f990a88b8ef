# /cinetrack.py
# CineTrack - Personal movie/TV watchlist tracker (local API host)
# Copyright (c) 2025-2026 CineTrack
from __future__ import annotations

import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Callable

import uvicorn
from fastapi import FastAPI
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

ROOT = Path(__file__).resolve().parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from _logging import log as _real_log
from api import register as register_api
from ct_platform.config_base import backend_api_base, config_path, load_config
from ct_platform.local_state import LocalState
from providers.backend.client import ApiError, BackendClient
from providers.metadata._meta_TMDB import TmdbCatalog
from providers.realtime.channel import RealtimeChannel
from services.auth import AuthService
from services.notifications import NotificationInbox
from services.watchlist import WatchlistStore

__all__ = ["build_app", "main"]


def log(msg: str, level: str = "INFO") -> None:
    _real_log(msg, level=level, module="API")


def _configure_logging(cfg: dict[str, Any]) -> None:
    rt = cfg.get("runtime") or {}
    if rt.get("debug"):
        _real_log.set_level("debug")
    path = str(rt.get("log_json") or "").strip()
    if path:
        _real_log.enable_json(path)


def build_app(
    load_cfg: Callable[[], dict[str, Any]] = load_config,
    *,
    state: LocalState | None = None,
    backend: Any = None,
    catalog: Any = None,
    channel: Any = None,
) -> FastAPI:
    cfg = load_cfg()
    local = state or LocalState()
    backend = backend or BackendClient(
        backend_api_base(cfg),
        lambda: local.token,
        timeout=float((cfg.get("backend") or {}).get("timeout") or 15.0),
    )
    catalog = catalog or TmdbCatalog(load_cfg)
    channel = channel or RealtimeChannel(load_cfg, lambda: local.token)

    wl = cfg.get("watchlist") or {}
    store = WatchlistStore(
        backend,
        catalog,
        channel,
        page_size=int(wl.get("page_size") or 20),
        recommendation_seeds=int(wl.get("recommendation_seeds") or 3),
    )
    inbox = NotificationInbox()
    inbox.bind_channel(channel)

    def _on_logout() -> None:
        channel.disconnect()
        store.reset()

    auth = AuthService(backend, local, on_login=store.load_watchlist, on_logout=_on_logout)

    @asynccontextmanager
    async def _lifespan(app: FastAPI):
        if local.token:
            if await run_in_threadpool(auth.verify_session):
                await run_in_threadpool(store.load_watchlist)
            else:
                log("stored session is no longer valid", "INFO")
        try:
            yield
        finally:
            channel.disconnect()
            log("shutdown complete", "DEBUG")

    app = FastAPI(title="CineTrack", lifespan=_lifespan)
    app.state.cfg_loader = load_cfg
    app.state.local = local
    app.state.backend = backend
    app.state.catalog = catalog
    app.state.channel = channel
    app.state.store = store
    app.state.inbox = inbox
    app.state.auth = auth

    register_api(app)

    @app.get("/api/status")
    def api_status() -> JSONResponse:
        return JSONResponse(
            {
                "authenticated": auth.is_authenticated,
                "realtime": channel.is_connected(),
                "items": len(store.items),
                "unread_notifications": inbox.unread_count,
                "error": store.error,
            }
        )

    @app.get("/api/notifications")
    def api_notifications() -> JSONResponse:
        return JSONResponse({"items": inbox.items, "unread": inbox.unread_count})

    @app.get("/api/storage")
    def api_storage() -> JSONResponse:
        try:
            return JSONResponse(backend.get_storage_stats())
        except ApiError as e:
            return JSONResponse({"ok": False, "error": e.message}, status_code=502)

    return app


# Entry point
def main() -> None:
    cfg = load_config()
    _configure_logging(cfg)
    srv = cfg.get("server") or {}
    host = str(srv.get("host") or "127.0.0.1")
    port = int(srv.get("port") or 8788)

    print("\nCineTrack running:")
    print(f"  Local:   http://{host}:{port}")
    print(f"  Backend: {backend_api_base(cfg)}")
    print(f"  Config:  {config_path()} (JSON)\n")

    debug = bool((cfg.get("runtime") or {}).get("debug"))
    uvicorn.run(
        build_app(),
        host=host,
        port=port,
        log_level=("debug" if debug else "warning"),
        access_log=debug,
    )


if __name__ == "__main__":
    main()
