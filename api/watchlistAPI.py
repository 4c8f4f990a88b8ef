# /api/watchlistAPI.py
# CineTrack - Local watchlist endpoints over the in-memory store
# Copyright (c) 2025-2026 CineTrack
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, HTTPException, Path as FPath, Query, Request
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, Field
from starlette.concurrency import run_in_threadpool

from ct_platform.items import STATUSES, InvalidItem
from services.watchlist import WatchlistStore

router = APIRouter(prefix="/api/watchlist", tags=["watchlist"])


class ToggleIn(BaseModel):
    item: dict[str, Any]
    from_search: bool = False


class EpisodeIn(BaseModel):
    season: int
    episode: int


class SeasonIn(BaseModel):
    season: int
    episodes: list[int] = Field(default_factory=list)


class TagsIn(BaseModel):
    tags: list[str] = Field(default_factory=list)


class FilterIn(BaseModel):
    tag: str | None = None


class DeleteEventIn(BaseModel):
    id: int
    clientOpId: str | None = None


def _store(request: Request) -> WatchlistStore:
    store = getattr(request.app.state, "store", None)
    if store is None:
        raise HTTPException(status_code=503, detail="watchlist store not ready")
    return store


def _require(store: WatchlistStore, mid: int, media_type: str | None = None) -> dict[str, Any]:
    it = store.get(mid)
    if it is None:
        raise HTTPException(status_code=404, detail=f"item {mid} is not on the watchlist")
    if media_type and it.get("media_type") != media_type:
        raise HTTPException(status_code=400, detail=f"item {mid} is not a {media_type} item")
    return it


def _result(store: WatchlistStore, ok: bool, **extra: Any) -> JSONResponse:
    body: dict[str, Any] = {"ok": bool(ok and store.error is None), "error": store.error}
    body.update(extra)
    return JSONResponse(body)


@router.get("", include_in_schema=False)
@router.get("/")
def api_watchlist(request: Request, tag: str | None = Query(None)) -> JSONResponse:
    store = _store(request)
    snap = store.snapshot()
    if tag is not None:
        snap["buckets"] = store.buckets(tag or None)
    return JSONResponse(snap)


@router.post("/reload")
def api_reload(request: Request) -> JSONResponse:
    store = _store(request)
    store.clear_error()
    return _result(store, store.load_watchlist(), count=len(store.items))


@router.post("/toggle")
def api_toggle(request: Request, payload: ToggleIn) -> JSONResponse:
    store = _store(request)
    store.clear_error()
    try:
        if payload.from_search:
            present = store.toggle_membership_from_search_result(payload.item)
        else:
            present = store.toggle_membership(payload.item)
    except InvalidItem as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _result(store, True, in_watchlist=present)


@router.post("/more/{status}")
def api_load_more(request: Request, status: str = FPath(...)) -> JSONResponse:
    if status not in STATUSES:
        raise HTTPException(status_code=400, detail=f"unknown status: {status}")
    store = _store(request)
    added = store.load_more_by_status(status)
    return JSONResponse({"ok": True, "added": added, "pagination": store.pagination[status].as_dict()})


@router.post("/{item_id}/watched")
def api_toggle_watched(request: Request, item_id: int = FPath(...)) -> JSONResponse:
    store = _store(request)
    _require(store, item_id, "movie")
    store.clear_error()
    ok = store.toggle_movie_watched(item_id)
    return _result(store, ok, item=store.get(item_id))


@router.post("/{item_id}/episodes")
def api_toggle_episode(request: Request, payload: EpisodeIn, item_id: int = FPath(...)) -> JSONResponse:
    store = _store(request)
    _require(store, item_id, "tv")
    store.clear_error()
    ok = store.toggle_episode_watched(item_id, payload.season, payload.episode)
    return _result(store, ok, item=store.get(item_id))


@router.post("/{item_id}/seasons")
def api_toggle_season(request: Request, payload: SeasonIn, item_id: int = FPath(...)) -> JSONResponse:
    store = _store(request)
    _require(store, item_id, "tv")
    store.clear_error()
    ok = store.toggle_season_watched(item_id, payload.season, payload.episodes)
    return _result(store, ok, item=store.get(item_id))


@router.put("/{item_id}/tags")
def api_update_tags(request: Request, payload: TagsIn, item_id: int = FPath(...)) -> JSONResponse:
    store = _store(request)
    _require(store, item_id)
    store.clear_error()
    ok = store.update_tags(item_id, payload.tags)
    return _result(store, ok, item=store.get(item_id))


@router.put("/filter")
def api_set_filter(request: Request, payload: FilterIn) -> JSONResponse:
    store = _store(request)
    store.set_tag_filter(payload.tag)
    return JSONResponse({"ok": True, "active_tag_filter": store.active_tag_filter})


@router.get("/stats")
def api_stats(request: Request) -> JSONResponse:
    return JSONResponse(_store(request).stats())


@router.get("/upcoming")
def api_upcoming(request: Request) -> JSONResponse:
    return JSONResponse({"items": _store(request).upcoming()})


@router.get("/recommendations")
def api_recommendations(request: Request, refresh: bool = Query(False)) -> JSONResponse:
    store = _store(request)
    if refresh or not store.recommendations:
        store.fetch_recommendations()
    return JSONResponse({"items": store.recommendations, "loading": store.recommendations_loading})


@router.get("/export")
def api_export(request: Request) -> Response:
    store = _store(request)
    store.clear_error()
    out = store.export_payload()
    if out is None:
        return JSONResponse({"ok": False, "error": store.error}, status_code=502)
    name, body = out
    return Response(
        content=body,
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="{name}"', "Cache-Control": "no-store"},
    )


@router.post("/import")
async def api_import(request: Request) -> JSONResponse:
    store = _store(request)
    raw = await request.body()
    store.clear_error()
    ok = await run_in_threadpool(store.import_watchlist, raw)
    return JSONResponse(
        {"ok": ok, "error": store.error, "count": len(store.items)},
        status_code=200 if ok else 400,
    )


@router.delete("", include_in_schema=False)
@router.delete("/")
def api_wipe(request: Request) -> JSONResponse:
    store = _store(request)
    store.clear_error()
    return _result(store, store.wipe())


@router.delete("/error")
def api_clear_error(request: Request) -> JSONResponse:
    _store(request).clear_error()
    return JSONResponse({"ok": True})


# manual reconcile hooks (same path as the real-time channel)
@router.post("/events/update")
def api_event_update(request: Request, item: dict[str, Any] = Body(...)) -> JSONResponse:
    applied = _store(request).sync_item(item)
    return JSONResponse({"ok": True, "applied": applied})


@router.post("/events/delete")
def api_event_delete(request: Request, payload: DeleteEventIn) -> JSONResponse:
    applied = _store(request).delete_item(payload.id, payload.clientOpId)
    return JSONResponse({"ok": True, "applied": applied})
