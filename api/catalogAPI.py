# /api/catalogAPI.py
# CineTrack - TMDb passthrough endpoints (search, discover lists, details, logos)
# Copyright (c) 2025-2026 CineTrack
from __future__ import annotations

from typing import Any, Callable, Literal

from fastapi import APIRouter, HTTPException, Path as FPath, Query, Request
from fastapi.responses import JSONResponse

from providers.metadata._meta_TMDB import CatalogError, TmdbCatalog, best_trailer, combine_rent_buy

router = APIRouter(prefix="/api/catalog", tags=["catalog"])

MediaType = Literal["movie", "tv"]


def _catalog(request: Request) -> TmdbCatalog:
    cat = getattr(request.app.state, "catalog", None)
    if cat is None:
        raise HTTPException(status_code=503, detail="catalog not ready")
    return cat


def _call(fn: Callable[[], Any]) -> JSONResponse:
    try:
        return JSONResponse(fn())
    except CatalogError as e:
        code = e.status if e.status in (401, 404) else 502
        return JSONResponse({"ok": False, "error": str(e)}, status_code=code)


@router.get("/search")
def api_search(request: Request, q: str = Query("")) -> JSONResponse:
    cat = _catalog(request)
    return _call(lambda: {"results": cat.search(q)})


@router.get("/trending")
def api_trending(request: Request) -> JSONResponse:
    cat = _catalog(request)
    return _call(lambda: {"results": cat.trending()})


@router.get("/popular/{media_type}")
def api_popular(request: Request, media_type: MediaType = FPath(...)) -> JSONResponse:
    cat = _catalog(request)
    fn = cat.popular_movies if media_type == "movie" else cat.popular_tv
    return _call(lambda: {"results": fn()})


@router.get("/{media_type}/{item_id}")
def api_details(request: Request, media_type: MediaType = FPath(...), item_id: int = FPath(...)) -> JSONResponse:
    cat = _catalog(request)

    def run() -> dict[str, Any]:
        det = cat.details(item_id, media_type)
        det["trailer"] = best_trailer(det.get("videos"))
        return det

    return _call(run)


@router.get("/tv/{item_id}/season/{season}")
def api_season(request: Request, item_id: int = FPath(...), season: int = FPath(...)) -> JSONResponse:
    cat = _catalog(request)
    return _call(lambda: cat.season_details(item_id, season))


@router.get("/{media_type}/{item_id}/providers")
def api_providers(
    request: Request,
    media_type: MediaType = FPath(...),
    item_id: int = FPath(...),
    region: str = Query("US"),
) -> JSONResponse:
    cat = _catalog(request)

    def run() -> dict[str, Any]:
        data = cat.watch_providers(item_id, media_type)
        country = ((data.get("results") or {}).get(region.upper())) or None
        return {
            "region": region.upper(),
            "link": (country or {}).get("link"),
            "flatrate": list((country or {}).get("flatrate") or []),
            "rent_buy": combine_rent_buy(country),
        }

    return _call(run)


@router.get("/{media_type}/{item_id}/logo")
def api_logo(request: Request, media_type: MediaType = FPath(...), item_id: int = FPath(...)) -> JSONResponse:
    cat = _catalog(request)
    return JSONResponse({"id": item_id, "url": cat.fetch_and_cache_logo(item_id, media_type)})
