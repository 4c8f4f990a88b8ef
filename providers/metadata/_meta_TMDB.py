# providers/metadata/_meta_TMDB.py
# CineTrack - TMDb catalog client (search, details, seasons, providers, logos)
# Copyright (c) 2025-2026 CineTrack
from __future__ import annotations

import threading
from collections.abc import Mapping
from typing import Any, Callable

import requests

from _logging import log as _real_log
from ct_platform.items import MEDIA_TYPES


def log(msg: str, level: str = "INFO") -> None:
    _real_log(msg, level=level, module="CATALOG")


IMG_BASE = "https://image.tmdb.org/t/p"
API_BASE = "https://api.themoviedb.org/3"


class CatalogError(RuntimeError):
    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


# ── pure pickers ──────────────────────────────────────────────────────────

def select_best_logo(logos: list[Mapping[str, Any]] | None) -> dict[str, Any] | None:
    """English SVG, then any SVG, then English, then whatever comes first."""
    if not logos:
        return None
    rows = [l for l in logos if isinstance(l, Mapping)]

    def svg(l: Mapping[str, Any]) -> bool:
        return str(l.get("file_path") or "").endswith(".svg")

    for pred in (
        lambda l: l.get("iso_639_1") == "en" and svg(l),
        svg,
        lambda l: l.get("iso_639_1") == "en",
    ):
        hit = next((l for l in rows if pred(l)), None)
        if hit:
            return dict(hit)
    return dict(rows[0]) if rows else None


def logo_url(logo: Mapping[str, Any] | None, image_base: str = IMG_BASE) -> str:
    if not logo or not logo.get("file_path"):
        return ""
    return f"{image_base.rstrip('/')}/original{logo['file_path']}"


def best_trailer(videos: Mapping[str, Any] | None) -> dict[str, Any] | None:
    results = (videos or {}).get("results")
    if not isinstance(results, list):
        return None
    yt = [v for v in results if isinstance(v, Mapping) and v.get("site") == "YouTube"]
    for kind, official_only in (("Trailer", True), ("Trailer", False), ("Teaser", True), ("Teaser", False)):
        for v in yt:
            if v.get("type") == kind and (v.get("official") or not official_only):
                return dict(v)
    return None


def combine_rent_buy(providers: Mapping[str, Any] | None) -> list[dict[str, Any]]:
    if not providers:
        return []
    out: dict[Any, dict[str, Any]] = {}
    for bucket in ("rent", "buy"):
        for p in providers.get(bucket) or []:
            pid = p.get("provider_id")
            if pid not in out:
                out[pid] = dict(p)
    return list(out.values())


def _media_type(kind: str) -> str:
    k = (kind or "").lower().strip()
    if k in {"show", "shows"}:
        k = "tv"
    if k not in MEDIA_TYPES:
        raise ValueError(f"media_type must be 'movie' or 'tv', got {kind!r}")
    return k


# ── client ────────────────────────────────────────────────────────────────

class TmdbCatalog:
    name = "TMDB"
    UA = "CineTrack/1.0"

    def __init__(
        self,
        load_cfg: Callable[[], dict[str, Any]],
        session: requests.Session | None = None,
    ) -> None:
        self.load_cfg = load_cfg
        self.session = session or requests.Session()
        self._logos: dict[int, str | None] = {}
        self._logo_lock = threading.Lock()

    def _tmdb_cfg(self) -> dict[str, Any]:
        return dict((self.load_cfg() or {}).get("tmdb") or {})

    def _token(self) -> str:
        tok = str(self._tmdb_cfg().get("read_access_token") or "").strip()
        if not tok:
            raise CatalogError("TMDb read access token is missing")
        return tok

    @property
    def image_base(self) -> str:
        return str(self._tmdb_cfg().get("image_base") or IMG_BASE)

    def _get(self, endpoint: str, params: dict[str, Any] | None = None) -> Any:
        t = self._tmdb_cfg()
        url = f"{str(t.get('api_base') or API_BASE).rstrip('/')}/{endpoint.lstrip('/')}"
        headers = {
            "Accept": "application/json",
            "Authorization": f"Bearer {self._token()}",
            "User-Agent": self.UA,
        }
        try:
            r = self.session.get(url, params=params or None, headers=headers, timeout=float(t.get("timeout") or 15))
        except requests.exceptions.RequestException as e:
            log(f"TMDb request failed at {endpoint}: {e}", "WARN")
            raise CatalogError(f"TMDB API request failed: {e}") from e
        if not r.ok:
            lvl = "INFO" if r.status_code == 404 else "WARN"
            log(f"TMDb request failed ({r.status_code}) at {endpoint}", lvl)
            raise CatalogError(f"TMDB API request failed: {r.reason or r.status_code}", r.status_code)
        try:
            return r.json()
        except ValueError as e:
            raise CatalogError(f"TMDB API returned invalid JSON at {endpoint}", r.status_code) from e

    @staticmethod
    def _results(data: Any) -> list[dict[str, Any]]:
        return [dict(x) for x in ((data or {}).get("results") or []) if isinstance(x, Mapping)]

    @staticmethod
    def _only_media(rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
        return [r for r in rows if r.get("media_type") in MEDIA_TYPES]

    @staticmethod
    def _tag(rows: list[dict[str, Any]], kind: str) -> list[dict[str, Any]]:
        return [{**r, "media_type": kind} for r in rows]

    # lists
    def search(self, query: str) -> list[dict[str, Any]]:
        q = (query or "").strip()
        if not q:
            return []
        return self._only_media(self._results(self._get("search/multi", {"query": q})))

    def trending(self) -> list[dict[str, Any]]:
        return self._only_media(self._results(self._get("trending/all/week")))

    def popular_movies(self) -> list[dict[str, Any]]:
        return self._tag(self._results(self._get("movie/popular")), "movie")

    def popular_tv(self) -> list[dict[str, Any]]:
        return self._tag(self._results(self._get("tv/popular")), "tv")

    # details
    def details(self, item_id: int, media_type: str) -> dict[str, Any]:
        kind = _media_type(media_type)
        data = self._get(f"{kind}/{int(item_id)}", {"append_to_response": "videos,credits,images"})
        return {**dict(data or {}), "media_type": kind}

    def movie_details(self, item_id: int) -> dict[str, Any]:
        return self.details(item_id, "movie")

    def tv_details(self, item_id: int) -> dict[str, Any]:
        return self.details(item_id, "tv")

    def season_details(self, tv_id: int, season: int) -> dict[str, Any]:
        return dict(self._get(f"tv/{int(tv_id)}/season/{int(season)}") or {})

    def watch_providers(self, item_id: int, media_type: str) -> dict[str, Any]:
        return dict(self._get(f"{_media_type(media_type)}/{int(item_id)}/watch/providers") or {})

    def recommendations(self, item_id: int, media_type: str) -> list[dict[str, Any]]:
        kind = _media_type(media_type)
        return self._tag(self._results(self._get(f"{kind}/{int(item_id)}/recommendations")), kind)

    def media_images(self, item_id: int, media_type: str) -> dict[str, Any]:
        return dict(self._get(f"{_media_type(media_type)}/{int(item_id)}/images") or {})

    # logo memo (failures are remembered as None)
    def cached_logo(self, item_id: int) -> tuple[bool, str | None]:
        with self._logo_lock:
            key = int(item_id)
            return key in self._logos, self._logos.get(key)

    def fetch_and_cache_logo(self, item_id: int, media_type: str) -> str | None:
        hit, url = self.cached_logo(item_id)
        if hit:
            return url
        try:
            imgs = self.media_images(item_id, media_type)
            url = logo_url(select_best_logo(imgs.get("logos")), self.image_base) or None
        except CatalogError as e:
            log(f"logo lookup failed for {item_id}: {e}", "DEBUG")
            url = None
        with self._logo_lock:
            self._logos[int(item_id)] = url
        return url


def build(load_cfg: Callable[[], dict[str, Any]]) -> TmdbCatalog:
    return TmdbCatalog(load_cfg)
