# ct_platform/items.py
# Watchlist item shape helpers.
# - Strip transient catalog payloads before storage/export.
# - Build a fresh watchlist item for a movie or a show.
# - Validate the movie/tv discriminant and its field set.
# - Derive the watchlist | watching | watched status.

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Iterable, Mapping, Tuple

MEDIA_TYPES: Tuple[str, ...] = ("movie", "tv")
STATUSES: Tuple[str, ...] = ("watchlist", "watching", "watched")

# Heavy catalog payloads that never get persisted.
TRANSIENT_FIELDS: Tuple[str, ...] = (
    "images", "videos", "credits", "keywords", "recommendations", "similar", "reviews",
)
# Reconcile bookkeeping; kept on the wire, dropped from exports.
OP_FIELD = "clientOpId"

MOVIE_ONLY: Tuple[str, ...] = ("watched",)
TV_ONLY: Tuple[str, ...] = ("watchedEpisodes",)

__all__ = [
    "MEDIA_TYPES", "STATUSES", "TRANSIENT_FIELDS", "OP_FIELD",
    "InvalidItem", "PaginationCursor",
    "strip_transient", "strip_for_export", "new_watchlist_item", "check_item",
    "season_key", "watched_episode_count", "derive_status", "normalize_tags", "item_id",
]


class InvalidItem(ValueError):
    pass


@dataclass
class PaginationCursor:
    has_more: bool = True
    page: int = 0
    loading: bool = False

    def as_dict(self) -> dict[str, Any]:
        d = asdict(self)
        return {"hasMore": d["has_more"], "page": d["page"], "loading": d["loading"]}


# --- tiny utils ---------------------------------------------------------------

def item_id(obj: Mapping[str, Any]) -> int:
    raw = obj.get("id")
    if isinstance(raw, bool) or raw is None:
        raise InvalidItem("ID must be a number")
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise InvalidItem("ID must be a number") from None


def season_key(season: Any) -> str:
    # JSON object keys are strings; keep them that way in memory too.
    return str(int(season))


def normalize_tags(tags: Iterable[Any] | None) -> list[str]:
    out: list[str] = []
    for t in tags or []:
        s = str(t).strip()
        if s and s not in out:
            out.append(s)
    return out


# --- shaping ------------------------------------------------------------------

def strip_transient(media: Mapping[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in media.items() if k not in TRANSIENT_FIELDS}


def strip_for_export(item: Mapping[str, Any]) -> dict[str, Any]:
    out = strip_transient(item)
    out.pop(OP_FIELD, None)
    return out


def new_watchlist_item(media: Mapping[str, Any]) -> dict[str, Any]:
    mt = str(media.get("media_type") or "")
    if mt not in MEDIA_TYPES:
        raise InvalidItem("media_type must be 'movie' or 'tv'")
    item = strip_transient(media)
    item["id"] = item_id(media)
    item["tags"] = []
    if mt == "movie":
        for k in TV_ONLY:
            item.pop(k, None)
        item["watched"] = False
    else:
        for k in MOVIE_ONLY:
            item.pop(k, None)
        item["watchedEpisodes"] = {}
    return item


def check_item(item: Any) -> dict[str, Any]:
    """Validate one stored/imported item and return it as a plain dict."""
    if not isinstance(item, Mapping):
        raise InvalidItem("item must be an object")
    raw = item.get("id")
    # stored ids are JSON numbers, never strings or floats
    if isinstance(raw, bool) or not isinstance(raw, int):
        raise InvalidItem("ID must be a number")
    mt = item.get("media_type")
    if mt not in MEDIA_TYPES:
        raise InvalidItem("media_type must be 'movie' or 'tv'")
    foreign = TV_ONLY if mt == "movie" else MOVIE_ONLY
    if any(k in item for k in foreign):
        raise InvalidItem(f"{mt} item carries fields of the other media type")
    return {**item, "id": int(raw)}


# --- status -------------------------------------------------------------------

def watched_episode_count(item: Mapping[str, Any]) -> int:
    eps = item.get("watchedEpisodes") or {}
    if not isinstance(eps, Mapping):
        return 0
    return sum(len(v) for v in eps.values() if isinstance(v, list))


def derive_status(item: Mapping[str, Any]) -> str:
    server = item.get("watchlistStatus")
    if server in STATUSES:
        return str(server)
    if item.get("media_type") == "movie":
        return "watched" if item.get("watched") else "watchlist"
    count = watched_episode_count(item)
    if count == 0:
        return "watchlist"
    if count >= int(item.get("number_of_episodes") or 0):
        return "watched"
    return "watching"
