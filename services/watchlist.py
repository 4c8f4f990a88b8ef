# services/watchlist.py
# CineTrack - Watchlist store: optimistic mutations, paging and real-time reconcile
# Copyright (c) 2025-2026 CineTrack
from __future__ import annotations

import copy
import itertools
import os
import random
import threading
import uuid
from concurrent.futures import ThreadPoolExecutor
from datetime import date
from pathlib import Path
from typing import Any, Callable, Iterable, Mapping

from _logging import log as _real_log
from ct_platform.config_base import CONFIG_BASE
from ct_platform.items import (
    OP_FIELD,
    STATUSES,
    InvalidItem,
    PaginationCursor,
    item_id,
    new_watchlist_item,
    normalize_tags,
    season_key,
)
from providers.backend.client import ApiError
from providers.metadata._meta_TMDB import CatalogError
from services.export import (
    EXPORT_ERROR,
    IMPORT_ERROR,
    READ_ERROR,
    ImportFormatError,
    dump_watchlist,
    export_filename,
    parse_import,
)
from services.statistics import (
    all_unique_tags,
    progress_map,
    split_by_status,
    stats_for,
    upcoming_episodes,
    watchlist_ids,
)


def log(msg: str, level: str = "INFO") -> None:
    _real_log(msg, level=level, module="WATCHLIST")


LOAD_ERROR = "Could not load your watchlist. Please try refreshing."
ADD_ERROR = "Failed to add item to watchlist."
REMOVE_ERROR = "Failed to remove item from watchlist."
SAVE_ERROR = "Failed to save progress. Please try again."
TAGS_ERROR = "Failed to save tags. Please try again."
WIPE_ERROR = "Failed to delete your watchlist data."


# ── pending operations ────────────────────────────────────────────────────

class PendingOps:
    """Per-store echo markers.

    Every local write takes a token ``<session>:<seq>`` that rides along on the
    PUT body and comes back on the server's broadcast. While an id is pending,
    any event carrying one of our own tokens is ours (stale echoes of earlier
    writes included). Once nothing is pending for the id, every event is
    external: the server stores the token, so other clients may send it back
    on later edits. Events without a token fall back to the plain
    "id is pending" check.
    """

    def __init__(self, session_id: str | None = None) -> None:
        self.session = session_id or uuid.uuid4().hex
        self._seq = itertools.count(1)
        self._ops: dict[int, str] = {}
        self._lock = threading.Lock()

    def begin(self, mid: int) -> str:
        tok = f"{self.session}:{next(self._seq)}"
        with self._lock:
            self._ops[int(mid)] = tok
        return tok

    def token_for(self, mid: int) -> str | None:
        with self._lock:
            return self._ops.get(int(mid))

    def is_own(self, token: Any) -> bool:
        return isinstance(token, str) and token.startswith(f"{self.session}:")

    def settle(self, mid: int, token: Any = None) -> bool:
        """Return True when an inbound event for ``mid`` is our own echo."""
        mid = int(mid)
        with self._lock:
            if mid not in self._ops:
                return False
            if token:
                if not self.is_own(token):
                    return False
                if self._ops[mid] == token:
                    del self._ops[mid]
                return True
            del self._ops[mid]
            return True

    def clear(self) -> None:
        with self._lock:
            self._ops.clear()

    def __contains__(self, mid: object) -> bool:
        with self._lock:
            return mid in self._ops

    def __len__(self) -> int:
        with self._lock:
            return len(self._ops)


# ── store ─────────────────────────────────────────────────────────────────

class WatchlistStore:
    def __init__(
        self,
        backend: Any,
        catalog: Any = None,
        channel: Any = None,
        *,
        page_size: int = 20,
        recommendation_seeds: int = 3,
        session_id: str | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.backend = backend
        self.catalog = catalog
        self.channel = None
        self.page_size = max(1, int(page_size))
        self.recommendation_seeds = max(1, int(recommendation_seeds))
        self.pending = PendingOps(session_id)
        self._rng = rng or random.Random()
        self._lock = threading.RLock()
        self._items: list[dict[str, Any]] = []
        self._unsubs: list[Callable[[], None]] = []

        self.error: str | None = None
        self.is_loading = False
        self.active_tag_filter: str | None = None
        self.pagination: dict[str, PaginationCursor] = {s: PaginationCursor() for s in STATUSES}
        self.recommendations: list[dict[str, Any]] = []
        self.recommendations_loading = False

        if channel is not None:
            self.bind_channel(channel)

    # ── internals ─────────────────────────────────────────────────────────
    def _index(self, mid: int) -> int | None:
        for n, it in enumerate(self._items):
            if it.get("id") == mid:
                return n
        return None

    def _fail(self, message: str, exc: BaseException | None = None) -> None:
        if exc is not None:
            log(f"{message} ({exc})", "ERROR")
        with self._lock:
            self.error = message

    def clear_error(self) -> None:
        with self._lock:
            self.error = None

    def _mutate_field(
        self,
        mid: int,
        field: str,
        compute: Callable[[Any], Any],
        *,
        media_type: str | None = None,
        error: str = SAVE_ERROR,
    ) -> bool:
        with self._lock:
            idx = self._index(mid)
            if idx is None:
                return False
            cur = self._items[idx]
            if media_type and cur.get("media_type") != media_type:
                return False
            before = copy.deepcopy(cur.get(field))
            updated = copy.deepcopy(cur)
            updated[field] = compute(copy.deepcopy(before))
            # a stale server status would hide the change
            updated.pop("watchlistStatus", None)
            token = self.pending.begin(mid)
            updated[OP_FIELD] = token
            self._items[idx] = updated
            payload = copy.deepcopy(updated)

        try:
            self.backend.put_item(payload)
        except ApiError as e:
            with self._lock:
                j = self._index(mid)
                # a newer write on the same id owns the field now
                if j is not None and self.pending.token_for(mid) == token:
                    self._items[j][field] = before
            self._fail(error, e)
            return False
        return True

    # ── membership ────────────────────────────────────────────────────────
    def toggle_membership(self, media: Mapping[str, Any]) -> bool:
        """Add or remove ``media``. Returns whether it is on the list afterwards."""
        mid = item_id(media)
        with self._lock:
            idx = self._index(mid)
            if idx is not None:
                removed = self._items.pop(idx)
                self.pending.begin(mid)
                added = None
            else:
                added = new_watchlist_item(media)
                added[OP_FIELD] = self.pending.begin(mid)
                self._items.insert(0, added)
                payload = copy.deepcopy(added)

        if added is None:
            try:
                self.backend.delete_item(mid)
            except ApiError as e:
                with self._lock:
                    if self._index(mid) is None:
                        self._items.insert(min(idx, len(self._items)), removed)
                self._fail(REMOVE_ERROR, e)
                return True
            log(f"removed {mid} from watchlist", "DEBUG")
            return False

        try:
            self.backend.put_item(payload)
        except ApiError as e:
            with self._lock:
                j = self._index(mid)
                if j is not None:
                    self._items.pop(j)
            self._fail(ADD_ERROR, e)
            return False
        log(f"added {mid} ({added['media_type']}) to watchlist", "DEBUG")
        return True

    def toggle_membership_from_search_result(self, result: Mapping[str, Any]) -> bool:
        mid = item_id(result)
        with self._lock:
            present = self._index(mid) is not None
        if present:
            return self.toggle_membership(result)
        self.clear_error()
        if self.catalog is None:
            raise RuntimeError("no catalog client configured")
        try:
            details = self.catalog.details(mid, str(result.get("media_type") or ""))
        except (CatalogError, ValueError) as e:
            self._fail(ADD_ERROR, e)
            return False
        return self.toggle_membership(details)

    # ── progress ──────────────────────────────────────────────────────────
    def toggle_movie_watched(self, mid: int) -> bool:
        return self._mutate_field(int(mid), "watched", lambda v: not bool(v), media_type="movie")

    @staticmethod
    def _episodes_map(raw: Any) -> dict[str, list[int]]:
        if not isinstance(raw, Mapping):
            return {}
        return {season_key(k): [int(e) for e in (v or [])] for k, v in raw.items()}

    def toggle_episode_watched(self, mid: int, season: int, episode: int) -> bool:
        key, ep = season_key(season), int(episode)

        def flip(raw: Any) -> dict[str, list[int]]:
            eps = self._episodes_map(raw)
            cur = list(dict.fromkeys(eps.get(key) or []))
            if ep in cur:
                cur.remove(ep)
            else:
                cur.append(ep)
            eps[key] = cur
            return eps

        return self._mutate_field(int(mid), "watchedEpisodes", flip, media_type="tv")

    def toggle_season_watched(self, mid: int, season: int, all_episodes: Iterable[int]) -> bool:
        key = season_key(season)
        full = list(dict.fromkeys(int(e) for e in all_episodes))

        def flip(raw: Any) -> dict[str, list[int]]:
            eps = self._episodes_map(raw)
            eps[key] = [] if len(eps.get(key) or []) == len(full) else list(full)
            return eps

        return self._mutate_field(int(mid), "watchedEpisodes", flip, media_type="tv")

    def update_tags(self, mid: int, tags: Iterable[Any]) -> bool:
        new = normalize_tags(tags)
        return self._mutate_field(int(mid), "tags", lambda _old: list(new), error=TAGS_ERROR)

    # ── loading ───────────────────────────────────────────────────────────
    def load_watchlist(self) -> bool:
        with self._lock:
            self.is_loading = True
        try:
            with ThreadPoolExecutor(max_workers=len(STATUSES), thread_name_prefix="wl-load") as ex:
                futs = {s: ex.submit(self.backend.get_by_status, s, 1, self.page_size) for s in STATUSES}
                pages = {s: f.result() for s, f in futs.items()}
        except ApiError as e:
            with self._lock:
                self.is_loading = False
            self._fail(LOAD_ERROR, e)
            return False

        merged: list[dict[str, Any]] = []
        seen: set[int] = set()
        for s in STATUSES:
            for it in pages[s].get("items") or []:
                mid = it.get("id")
                if mid in seen:
                    continue
                seen.add(mid)
                merged.append(dict(it))

        with self._lock:
            self._items = merged
            self.pagination = {
                s: PaginationCursor(has_more=bool(pages[s].get("hasMore")), page=1) for s in STATUSES
            }
            self.is_loading = False
        log(f"loaded {len(merged)} items", "INFO")

        if self.channel is not None:
            self.channel.connect()
        return True

    def load_more_by_status(self, status: str) -> int:
        """Fetch the next page of one bucket. Returns the number of new items."""
        if status not in STATUSES:
            raise ValueError(f"unknown status: {status}")
        with self._lock:
            cur = self.pagination[status]
            if not cur.has_more or cur.loading:
                return 0
            cur.loading = True
            nxt = cur.page + 1

        try:
            res = self.backend.get_by_status(status, nxt, self.page_size)
        except ApiError as e:
            log(f"Failed to load more {status} items: {e}", "ERROR")
            with self._lock:
                self.pagination[status].loading = False
            return 0

        with self._lock:
            ids = {it.get("id") for it in self._items}
            fresh: list[dict[str, Any]] = []
            for it in res.get("items") or []:
                if it.get("id") in ids:
                    continue
                ids.add(it.get("id"))
                fresh.append(dict(it))
            self._items.extend(fresh)
            self.pagination[status] = PaginationCursor(has_more=bool(res.get("hasMore")), page=nxt)
        return len(fresh)

    # ── export / import ───────────────────────────────────────────────────
    def export_payload(self) -> tuple[str, str] | None:
        """Filename and body for an export of the whole server-side list.

        Only loaded pages live in memory, so the items come from the backend.
        """
        try:
            items = self.backend.get_all_items()
        except ApiError as e:
            self._fail(EXPORT_ERROR, e)
            return None
        return export_filename(), dump_watchlist(items)

    def export_watchlist(self, directory: str | os.PathLike[str] | None = None) -> Path | None:
        out = self.export_payload()
        if out is None:
            return None
        name, body = out
        target = Path(directory) if directory else CONFIG_BASE() / "exports"
        try:
            target.mkdir(parents=True, exist_ok=True)
            path = target / name
            path.write_text(body + "\n", encoding="utf-8")
        except OSError as e:
            self._fail(EXPORT_ERROR, e)
            return None
        _real_log(f"exported watchlist to {path}", level="INFO", module="EXPORT")
        return path

    def import_watchlist(self, source: str | bytes | os.PathLike[str]) -> bool:
        """Replace the whole watchlist, local and remote, with an export file's contents."""
        raw: str | bytes
        if isinstance(source, os.PathLike):
            try:
                raw = Path(source).read_bytes()
            except OSError as e:
                self._fail(READ_ERROR, e)
                return False
        else:
            raw = source

        try:
            items = parse_import(raw)
        except ImportFormatError as e:
            self._fail(IMPORT_ERROR, e)
            return False

        try:
            self.backend.import_items(items)
        except ApiError as e:
            self._fail(IMPORT_ERROR, e)
            return False

        with self._lock:
            self._items = copy.deepcopy(items)
        _real_log(f"imported {len(items)} items", level="SUCCESS", module="EXPORT")
        return True

    def reset(self) -> None:
        with self._lock:
            self._items = []
            self.pagination = {s: PaginationCursor() for s in STATUSES}
            self.recommendations = []
            self.error = None
            self.active_tag_filter = None
        self.pending.clear()

    def wipe(self) -> bool:
        try:
            self.backend.wipe_watchlist()
        except ApiError as e:
            self._fail(WIPE_ERROR, e)
            return False
        with self._lock:
            self._items = []
            self.pagination = {s: PaginationCursor(has_more=False, page=0) for s in STATUSES}
        self.pending.clear()
        return True

    # ── recommendations ───────────────────────────────────────────────────
    def fetch_recommendations(self) -> list[dict[str, Any]]:
        with self._lock:
            snapshot = copy.deepcopy(self._items)
        if not snapshot:
            with self._lock:
                self.recommendations = []
            return []
        if self.catalog is None:
            raise RuntimeError("no catalog client configured")

        seeds = self._rng.sample(snapshot, min(self.recommendation_seeds, len(snapshot)))
        with self._lock:
            self.recommendations_loading = True
        try:
            with ThreadPoolExecutor(max_workers=len(seeds), thread_name_prefix="wl-recs") as ex:
                batches = list(ex.map(lambda s: self.catalog.recommendations(s["id"], s["media_type"]), seeds))
        except CatalogError as e:
            log(f"Failed to fetch recommendations: {e}", "ERROR")
            with self._lock:
                self.recommendations_loading = False
                return list(self.recommendations)

        have = watchlist_ids(snapshot)
        uniq: dict[int, dict[str, Any]] = {}
        for rec in itertools.chain.from_iterable(batches):
            rid = rec.get("id")
            if rid in have or not rec.get("poster_path"):
                continue
            uniq[rid] = rec
        with self._lock:
            self.recommendations = list(uniq.values())
            self.recommendations_loading = False
            return list(self.recommendations)

    # ── real-time reconcile ───────────────────────────────────────────────
    def sync_item(self, item: Mapping[str, Any]) -> bool:
        """Apply an inbound update. Returns False when it was our own echo."""
        try:
            mid = item_id(item)
        except InvalidItem as e:
            log(f"ignoring malformed update: {e}", "WARN")
            return False
        if self.pending.settle(mid, item.get(OP_FIELD)):
            log(f"suppressed echo for {mid}", "DEBUG")
            return False
        row = dict(item)
        row["id"] = mid
        with self._lock:
            idx = self._index(mid)
            if idx is None:
                self._items.insert(0, row)
            else:
                self._items[idx] = row
        return True

    def delete_item(self, mid: int, token: Any = None) -> bool:
        mid = int(mid)
        if self.pending.settle(mid, token):
            log(f"suppressed delete echo for {mid}", "DEBUG")
            return False
        with self._lock:
            self._items = [it for it in self._items if it.get("id") != mid]
        return True

    def _on_delete(self, data: Any) -> None:
        if isinstance(data, Mapping):
            try:
                self.delete_item(item_id(data), data.get(OP_FIELD))
            except InvalidItem as e:
                log(f"ignoring malformed delete: {e}", "WARN")
        elif isinstance(data, int) and not isinstance(data, bool):
            self.delete_item(data)

    def handle_sync(self, data: Any = None) -> None:
        trigger = (data or {}).get("trigger") if isinstance(data, Mapping) else None
        log(f"server sync ({trigger or 'unknown'}), reloading", "INFO")
        self.load_watchlist()

    def bind_channel(self, channel: Any) -> None:
        self.unbind_channel()
        self.channel = channel
        self._unsubs = [
            channel.on_update(self.sync_item),
            channel.on_delete(self._on_delete),
            channel.on_sync(self.handle_sync),
        ]

    def unbind_channel(self) -> None:
        for off in self._unsubs:
            off()
        self._unsubs = []
        self.channel = None

    # ── derived views ─────────────────────────────────────────────────────
    @property
    def items(self) -> list[dict[str, Any]]:
        with self._lock:
            return copy.deepcopy(self._items)

    def get(self, mid: int) -> dict[str, Any] | None:
        with self._lock:
            idx = self._index(int(mid))
            return copy.deepcopy(self._items[idx]) if idx is not None else None

    def ids(self) -> set[int]:
        return watchlist_ids(self.items)

    def set_tag_filter(self, tag: str | None) -> None:
        with self._lock:
            self.active_tag_filter = (tag or "").strip() or None

    def buckets(self, tag: str | None = None) -> dict[str, list[dict[str, Any]]]:
        return split_by_status(self.items, tag if tag is not None else self.active_tag_filter).as_dict()

    def progress(self) -> dict[int, float]:
        return progress_map(split_by_status(self.items).watching)

    def upcoming(self, today: date | None = None) -> list[dict[str, Any]]:
        return upcoming_episodes(self.items, today)

    def tags(self) -> list[str]:
        return all_unique_tags(self.items)

    def stats(self) -> dict[str, Any]:
        return stats_for(self.items)

    def snapshot(self) -> dict[str, Any]:
        items = self.items
        b = split_by_status(items, self.active_tag_filter)
        with self._lock:
            cursors = {s: c.as_dict() for s, c in self.pagination.items()}
            error, loading, tag = self.error, self.is_loading, self.active_tag_filter
        return {
            "buckets": b.as_dict(),
            "progress": progress_map(b.watching),
            "tags": all_unique_tags(items),
            "upcoming": upcoming_episodes(items),
            "pagination": cursors,
            "active_tag_filter": tag,
            "is_loading": loading,
            "error": error,
            "count": len(items),
        }
