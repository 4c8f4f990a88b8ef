# CineTrack test scripts
from __future__ import annotations

import copy
import sys
from collections import defaultdict
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Mapping

import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from providers.backend.client import ApiError  # noqa: E402
from providers.metadata._meta_TMDB import CatalogError  # noqa: E402


@pytest.fixture()
def config_base(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.setenv("CONFIG_BASE", str(tmp_path))
    monkeypatch.delenv("TMDB_API_READ_ACCESS_TOKEN", raising=False)
    monkeypatch.delenv("CINETRACK_BACKEND_URL", raising=False)
    return tmp_path


def movie(mid: int, **kw: Any) -> dict[str, Any]:
    base = {
        "id": mid,
        "media_type": "movie",
        "title": f"Movie {mid}",
        "runtime": 100,
        "genres": [{"id": 18, "name": "Drama"}],
        "vote_average": 7.0,
        "poster_path": f"/m{mid}.jpg",
    }
    base.update(kw)
    return base


def show(mid: int, episodes: int = 10, **kw: Any) -> dict[str, Any]:
    base = {
        "id": mid,
        "media_type": "tv",
        "name": f"Show {mid}",
        "number_of_episodes": episodes,
        "episode_run_time": [30],
        "genres": [{"id": 10765, "name": "Sci-Fi & Fantasy"}],
        "vote_average": 8.0,
        "poster_path": f"/s{mid}.jpg",
    }
    base.update(kw)
    return base


@dataclass
class FakeBackend:
    items: dict[int, dict[str, Any]] = field(default_factory=dict)
    pages: dict[str, list[list[dict[str, Any]]]] = field(default_factory=dict)
    fail: set[str] = field(default_factory=set)
    calls: list[tuple[str, Any]] = field(default_factory=list)

    def _check(self, name: str) -> None:
        if name in self.fail:
            raise ApiError(f"{name} rejected", 500)

    def put_item(self, item: Mapping[str, Any]) -> dict[str, Any]:
        self.calls.append(("put", copy.deepcopy(dict(item))))
        self._check("put_item")
        self.items[int(item["id"])] = copy.deepcopy(dict(item))
        return dict(item)

    def delete_item(self, mid: int) -> None:
        self.calls.append(("delete", mid))
        self._check("delete_item")
        self.items.pop(int(mid), None)

    def get_by_status(self, status: str, page: int = 1, limit: int = 20) -> dict[str, Any]:
        self.calls.append(("by_status", (status, page, limit)))
        self._check("get_by_status")
        pages = self.pages.get(status) or []
        rows = pages[page - 1] if 0 < page <= len(pages) else []
        return {
            "items": copy.deepcopy(rows),
            "hasMore": page < len(pages),
            "page": page,
            "totalCount": sum(len(p) for p in pages),
        }

    def import_items(self, items: list[Mapping[str, Any]]) -> dict[str, Any]:
        self.calls.append(("import", copy.deepcopy(list(items))))
        self._check("import_items")
        self.items = {int(i["id"]): dict(i) for i in items}
        return {"ok": True, "count": len(items)}

    def wipe_watchlist(self) -> None:
        self.calls.append(("wipe", None))
        self._check("wipe_watchlist")
        self.items.clear()

    def get_all_items(self) -> list[dict[str, Any]]:
        self.calls.append(("all", None))
        self._check("get_all_items")
        return [copy.deepcopy(v) for v in self.items.values()]

    def get_storage_stats(self) -> dict[str, Any]:
        self._check("get_storage_stats")
        return {"user": {"itemCount": len(self.items), "isDemo": False}}

    def puts(self) -> list[dict[str, Any]]:
        return [c[1] for c in self.calls if c[0] == "put"]


class FakeChannel:
    def __init__(self) -> None:
        self.handlers: dict[str, list[Callable[[Any], None]]] = defaultdict(list)
        self.connects = 0
        self.disconnects = 0

    def _on(self, event: str, handler: Callable[[Any], None]) -> Callable[[], None]:
        self.handlers[event].append(handler)
        return lambda: self.handlers[event].remove(handler)

    def on_update(self, h):
        return self._on("watchlist:update", h)

    def on_delete(self, h):
        return self._on("watchlist:delete", h)

    def on_sync(self, h):
        return self._on("watchlist:sync", h)

    def on_notification(self, h):
        return self._on("notification:new", h)

    def on_notification_read(self, h):
        return self._on("notification:read", h)

    def on_notification_delete(self, h):
        return self._on("notification:delete", h)

    def on_notification_read_all(self, h):
        return self._on("notification:read-all", h)

    def emit(self, event: str, data: Any = None) -> None:
        for h in list(self.handlers[event]):
            h(data)

    def connect(self) -> bool:
        self.connects += 1
        return True

    def disconnect(self) -> None:
        self.disconnects += 1

    def is_connected(self) -> bool:
        return self.connects > self.disconnects


@dataclass
class FakeCatalog:
    details_by_id: dict[int, dict[str, Any]] = field(default_factory=dict)
    recs_by_id: dict[int, list[dict[str, Any]]] = field(default_factory=dict)
    fail: bool = False

    def details(self, mid: int, media_type: str) -> dict[str, Any]:
        if self.fail:
            raise CatalogError("TMDB API request failed: Not Found", 404)
        return {**self.details_by_id[int(mid)], "media_type": media_type}

    def recommendations(self, mid: int, media_type: str) -> list[dict[str, Any]]:
        if self.fail:
            raise CatalogError("TMDB API request failed: Bad Gateway", 502)
        return [dict(r, media_type=media_type) for r in self.recs_by_id.get(int(mid), [])]

    def fetch_and_cache_logo(self, mid: int, media_type: str) -> str | None:
        return None


@pytest.fixture()
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture()
def channel() -> FakeChannel:
    return FakeChannel()


@pytest.fixture()
def catalog() -> FakeCatalog:
    return FakeCatalog()


@pytest.fixture()
def store(backend: FakeBackend, catalog: FakeCatalog, channel: FakeChannel):
    from services.watchlist import WatchlistStore

    return WatchlistStore(backend, catalog, channel, page_size=2, session_id="me")
