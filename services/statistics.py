# services/statistics.py
# CineTrack - Derived watchlist views (status buckets, progress, tags, watch stats)
# Copyright (c) 2025-2026 CineTrack
from __future__ import annotations

from collections import Counter
from datetime import date
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

from ct_platform.items import derive_status, watched_episode_count

AVG_EPISODE_RUNTIME = 45  # minutes, when a show has no episode_run_time


@dataclass
class StatusBuckets:
    watchlist: list[dict[str, Any]] = field(default_factory=list)
    watching: list[dict[str, Any]] = field(default_factory=list)
    watched: list[dict[str, Any]] = field(default_factory=list)

    def as_dict(self) -> dict[str, list[dict[str, Any]]]:
        return {"watchlist": self.watchlist, "watching": self.watching, "watched": self.watched}


def split_by_status(items: Iterable[Mapping[str, Any]], tag: str | None = None) -> StatusBuckets:
    out = StatusBuckets()
    for it in items:
        if tag and tag not in (it.get("tags") or []):
            continue
        st = derive_status(it)
        if st == "watched":
            out.watched.append(dict(it))
        elif st == "watching" and it.get("media_type") == "tv":
            out.watching.append(dict(it))
        else:
            out.watchlist.append(dict(it))
    return out


def progress_map(watching: Iterable[Mapping[str, Any]]) -> dict[int, float]:
    out: dict[int, float] = {}
    for it in watching:
        total = int(it.get("number_of_episodes") or 0)
        out[int(it["id"])] = (watched_episode_count(it) / total * 100) if total > 0 else 0.0
    return out


UPCOMING_LIMIT = 10


def upcoming_episodes(items: Iterable[Mapping[str, Any]], today: date | None = None) -> list[dict[str, Any]]:
    """Next episodes of tracked shows airing today or later, soonest first."""
    today = today or date.today()
    out: list[dict[str, Any]] = []
    for it in items:
        nxt = it.get("next_episode_to_air")
        if it.get("media_type") != "tv" or not isinstance(nxt, Mapping):
            continue
        try:
            aired = date.fromisoformat(str(nxt.get("air_date") or "")[:10])
        except ValueError:
            continue
        if aired < today:
            continue
        out.append({
            "id": int(it["id"]),
            "name": it.get("name"),
            "poster_path": it.get("poster_path"),
            "next_episode": f"S{nxt.get('season_number')}E{nxt.get('episode_number')}",
            "air_date": aired.isoformat(),
            "days_until": (aired - today).days,
        })
    out.sort(key=lambda r: r["days_until"])
    return out[:UPCOMING_LIMIT]


def all_unique_tags(items: Iterable[Mapping[str, Any]]) -> list[str]:
    tags: set[str] = set()
    for it in items:
        tags.update(str(t) for t in (it.get("tags") or []))
    return sorted(tags)


def watchlist_ids(items: Iterable[Mapping[str, Any]]) -> set[int]:
    return {int(it["id"]) for it in items}


def format_watch_time(minutes: float) -> str:
    """1d 2h 3m style; zero-valued parts are dropped."""
    m = int(minutes or 0)
    if m <= 0:
        return "0m"
    days, rest = divmod(m, 24 * 60)
    hours, mins = divmod(rest, 60)
    parts = [f"{v}{u}" for v, u in ((days, "d"), (hours, "h"), (mins, "m")) if v > 0]
    return " ".join(parts) or "0m"


def _show_runtime(show: Mapping[str, Any]) -> int:
    runs = show.get("episode_run_time") or []
    first = runs[0] if isinstance(runs, list) and runs else None
    return int(first) if isinstance(first, (int, float)) and first > 0 else AVG_EPISODE_RUNTIME


def calculate_watch_stats(
    items: list[Mapping[str, Any]],
    currently_watching: int,
    watched_items: list[Mapping[str, Any]],
) -> dict[str, Any]:
    movies = [i for i in items if i.get("media_type") == "movie"]
    shows = [i for i in items if i.get("media_type") == "tv"]

    watched_movies = [m for m in movies if m.get("watched")]
    movie_minutes = sum(int(m.get("runtime") or 0) for m in watched_movies)

    episodes = 0
    shows_done = 0
    tv_minutes = 0
    for s in shows:
        n = watched_episode_count(s)
        if n <= 0:
            continue
        episodes += n
        tv_minutes += n * _show_runtime(s)
        if n >= int(s.get("number_of_episodes") or 0):
            shows_done += 1

    total = len(items)
    completion = round(len(watched_items) / total * 100) if total else 0

    genres: Counter[str] = Counter()
    for it in watched_items:
        for g in it.get("genres") or []:
            name = g.get("name") if isinstance(g, Mapping) else None
            if name:
                genres[str(name)] += 1
    top = [{"name": n, "count": c} for n, c in genres.most_common(5)]

    ratings = [float(it.get("vote_average") or 0) for it in watched_items]
    ratings = [r for r in ratings if r > 0]
    avg = round(sum(ratings) / len(ratings), 1) if ratings else 0

    return {
        "shows": {
            "total_watch_time_minutes": tv_minutes,
            "total_episodes": episodes,
            "total_shows": shows_done,
        },
        "movies": {
            "total_watch_time_minutes": movie_minutes,
            "total_movies": len(watched_movies),
        },
        "summary": {
            "currently_watching": int(currently_watching),
            "completion_rate": completion,
            "top_genres": top,
            "average_rating": avg,
        },
    }


def stats_for(items: list[Mapping[str, Any]]) -> dict[str, Any]:
    b = split_by_status(items)
    stats = calculate_watch_stats(items, len(b.watching), b.watched)
    stats["total_watch_time"] = format_watch_time(
        stats["shows"]["total_watch_time_minutes"] + stats["movies"]["total_watch_time_minutes"]
    )
    return stats
