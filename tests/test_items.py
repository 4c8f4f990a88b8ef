# CineTrack test scripts
from __future__ import annotations

import pytest

from conftest import movie, show
from ct_platform.items import (
    InvalidItem,
    PaginationCursor,
    check_item,
    derive_status,
    item_id,
    new_watchlist_item,
    normalize_tags,
    season_key,
    strip_for_export,
    watched_episode_count,
)


def test_new_movie_item_shape() -> None:
    it = new_watchlist_item(movie(1, credits={"cast": []}, watchedEpisodes={"1": [1]}))
    assert it["watched"] is False
    assert it["tags"] == []
    assert "credits" not in it
    assert "watchedEpisodes" not in it


def test_new_show_item_shape() -> None:
    it = new_watchlist_item(show(2, watched=True, videos={"results": []}))
    assert it["watchedEpisodes"] == {}
    assert "watched" not in it
    assert "videos" not in it


def test_new_item_rejects_unknown_media_type() -> None:
    with pytest.raises(InvalidItem):
        new_watchlist_item({"id": 1, "media_type": "person"})


@pytest.mark.parametrize("raw", [None, True, "abc", [1]])
def test_item_id_rejects_non_numbers(raw) -> None:
    with pytest.raises(InvalidItem):
        item_id({"id": raw})


def test_check_item_rejects_cross_type_fields() -> None:
    with pytest.raises(InvalidItem):
        check_item(movie(1, watchedEpisodes={}))
    with pytest.raises(InvalidItem):
        check_item(show(1, watched=True))
    with pytest.raises(InvalidItem):
        check_item("not a dict")
    assert check_item(movie(1, watched=True))["id"] == 1


@pytest.mark.parametrize("raw", ["5", 5.5, 5.0, True, None])
def test_check_item_requires_integer_id(raw) -> None:
    with pytest.raises(InvalidItem):
        check_item(movie(1, id=raw))


def test_strip_for_export_drops_transient_and_op_token() -> None:
    out = strip_for_export(movie(1, images={}, clientOpId="a:1", tags=["x"]))
    assert "images" not in out and "clientOpId" not in out
    assert out["tags"] == ["x"]


def test_season_keys_are_strings() -> None:
    assert season_key(3) == "3"
    assert season_key("04") == "4"


def test_normalize_tags() -> None:
    assert normalize_tags([" a", "b", "a", "", 5]) == ["a", "b", "5"]
    assert normalize_tags(None) == []


def test_derive_status_rules() -> None:
    assert derive_status(movie(1, watched=True)) == "watched"
    assert derive_status(movie(1, watched=False)) == "watchlist"
    assert derive_status(show(2, episodes=3, watchedEpisodes={})) == "watchlist"
    assert derive_status(show(2, episodes=3, watchedEpisodes={"1": [1]})) == "watching"
    assert derive_status(show(2, episodes=3, watchedEpisodes={"1": [1, 2], "2": [1]})) == "watched"
    assert derive_status(movie(1, watched=True, watchlistStatus="watchlist")) == "watchlist"


def test_watched_episode_count_ignores_garbage() -> None:
    assert watched_episode_count({"watchedEpisodes": {"1": [1, 2], "2": "x"}}) == 2
    assert watched_episode_count({"watchedEpisodes": []}) == 0


def test_pagination_cursor_dict() -> None:
    assert PaginationCursor().as_dict() == {"hasMore": True, "page": 0, "loading": False}
