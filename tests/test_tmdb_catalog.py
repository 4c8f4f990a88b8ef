# CineTrack test scripts
from __future__ import annotations

import pytest
import responses
from responses import matchers

from providers.metadata._meta_TMDB import (
    CatalogError,
    TmdbCatalog,
    best_trailer,
    combine_rent_buy,
    logo_url,
    select_best_logo,
)

API = "https://api.themoviedb.org/3"


def _catalog(token: str = "tok") -> TmdbCatalog:
    return TmdbCatalog(lambda: {"tmdb": {"read_access_token": token}})


def test_search_keeps_only_movies_and_shows() -> None:
    cat = _catalog()
    with responses.RequestsMock() as rsps:
        rsps.add(
            responses.GET,
            f"{API}/search/multi",
            match=[matchers.query_param_matcher({"query": "dune"})],
            json={"results": [{"id": 1, "media_type": "movie"}, {"id": 2, "media_type": "person"}, {"id": 3, "media_type": "tv"}]},
            status=200,
        )
        out = cat.search("  dune ")
        assert rsps.calls[0].request.headers["Authorization"] == "Bearer tok"
    assert [r["id"] for r in out] == [1, 3]


def test_blank_search_makes_no_request() -> None:
    with responses.RequestsMock():
        assert _catalog().search("   ") == []


def test_popular_tv_is_tagged() -> None:
    cat = _catalog()
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, f"{API}/tv/popular", json={"results": [{"id": 9, "name": "X"}]}, status=200)
        assert cat.popular_tv() == [{"id": 9, "name": "X", "media_type": "tv"}]


def test_details_appends_media_type() -> None:
    cat = _catalog()
    with responses.RequestsMock() as rsps:
        rsps.add(
            responses.GET,
            f"{API}/movie/42",
            match=[matchers.query_param_matcher({"append_to_response": "videos,credits,images"})],
            json={"id": 42, "title": "Answer"},
            status=200,
        )
        d = cat.details(42, "movie")
    assert d["media_type"] == "movie"
    assert d["title"] == "Answer"


def test_details_rejects_other_kinds() -> None:
    with pytest.raises(ValueError):
        _catalog().details(1, "person")


def test_http_error_carries_status() -> None:
    cat = _catalog()
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, f"{API}/tv/1/season/3", json={"status_message": "nope"}, status=404)
        with pytest.raises(CatalogError) as ei:
            cat.season_details(1, 3)
    assert ei.value.status == 404
    assert str(ei.value).startswith("TMDB API request failed")


def test_missing_token() -> None:
    with pytest.raises(CatalogError):
        _catalog("").trending()


def test_recommendations_tagged_with_seed_kind() -> None:
    cat = _catalog()
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, f"{API}/tv/5/recommendations", json={"results": [{"id": 6}]}, status=200)
        assert cat.recommendations(5, "show") == [{"id": 6, "media_type": "tv"}]


def test_logo_is_memoised_including_failures() -> None:
    cat = _catalog()
    with responses.RequestsMock() as rsps:
        rsps.add(
            responses.GET,
            f"{API}/movie/1/images",
            json={"logos": [{"file_path": "/a.png", "iso_639_1": "en"}, {"file_path": "/b.svg", "iso_639_1": "fr"}]},
            status=200,
        )
        rsps.add(responses.GET, f"{API}/movie/2/images", json={}, status=500)

        assert cat.fetch_and_cache_logo(1, "movie") == "https://image.tmdb.org/t/p/original/b.svg"
        assert cat.fetch_and_cache_logo(1, "movie") == "https://image.tmdb.org/t/p/original/b.svg"
        assert cat.fetch_and_cache_logo(2, "movie") is None
        assert cat.fetch_and_cache_logo(2, "movie") is None
        assert len(rsps.calls) == 2

    assert cat.cached_logo(2) == (True, None)
    assert cat.cached_logo(3) == (False, None)


def test_select_best_logo_priority() -> None:
    logos = [
        {"file_path": "/fr.png", "iso_639_1": "fr"},
        {"file_path": "/en.png", "iso_639_1": "en"},
        {"file_path": "/fr.svg", "iso_639_1": "fr"},
        {"file_path": "/en.svg", "iso_639_1": "en"},
    ]
    assert select_best_logo(logos)["file_path"] == "/en.svg"
    assert select_best_logo(logos[:3])["file_path"] == "/fr.svg"
    assert select_best_logo(logos[:2])["file_path"] == "/en.png"
    assert select_best_logo(logos[:1])["file_path"] == "/fr.png"
    assert select_best_logo([]) is None
    assert logo_url(None) == ""


def test_best_trailer_prefers_official_youtube_trailer() -> None:
    videos = {
        "results": [
            {"key": "t1", "site": "Vimeo", "type": "Trailer", "official": True},
            {"key": "t2", "site": "YouTube", "type": "Teaser", "official": True},
            {"key": "t3", "site": "YouTube", "type": "Trailer", "official": False},
            {"key": "t4", "site": "YouTube", "type": "Trailer", "official": True},
        ]
    }
    assert best_trailer(videos)["key"] == "t4"
    assert best_trailer({"results": videos["results"][:3]})["key"] == "t3"
    assert best_trailer(None) is None


def test_combine_rent_buy_dedupes() -> None:
    prov = {
        "rent": [{"provider_id": 2, "provider_name": "Apple"}],
        "buy": [{"provider_id": 2, "provider_name": "Apple"}, {"provider_id": 3, "provider_name": "Google"}],
    }
    assert [p["provider_id"] for p in combine_rent_buy(prov)] == [2, 3]
    assert combine_rent_buy(None) == []
