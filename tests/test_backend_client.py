# CineTrack test scripts
from __future__ import annotations

import json

import pytest
import requests
import responses
from responses import matchers

from providers.backend.client import ApiError, BackendClient, NetworkError, build_headers

BASE = "http://backend.test/api"


def _client(token: str | None = "tok") -> BackendClient:
    return BackendClient(BASE, lambda: token)


def test_build_headers() -> None:
    assert "Authorization" not in build_headers(None)
    assert build_headers("abc")["Authorization"] == "Bearer abc"


def test_put_item_sends_bearer_and_body() -> None:
    c = _client()
    with responses.RequestsMock() as rsps:
        rsps.add(responses.PUT, f"{BASE}/watchlist", json={"id": 1, "saved": True}, status=200)
        out = c.put_item({"id": 1, "media_type": "movie"})
        req = rsps.calls[0].request
        assert req.headers["Authorization"] == "Bearer tok"
        assert json.loads(req.body) == {"id": 1, "media_type": "movie"}
    assert out == {"id": 1, "saved": True}


def test_delete_and_empty_body() -> None:
    c = _client()
    with responses.RequestsMock() as rsps:
        rsps.add(responses.DELETE, f"{BASE}/watchlist/7", status=204)
        assert c.delete_item(7) is None


def test_get_by_status_normalises_page() -> None:
    c = _client()
    with responses.RequestsMock() as rsps:
        rsps.add(
            responses.GET,
            f"{BASE}/watchlist/by-status/watching",
            match=[matchers.query_param_matcher({"page": "2", "limit": "20"})],
            json={"items": [{"id": 3}], "hasMore": True},
            status=200,
        )
        res = c.get_by_status("watching", 2, 20)
    assert res == {"items": [{"id": 3}], "hasMore": True, "page": 2, "totalCount": 0}

    with pytest.raises(ValueError):
        c.get_by_status("dropped")


def test_error_message_from_server() -> None:
    c = _client()
    with responses.RequestsMock() as rsps:
        rsps.add(responses.POST, f"{BASE}/watchlist/import", json={"message": "Invalid items"}, status=400)
        with pytest.raises(ApiError) as ei:
            c.import_items([{"id": 1}])
    assert ei.value.message == "Invalid items"
    assert ei.value.status == 400


def test_error_without_json_body() -> None:
    c = _client()
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, f"{BASE}/stats", body="<html>oops</html>", status=500)
        with pytest.raises(ApiError) as ei:
            c.get_storage_stats()
    assert ei.value.message == "An unknown error occurred"


def test_get_item_404_is_none() -> None:
    c = _client()
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, f"{BASE}/watchlist/9", json={"message": "Not found"}, status=404)
        assert c.get_item(9) is None


def test_network_error() -> None:
    c = _client()
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, f"{BASE}/watchlist", body=requests.exceptions.ConnectionError("down"))
        with pytest.raises(NetworkError) as ei:
            c.get_all_items()
    assert ei.value.message == "Network error. Please try again."


def test_login_sends_no_stored_token() -> None:
    c = _client("stale")
    with responses.RequestsMock() as rsps:
        rsps.add(responses.POST, f"{BASE}/auth/login", json={"token": "new", "user": {"id": 1}}, status=200)
        out = c.login("a@b.c", "secret")
        assert "Authorization" not in rsps.calls[0].request.headers
    assert out["token"] == "new"


def test_register_sends_invite_code() -> None:
    c = _client(None)
    with responses.RequestsMock() as rsps:
        rsps.add(responses.POST, f"{BASE}/auth/register", json={"token": "t", "user": {}}, status=201)
        c.register("a@b.c", "secret", "INV-1")
        assert json.loads(rsps.calls[0].request.body)["inviteCode"] == "INV-1"


def test_me_with_explicit_token_and_password_change() -> None:
    c = _client("stored")
    with responses.RequestsMock() as rsps:
        rsps.add(responses.GET, f"{BASE}/auth/me", json={"id": 1}, status=200)
        rsps.add(responses.PUT, f"{BASE}/auth/password", json={"message": "ok"}, status=200)
        assert c.me("explicit") == {"id": 1}
        assert rsps.calls[0].request.headers["Authorization"] == "Bearer explicit"
        c.change_password("old", "newpass")
        assert json.loads(rsps.calls[1].request.body) == {"currentPassword": "old", "newPassword": "newpass"}


def test_recommendations_refresh_flag() -> None:
    c = _client()
    with responses.RequestsMock() as rsps:
        rsps.add(
            responses.GET,
            f"{BASE}/watchlist/recommendations",
            match=[matchers.query_param_matcher({"refresh": "true"})],
            json={"recommendations": [{"id": 5}]},
            status=200,
        )
        assert c.get_recommendations(refresh=True) == [{"id": 5}]
