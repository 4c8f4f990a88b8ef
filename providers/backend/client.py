# providers/backend/client.py
# CineTrack - Persistence API client (watchlist CRUD, auth, stats)
# Copyright (c) 2025-2026 CineTrack
from __future__ import annotations

import json
import os
from typing import Any, Callable, Mapping

import requests

from _logging import log as _real_log
from ct_platform.items import STATUSES

__all__ = ["ApiError", "NetworkError", "BackendClient", "build_headers"]

UA = os.environ.get("CT_UA", "CineTrack/1.0")


def log(msg: str, level: str = "INFO") -> None:
    _real_log(msg, level=level, module="BACKEND")


class ApiError(RuntimeError):
    """Non-2xx answer from the backend, carrying the server's message."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status = status


class NetworkError(ApiError):
    """The request never got an HTTP answer."""


def build_headers(token: str | None) -> dict[str, str]:
    h = {
        "Accept": "application/json",
        "Content-Type": "application/json",
        "User-Agent": UA,
    }
    if token:
        h["Authorization"] = f"Bearer {token}"
    return h


def _error_message(resp: requests.Response) -> str:
    try:
        data = resp.json()
    except ValueError:
        data = {"message": "An unknown error occurred"}
    msg = data.get("message") if isinstance(data, Mapping) else None
    return str(msg or f"Request failed with status {resp.status_code}")


class BackendClient:
    def __init__(
        self,
        base_url: str,
        token_fn: Callable[[], str | None],
        *,
        timeout: float = 15.0,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.token_fn = token_fn
        self.timeout = float(timeout)
        self.session = session or requests.Session()

    # ── core ──────────────────────────────────────────────────────────────
    def _request(
        self,
        method: str,
        endpoint: str,
        *,
        body: Any = None,
        params: Mapping[str, Any] | None = None,
        token: str | None = None,
    ) -> Any:
        url = f"{self.base_url}{endpoint}"
        tok = token if token is not None else self.token_fn()
        try:
            resp = self.session.request(
                method,
                url,
                headers=build_headers(tok),
                params=dict(params or {}) or None,
                data=json.dumps(body) if body is not None else None,
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            log(f"{method} {endpoint} failed: {e}", "WARN")
            raise NetworkError("Network error. Please try again.") from e

        if not resp.ok:
            msg = _error_message(resp)
            log(f"{method} {endpoint} -> {resp.status_code}: {msg}", "WARN")
            raise ApiError(msg, resp.status_code)

        if resp.status_code == 204 or not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            raise ApiError(f"Invalid JSON from {endpoint}", resp.status_code) from e

    # ── watchlist ─────────────────────────────────────────────────────────
    def get_all_items(self) -> list[dict[str, Any]]:
        return list(self._request("GET", "/watchlist") or [])

    def get_item(self, item_id: int) -> dict[str, Any] | None:
        try:
            return self._request("GET", f"/watchlist/{int(item_id)}")
        except ApiError as e:
            if e.status == 404:
                return None
            raise

    def put_item(self, item: Mapping[str, Any]) -> dict[str, Any]:
        saved = self._request("PUT", "/watchlist", body=dict(item))
        return dict(saved or item)

    def delete_item(self, item_id: int) -> None:
        self._request("DELETE", f"/watchlist/{int(item_id)}")

    def wipe_watchlist(self) -> None:
        self._request("DELETE", "/watchlist")

    def import_items(self, items: list[Mapping[str, Any]]) -> dict[str, Any]:
        return self._request("POST", "/watchlist/import", body=[dict(x) for x in items]) or {}

    def get_by_status(self, status: str, page: int = 1, limit: int = 20) -> dict[str, Any]:
        if status not in STATUSES:
            raise ValueError(f"unknown status: {status}")
        data = self._request(
            "GET",
            f"/watchlist/by-status/{status}",
            params={"page": int(page), "limit": int(limit)},
        ) or {}
        return {
            "items": list(data.get("items") or []),
            "hasMore": bool(data.get("hasMore")),
            "page": int(data.get("page") or page),
            "totalCount": int(data.get("totalCount") or 0),
        }

    def get_recommendations(self, refresh: bool = False) -> list[dict[str, Any]]:
        data = self._request(
            "GET", "/watchlist/recommendations", params={"refresh": "true"} if refresh else None
        ) or {}
        return list(data.get("recommendations") or [])

    def get_storage_stats(self) -> dict[str, Any]:
        return dict(self._request("GET", "/stats") or {})

    # ── auth ──────────────────────────────────────────────────────────────
    def login(self, email: str, password: str) -> dict[str, Any]:
        return self._request("POST", "/auth/login", body={"email": email, "password": password}, token="")

    def register(self, email: str, password: str, invite_code: str) -> dict[str, Any]:
        return self._request(
            "POST",
            "/auth/register",
            body={"email": email, "password": password, "inviteCode": invite_code},
            token="",
        )

    def me(self, token: str | None = None) -> dict[str, Any]:
        return self._request("GET", "/auth/me", token=token)

    def change_password(self, current_password: str, new_password: str) -> dict[str, Any]:
        return self._request(
            "PUT",
            "/auth/password",
            body={"currentPassword": current_password, "newPassword": new_password},
        ) or {}
