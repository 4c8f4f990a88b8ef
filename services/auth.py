# services/auth.py
# CineTrack - Session handling (login/register/verify/logout) and password change
# Copyright (c) 2025-2026 CineTrack
from __future__ import annotations

import threading
from typing import Any, Callable

from _logging import log as _real_log
from ct_platform.local_state import LocalState
from providers.backend.client import ApiError, NetworkError


def log(msg: str, level: str = "INFO") -> None:
    _real_log(msg, level=level, module="AUTH")


NETWORK_ERROR = "Network error. Please try again."
PASSWORD_NETWORK_ERROR = "Unable to connect to the server. Please check your connection and try again."
MISMATCH_ERROR = "New passwords don't match. Please make sure both fields are identical."
SHORT_ERROR = "Password must be at least 6 characters long."
SAME_ERROR = "New password must be different from your current password."
MIN_PASSWORD = 6


class PasswordRuleError(ValueError):
    pass


def check_new_password(current: str, new: str, confirm: str) -> None:
    """Client-side rules, checked in this order before anything hits the wire."""
    if new != confirm:
        raise PasswordRuleError(MISMATCH_ERROR)
    if len(new or "") < MIN_PASSWORD:
        raise PasswordRuleError(SHORT_ERROR)
    if new == current:
        raise PasswordRuleError(SAME_ERROR)


class AuthService:
    def __init__(
        self,
        backend: Any,
        state: LocalState,
        *,
        on_login: Callable[[], None] | None = None,
        on_logout: Callable[[], None] | None = None,
    ) -> None:
        self.backend = backend
        self.state = state
        self.on_login = on_login
        self.on_logout = on_logout
        self.error: str | None = None
        self.password_error: str | None = None
        self._lock = threading.Lock()

    # session view
    @property
    def token(self) -> str | None:
        return self.state.token

    @property
    def user(self) -> dict[str, Any] | None:
        return self.state.user

    @property
    def is_authenticated(self) -> bool:
        return bool(self.state.token) and self.state.user is not None

    def clear_error(self) -> None:
        with self._lock:
            self.error = None
            self.password_error = None

    def _set_error(self, msg: str) -> None:
        with self._lock:
            self.error = msg

    def _start_session(self, data: Any) -> bool:
        token = (data or {}).get("token") if isinstance(data, dict) else None
        if not token:
            self._set_error("Login failed")
            return False
        self.state.save_session(str(token), (data or {}).get("user"))
        log(f"signed in as {(self.state.user or {}).get('email') or '?'}", "SUCCESS")
        if self.on_login:
            self.on_login()
        return True

    def login(self, email: str, password: str) -> bool:
        self.clear_error()
        try:
            data = self.backend.login(email, password)
        except NetworkError as e:
            log(f"login failed: {e}", "WARN")
            self._set_error(NETWORK_ERROR)
            return False
        except ApiError as e:
            self._set_error(e.message or "Login failed")
            return False
        return self._start_session(data)

    def register(self, email: str, password: str, invite_code: str) -> bool:
        self.clear_error()
        try:
            data = self.backend.register(email, password, invite_code)
        except NetworkError as e:
            log(f"register failed: {e}", "WARN")
            self._set_error(NETWORK_ERROR)
            return False
        except ApiError as e:
            self._set_error(e.message or "Registration failed")
            return False
        return self._start_session(data)

    def verify_session(self) -> bool:
        """Check the stored token with /auth/me. A rejected token ends the session."""
        token = self.state.token
        if not token:
            return False
        try:
            data = self.backend.me(token)
        except NetworkError as e:
            # offline: keep the cached session
            log(f"token verification failed: {e}", "WARN")
            return self.is_authenticated
        except ApiError as e:
            log(f"stored token rejected ({e.status}), clearing session", "INFO")
            self.state.clear_session()
            return False
        user = data.get("user", data) if isinstance(data, dict) else None
        self.state.save_session(token, user)
        return True

    def logout(self) -> None:
        self.state.clear_session()
        self.clear_error()
        log("signed out", "INFO")
        if self.on_logout:
            self.on_logout()

    def change_password(self, current: str, new: str, confirm: str) -> bool:
        with self._lock:
            self.password_error = None
        try:
            check_new_password(current, new, confirm)
        except PasswordRuleError as e:
            with self._lock:
                self.password_error = str(e)
            return False
        try:
            self.backend.change_password(current, new)
        except NetworkError as e:
            log(f"password change failed: {e}", "WARN")
            with self._lock:
                self.password_error = PASSWORD_NETWORK_ERROR
            return False
        except ApiError as e:
            with self._lock:
                self.password_error = e.message or "Failed to change password. Please try again."
            return False
        log("password changed", "SUCCESS")
        return True
