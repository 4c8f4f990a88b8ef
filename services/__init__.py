# services/__init__.py
from __future__ import annotations

from . import auth, export, navigation, notifications, statistics, watchlist

__all__ = [
    "watchlist",
    "statistics",
    "export",
    "notifications",
    "navigation",
    "auth",
]
