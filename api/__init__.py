from __future__ import annotations

from fastapi import FastAPI

from .authAPI import router as auth_router
from .catalogAPI import router as catalog_router
from .watchlistAPI import router as watchlist_router

__all__ = [
    "auth_router",
    "catalog_router",
    "watchlist_router",
    "register",
]


def register(app: FastAPI) -> None:
    app.include_router(auth_router)
    app.include_router(watchlist_router)
    app.include_router(catalog_router)
