# ct_platform/config_base.py
# CineTrack - Config resolution, defaults and atomic persistence.
from __future__ import annotations

import copy
import json
import os
import secrets
import threading
import time
from pathlib import Path
from typing import Any, Dict

# ------------------------------------------------------------
# Base dir resolution
# ------------------------------------------------------------
def CONFIG_BASE() -> Path:
    """
    Determine the base directory for config files.

    Priority:
      1) $CONFIG_BASE if set
      2) /config (when running in a container that mounts /config)
      3) Project root (one level up from this package)
    """
    env = os.getenv("CONFIG_BASE")
    if env:
        return Path(env)

    if Path("/app").exists():
        return Path("/config")

    return Path(__file__).resolve().parents[1]


# Default config structure
DEFAULT_CFG: Dict[str, Any] = {
    # --- Backend (persistence REST API) --------------------------------------
    "backend": {
        "base_url": "http://localhost:3001",           # Origin of the backend; "/api" is appended by the client
        "timeout": 15.0,                                # HTTP timeout (seconds)
    },

    # --- Catalog (TMDb) ------------------------------------------------------
    "tmdb": {
        "api_base": "https://api.themoviedb.org/3",
        "image_base": "https://image.tmdb.org/t/p",
        "read_access_token": "",                        # v4 read access token (Bearer)
        "timeout": 15.0,
    },

    # --- Real-time channel (Socket.IO) ---------------------------------------
    "realtime": {
        "enabled": True,                                # Open the push channel after the first load
        "url": "",                                      # Empty = same origin as backend.base_url
        "transports": ["websocket", "polling"],
        "reconnection_attempts": 10,                    # Give up after N failed reconnects
        "reconnection_delay": 1.0,                      # First backoff step (seconds)
        "reconnection_delay_max": 10.0,                 # Backoff ceiling (seconds)
        "timeout": 20.0,                                # Handshake timeout (seconds)
    },

    # --- Watchlist store -----------------------------------------------------
    "watchlist": {
        "page_size": 20,                                # Items per status bucket page
        "recommendation_seeds": 3,                      # Random watchlist items used to seed recommendations
    },

    # --- Runtime / Diagnostics ----------------------------------------------
    "runtime": {
        "debug": False,                                 # Extra verbose logging (debug level)
        "log_json": "",                                 # Optional JSON-lines log file
    },

    # --- Local API server ----------------------------------------------------
    "server": {
        "host": "127.0.0.1",
        "port": 8788,
    },
}

_ENV_OVERRIDES: tuple[tuple[str, str, str], ...] = (
    ("TMDB_API_READ_ACCESS_TOKEN", "tmdb", "read_access_token"),
    ("CINETRACK_BACKEND_URL", "backend", "base_url"),
)


# ------------------------------------------------------------
# Helpers: paths, IO, merging
# ------------------------------------------------------------
def _cfg_file() -> Path:
    return CONFIG_BASE() / "config.json"

def config_path() -> Path:
    return _cfg_file()


def _read_json(p: Path) -> Dict[str, Any]:
    with p.open("r", encoding="utf-8") as f:
        return json.load(f)


def _write_json_atomic(p: Path, data: Any) -> None:
    p.parent.mkdir(parents=True, exist_ok=True)
    suffix = f".{time.time_ns()}.{os.getpid()}.{threading.get_ident()}.{secrets.token_hex(4)}.tmp"
    tmp = p.with_suffix(suffix)

    with tmp.open("w", encoding="utf-8", newline="\n") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)
        f.write("\n")
    tmp.replace(p)


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    out = copy.deepcopy(base)
    for k, v in (override or {}).items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = _deep_merge(out[k], v)  # type: ignore[assignment]
        else:
            out[k] = v
    return out


def _apply_env(cfg: Dict[str, Any]) -> Dict[str, Any]:
    for env, section, key in _ENV_OVERRIDES:
        val = os.getenv(env)
        if val:
            cfg.setdefault(section, {})[key] = val
    return cfg


# ------------------------------------------------------------
# Public API
# ------------------------------------------------------------
def load_config() -> Dict[str, Any]:
    """
    Read config.json merged over the defaults.

    A missing or unreadable file yields the defaults; environment
    overrides are applied last.
    """
    p = _cfg_file()
    user_cfg: Dict[str, Any] = {}
    if p.exists():
        try:
            user_cfg = _read_json(p)
        except (OSError, ValueError):
            user_cfg = {}
    if not isinstance(user_cfg, dict):
        user_cfg = {}

    return _apply_env(_deep_merge(DEFAULT_CFG, user_cfg))


def save_config(cfg: Dict[str, Any]) -> None:
    _write_json_atomic(_cfg_file(), dict(cfg or {}))


def backend_api_base(cfg: Dict[str, Any]) -> str:
    base = str(((cfg.get("backend") or {}).get("base_url")) or "").strip().rstrip("/")
    return f"{base}/api"


def realtime_url(cfg: Dict[str, Any]) -> str:
    url = str(((cfg.get("realtime") or {}).get("url")) or "").strip()
    return url or str(((cfg.get("backend") or {}).get("base_url")) or "").strip().rstrip("/")
