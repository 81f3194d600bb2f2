# tuneplayer/config/__init__.py
"""
Lightweight config package initializer (no logging imports, no cycles).

Rules:
- Read from env when present, else use sensible defaults.
- Fixed playback knobs live in tuneplayer/config/playback.py, not here.
"""

from __future__ import annotations
import os, json
from typing import List

from dotenv import load_dotenv
load_dotenv()  # ensure .env loads even in python shell


# ─────────────────────────────────────────────────────────────────────────────
# Single source of truth for playback thresholds
# (edit values in tuneplayer/config/playback.py, not here)
# ─────────────────────────────────────────────────────────────────────────────
from .playback import (
    RESTART_THRESHOLD_SECONDS, SYNC_TOLERANCE_SECONDS, DEFAULT_VOLUME,
    FALLBACK_DURATION_SECONDS, LIKE_TIMEOUT_SECONDS,
    clamp_volume, estimate_duration, format_time,
)

# ----------------- helpers -----------------
def _env_bool(name: str, default: bool = False) -> bool:
    v = os.getenv(name)
    if v is None: return default
    s = v.strip().lower()
    if s in ("1","true","yes","on"): return True
    if s in ("0","false","no","off",""): return False
    return True

def _env_str(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else str(v)

def _env_list(name: str, default: List[str] | None = None) -> List[str]:
    raw = os.getenv(name)
    if not raw: return list(default or [])
    s = raw.strip()
    if s.startswith("["):
        try:
            val = json.loads(s)
            if isinstance(val, list): return [str(x).strip() for x in val]
        except ValueError:
            pass
    return [item.strip() for item in s.split(",") if item.strip()]

def _env_int(name: str, default: int) -> int:
    try:
        return int(_env_str(name, str(default)))
    except ValueError:
        return default

def _env_float(name: str, default: float) -> float:
    try:
        return float(_env_str(name, str(default)))
    except ValueError:
        return default


# ----------------- app metadata -----------------
APP_VERSION: str = _env_str("APP_VERSION", "0.1.0")
LOG_LEVEL: str   = _env_str("LOG_LEVEL", "INFO").upper()

# ----------------- music backend -----------------
API_BASE_URL: str   = _env_str("API_BASE_URL", "http://localhost:3001/api").rstrip("/")
AUDIO_BASE_URL: str = _env_str("AUDIO_BASE_URL", "http://localhost:3001").rstrip("/")
USER_ID: str        = _env_str("USER_ID", "")
AUTH_TOKEN: str     = _env_str("AUTH_TOKEN", "")

# HTTP behavior / retries
HTTP_TIMEOUT_SECONDS: float = _env_float("HTTP_TIMEOUT_SECONDS", 10.0)
HTTP_MAX_RETRIES: int       = _env_int("HTTP_MAX_RETRIES", 2)
HTTP_BACKOFF_FACTOR: float  = _env_float("HTTP_BACKOFF_FACTOR", 2.0)

# ----------------- persisted player state -----------------
STATE_BACKEND: str = _env_str("STATE_BACKEND", "sql").strip().lower()   # "sql" | "memory"
STATE_DB_URL: str  = _env_str("STATE_DB_URL", "sqlite:///./player_state.db")

# ----------------- cross-instance sync -----------------
SYNC_CHANNEL_NAME: str = _env_str("SYNC_CHANNEL_NAME", "tuneplayer")

# ----------------- heartbeat -----------------
HEARTBEAT_ENABLED: bool           = _env_bool("HEARTBEAT_ENABLED", True)
HEARTBEAT_INTERVAL_SECONDS: float = _env_float("HEARTBEAT_INTERVAL_SECONDS", 1.0)
PERSIST_INTERVAL_SECONDS: float   = _env_float("PERSIST_INTERVAL_SECONDS", 5.0)

# ----------------- audio output -----------------
AUTOPLAY_ALLOWED: bool = _env_bool("AUTOPLAY_ALLOWED", True)

# ----------------- http adapter -----------------
CORS_ORIGINS: List[str] = _env_list(
    "CORS_ORIGINS",
    ["http://localhost:5173", "http://127.0.0.1:5173"],
)


__all__ = [
    "APP_VERSION", "LOG_LEVEL",
    "API_BASE_URL", "AUDIO_BASE_URL", "USER_ID", "AUTH_TOKEN",
    "HTTP_TIMEOUT_SECONDS", "HTTP_MAX_RETRIES", "HTTP_BACKOFF_FACTOR",
    "STATE_BACKEND", "STATE_DB_URL", "SYNC_CHANNEL_NAME",
    "HEARTBEAT_ENABLED", "HEARTBEAT_INTERVAL_SECONDS", "PERSIST_INTERVAL_SECONDS",
    "AUTOPLAY_ALLOWED", "CORS_ORIGINS",
    "RESTART_THRESHOLD_SECONDS", "SYNC_TOLERANCE_SECONDS", "DEFAULT_VOLUME",
    "FALLBACK_DURATION_SECONDS", "LIKE_TIMEOUT_SECONDS",
    "clamp_volume", "estimate_duration", "format_time",
]
