# tuneplayer/config/playback.py
from __future__ import annotations

# ─────────────────────────────────────────────────────────────────────────────
# MASTER PLAYBACK CONTROLS  (edit these values directly)
# ─────────────────────────────────────────────────────────────────────────────

# "Previous" restarts the current track once more than this much has played
RESTART_THRESHOLD_SECONDS: float = 3.0

# Remote/local position drift tolerated before a cross-instance resync
SYNC_TOLERANCE_SECONDS: float = 3.0

# Volume for a brand-new player (0.0 - 1.0)
DEFAULT_VOLUME: float = 1.0

# If the backend doesn't know a track's duration, assume this many seconds.
FALLBACK_DURATION_SECONDS: float = 180.0  # 3 minutes

# Like/unlike round trip before we give up and revert
LIKE_TIMEOUT_SECONDS: float = 10.0


# ─────────────────────────────────────────────────────────────────────────────
# INTERNAL HELPERS (no need to edit below)
# ─────────────────────────────────────────────────────────────────────────────

def clamp_volume(v: float, lo: float = 0.0, hi: float = 1.0) -> float:
    return max(lo, min(hi, float(v)))


def estimate_duration(value) -> float:
    """
    Seconds for a track:
    - numbers and numeric strings are used as-is when > 0
    - anything else falls back to FALLBACK_DURATION_SECONDS
    """
    try:
        secs = float(value)
    except (TypeError, ValueError):
        return FALLBACK_DURATION_SECONDS
    if secs != secs or secs <= 0:  # NaN or non-positive
        return FALLBACK_DURATION_SECONDS
    return secs


def format_time(seconds: float | None) -> str:
    if not seconds:
        return "0:00"
    minutes = int(seconds // 60)
    remaining = int(seconds % 60)
    return f"{minutes}:{remaining:02d}"
