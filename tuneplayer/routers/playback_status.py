from __future__ import annotations

from fastapi import APIRouter, Depends

from tuneplayer.config.playback import format_time
from tuneplayer.routers.deps import get_controller
from tuneplayer.services.player_controller import PlaybackController

router = APIRouter(prefix="/playback", tags=["Playback Status"])


@router.get("/status")
async def get_status(controller: PlaybackController = Depends(get_controller)):
    """
    Returns a single, consistent snapshot for the player UI poller.

    Example:
      {
        "status": "playing",
        "current_index": 3,
        "track": {"id": 12, "title": "...", ...},
        "elapsedMs": 54000,
        "durationMs": 182000,
        "percentComplete": 29.67,
        "elapsedLabel": "0:54",
        ...
      }
    """
    snap = controller.snapshot()

    elapsed = snap.get("current_time") or 0.0
    duration = snap.get("duration") or 0.0
    percent = min(100.0, (elapsed / duration) * 100.0) if duration > 0 else 0.0

    return {
        **snap,
        "elapsedMs": int(elapsed * 1000),
        "durationMs": int(duration * 1000),
        "percentComplete": percent,
        "elapsedLabel": format_time(elapsed),
        "durationLabel": format_time(duration),
    }
