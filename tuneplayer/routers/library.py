from fastapi import APIRouter, Depends, Query
import logging

from tuneplayer.context import PlayerContext
from tuneplayer.models.enum_utils import normalize_source
from tuneplayer.routers.deps import get_player

router = APIRouter(prefix="/library", tags=["Library"])

logger = logging.getLogger(__name__)


@router.get("/tracks")
async def get_tracks(
    source: str = Query("all"),
    player: PlayerContext = Depends(get_player),
):
    src = normalize_source(source)
    if src is None:
        logger.warning("📚 Unknown library source %r", source)
        return {"ok": False, "error": f"Unknown source {source!r}", "tracks": []}

    tracks = await player.controller.load_tracks(src)
    return {
        "ok": True,
        "source": src.value,
        "count": len(tracks),
        "tracks": [
            {**t.to_dict(), "liked": player.liked.is_liked(t.id)} for t in tracks
        ],
    }


@router.post("/refresh")
async def refresh_library(player: PlayerContext = Depends(get_player)):
    """Drop cached lists and reload the active one plus the liked ids."""
    player.library.invalidate()
    await player.liked.refresh()
    tracks = await player.controller.load_tracks()
    logger.info("📚 Library refreshed: %d tracks, %d liked", len(tracks), player.liked.count)
    return {"ok": True, "count": len(tracks), "liked": player.liked.count}
