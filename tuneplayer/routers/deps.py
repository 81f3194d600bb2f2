from fastapi import HTTPException, Request

from tuneplayer.context import PlayerContext
from tuneplayer.services.player_controller import PlaybackController


def get_player(request: Request) -> PlayerContext:
    """FastAPI dependency: the PlayerContext the app was started with."""
    player = getattr(request.app.state, "player", None)
    if player is None:
        raise HTTPException(status_code=503, detail="Player not started")
    return player


def get_controller(request: Request) -> PlaybackController:
    return get_player(request).controller
