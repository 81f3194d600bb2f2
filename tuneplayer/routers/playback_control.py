# tuneplayer/routers/playback_control.py
from __future__ import annotations

import logging
from typing import Any, Optional, Union

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from tuneplayer.routers.deps import get_controller
from tuneplayer.services.player_controller import PlaybackController

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/playback",
    tags=["Playback"],
)


class SeekRequest(BaseModel):
    seconds: float


class VolumeRequest(BaseModel):
    volume: float


class LoadTrackRequest(BaseModel):
    index: int
    autoplay: bool = False


class SourceRequest(BaseModel):
    # validated by the controller so a bad value is a no-op, not a 422
    source: str


class PlayTrackRequest(BaseModel):
    # track id, filename key, or a full track record
    track: Union[int, str, dict[str, Any]]
    queue: Optional[list[dict[str, Any]]] = None


def _result(controller: PlaybackController, ok: bool = True, **extra):
    return {"ok": ok, **extra, "status": controller.state.snapshot()}


@router.post("/play", summary="Start or resume playback")
async def play(controller: PlaybackController = Depends(get_controller)):
    ok = await controller.play()
    return _result(controller, ok, reason=_failure(controller) if not ok else None)


@router.post("/pause", summary="Pause playback")
def pause(controller: PlaybackController = Depends(get_controller)):
    controller.pause()
    return _result(controller)


@router.post("/toggle", summary="Toggle play/pause")
async def toggle(controller: PlaybackController = Depends(get_controller)):
    is_playing = await controller.toggle_play_pause()
    return _result(controller, is_playing=is_playing)


@router.post("/next", summary="Skip to next track")
async def next_track(controller: PlaybackController = Depends(get_controller)):
    ok = await controller.play_next()
    return _result(controller, ok)


@router.post("/previous", summary="Previous track (or restart after 3s)")
async def previous_track(controller: PlaybackController = Depends(get_controller)):
    ok = await controller.play_previous()
    return _result(controller, ok)


@router.post("/seek", summary="Jump to a position in the current track")
def seek(req: SeekRequest, controller: PlaybackController = Depends(get_controller)):
    ok = controller.seek(req.seconds)
    return _result(controller, ok)


@router.post("/volume", summary="Set volume (clamped to 0..1)")
def volume(req: VolumeRequest, controller: PlaybackController = Depends(get_controller)):
    applied = controller.set_volume(req.volume)
    return _result(controller, volume=applied)


@router.post("/mute", summary="Mute, or restore the previous volume")
def mute(controller: PlaybackController = Depends(get_controller)):
    muted = controller.toggle_mute()
    return _result(controller, muted=muted)


@router.post("/shuffle", summary="Toggle shuffle (turns repeat off)")
def shuffle(controller: PlaybackController = Depends(get_controller)):
    enabled = controller.toggle_shuffle()
    return _result(controller, shuffle=enabled)


@router.post("/repeat", summary="Cycle repeat none → all → one (turns shuffle off)")
def repeat(controller: PlaybackController = Depends(get_controller)):
    mode = controller.toggle_repeat()
    return _result(controller, repeat=mode.value)


@router.post("/load-track", summary="Load a track of the active list by index")
async def load_track(req: LoadTrackRequest, controller: PlaybackController = Depends(get_controller)):
    logger.info("🎯 /playback/load-track index=%s autoplay=%s", req.index, req.autoplay)
    ok = await controller.load_track(req.index, autoplay=req.autoplay)
    return _result(controller, ok)


@router.post("/play-track", summary="Play a track, optionally inside a caller-supplied queue")
async def play_track(req: PlayTrackRequest, controller: PlaybackController = Depends(get_controller)):
    logger.info("🎯 /playback/play-track queue=%s", len(req.queue) if req.queue is not None else "active list")
    ok = await controller.play_track(req.track, req.queue)
    return _result(controller, ok, track_count=len(controller.tracks))


@router.post("/source", summary="Switch between all tracks and liked tracks")
async def source(req: SourceRequest, controller: PlaybackController = Depends(get_controller)):
    ok = await controller.set_playback_source(req.source)
    return _result(controller, ok, source=controller.state.source.value)


@router.post("/like", summary="Like/unlike the current track")
async def like(controller: PlaybackController = Depends(get_controller)):
    liked = await controller.toggle_like()
    return _result(controller, liked is not None, liked=liked)


def _failure(controller: PlaybackController):
    reason = controller.state.last_failure
    return reason.value if reason else None
