# tuneplayer/services/heartbeat.py
from __future__ import annotations

import asyncio
import logging
import time

from tuneplayer.config import HEARTBEAT_INTERVAL_SECONDS, PERSIST_INTERVAL_SECONDS
from tuneplayer.services.player_controller import PlaybackController

logger = logging.getLogger(__name__)


async def playback_heartbeat(
    controller: PlaybackController,
    *,
    interval: float = HEARTBEAT_INTERVAL_SECONDS,
    persist_every: float = PERSIST_INTERVAL_SECONDS,
) -> None:
    """
    Drives the audio clock and keeps persisted state fresh.
    - every `interval`: audio.update() (may fire end-of-track) + controller.tick()
    - every `persist_every`: controller.save_state() so other instances see the position
    Runs until cancelled; a final save happens on the way out.
    """
    last_persist = time.monotonic()
    try:
        while True:
            await asyncio.sleep(interval)
            try:
                controller.audio.update()
                controller.tick()

                now = time.monotonic()
                if controller.state.is_playing and now - last_persist >= persist_every:
                    controller.save_state()
                    last_persist = now
            except Exception:
                logger.exception("Heartbeat step failed")
    except asyncio.CancelledError:
        logger.info("Heartbeat stopped")
        controller.save_state(broadcast=False)
        raise
