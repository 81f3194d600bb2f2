# tuneplayer/context.py
"""
PlayerContext: everything one player instance needs, built once at start-up
and handed to whatever owns the UI (here: the FastAPI app).
"""
from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import Optional

from tuneplayer import config
from tuneplayer.services.audio_output import AudioOutput, SimulatedAudioOutput
from tuneplayer.services.backend_api import BackendApi
from tuneplayer.services.events import EventBus
from tuneplayer.services.liked_songs import LikedSongs
from tuneplayer.services.player_controller import PlaybackController
from tuneplayer.services.state_store import MemoryStateStore, SqlStateStore, StateStore
from tuneplayer.services.sync_channel import BroadcastChannel, ChannelHub
from tuneplayer.services.track_library import TrackLibrary

logger = logging.getLogger(__name__)

# Instances in one process sync through this hub unless given their own
default_hub = ChannelHub()


@dataclass
class PlayerContext:
    controller: PlaybackController
    library: TrackLibrary
    liked: LikedSongs
    store: StateStore
    channel: Optional[BroadcastChannel]
    api: BackendApi

    async def start(self) -> None:
        await self.liked.refresh()
        await self.controller.initialize()
        self.controller.announce()

    async def shutdown(self) -> None:
        # page-hide / unload equivalent
        self.controller.save_state(broadcast=False)
        await self.controller.close()
        if self.channel is not None:
            self.channel.close()


def _make_store(backend: str) -> StateStore:
    if backend == "memory":
        return MemoryStateStore()
    if backend != "sql":
        logger.warning("Unknown STATE_BACKEND %r, using sql", backend)

    from tuneplayer.database import init_db
    init_db()
    return SqlStateStore()


def build_player_context(
    *,
    api: Optional[BackendApi] = None,
    store: Optional[StateStore] = None,
    audio: Optional[AudioOutput] = None,
    hub: Optional[ChannelHub] = None,
    channel_name: str = config.SYNC_CHANNEL_NAME,
    user_id: Optional[str] = config.USER_ID or None,
    rng: Optional[random.Random] = None,
) -> PlayerContext:
    api = api or BackendApi()
    store = store or _make_store(config.STATE_BACKEND)
    audio = audio or SimulatedAudioOutput(autoplay_allowed=config.AUTOPLAY_ALLOWED)
    channel = (hub or default_hub).open(channel_name)

    library = TrackLibrary(api, user_id=user_id)
    liked = LikedSongs(api, user_id=user_id, library=library)
    controller = PlaybackController(
        audio,
        library,
        store,
        channel=channel,
        liked=liked,
        events=EventBus(),
        rng=rng,
    )
    logger.info("Player context ready (store=%s, channel=%s)", type(store).__name__, channel_name)
    return PlayerContext(
        controller=controller,
        library=library,
        liked=liked,
        store=store,
        channel=channel,
        api=api,
    )
