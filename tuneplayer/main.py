import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from tuneplayer import config
from tuneplayer.context import PlayerContext, build_player_context
from tuneplayer.routers import (
    health_router,
    library_router,
    playback_control_router,
    playback_status_router,
)
from tuneplayer.services.heartbeat import playback_heartbeat

# Configure logging once, at the top of the app
logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL, logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logging.getLogger("httpx").setLevel(logging.WARNING)
logger = logging.getLogger(__name__)


def create_app(
    player: Optional[PlayerContext] = None,
    *,
    heartbeat: Optional[bool] = None,
) -> FastAPI:
    """
    Build the HTTP adapter around one PlayerContext.
    `player` is built from config at start-up when not given.
    """
    run_heartbeat = config.HEARTBEAT_ENABLED if heartbeat is None else heartbeat

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        ctx = player or build_player_context()
        app.state.player = ctx
        await ctx.start()
        logger.info("🎬 Player started with %d tracks", len(ctx.controller.tracks))

        beat: Optional[asyncio.Task] = None
        if run_heartbeat:
            beat = asyncio.create_task(playback_heartbeat(ctx.controller))
        try:
            yield
        finally:
            if beat is not None:
                beat.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await beat
            await ctx.shutdown()
            app.state.player = None
            logger.info("🛑 Player shut down")

    app = FastAPI(
        title="tuneplayer",
        version=config.APP_VERSION,
        lifespan=lifespan,
    )

    # 🔓 CORS for the player UI
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health_router)
    app.include_router(playback_status_router)
    app.include_router(playback_control_router)
    app.include_router(library_router)
    return app


app = create_app()
