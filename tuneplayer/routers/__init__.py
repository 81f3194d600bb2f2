from .health import router as health_router
from .library import router as library_router
from .playback_control import router as playback_control_router
from .playback_status import router as playback_status_router

__all__ = [
    "health_router",
    "library_router",
    "playback_control_router",
    "playback_status_router",
]
