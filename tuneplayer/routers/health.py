from fastapi import APIRouter, Request

from tuneplayer.config import APP_VERSION

router = APIRouter(tags=["Health"])


@router.get("/health")
def health(request: Request):
    return {
        "ok": True,
        "version": APP_VERSION,
        "player": getattr(request.app.state, "player", None) is not None,
    }
