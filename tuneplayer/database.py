# tuneplayer/database.py
from __future__ import annotations

import logging

from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, create_engine

from tuneplayer.config import STATE_DB_URL

log = logging.getLogger(__name__)


def make_engine(url: str = STATE_DB_URL, **kwargs) -> Engine:
    """
    Build an engine for the persisted player state.
    SQLite needs check_same_thread off: the HTTP adapter and the heartbeat
    may touch the store from different threads.
    """
    connect_args = {}
    if url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    return create_engine(url, echo=False, connect_args=connect_args, **kwargs)


engine = make_engine()


def init_db(bind: Engine | None = None) -> None:
    """Create tables if they don't exist (call once at startup)."""
    # registers PlayerStateEntry on the metadata
    from tuneplayer.models import dbmodels  # noqa: F401

    SQLModel.metadata.create_all(bind or engine)
    log.debug("Player state tables ready on %s", (bind or engine).url)
