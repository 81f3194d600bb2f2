from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Callable

from tuneplayer.models.enums import PlayerEvent

logger = logging.getLogger(__name__)

Listener = Callable[[dict[str, Any]], None]


class EventBus:
    """Synchronous observer registry for controller events."""

    def __init__(self):
        self._listeners: dict[PlayerEvent, list[Listener]] = defaultdict(list)

    def subscribe(self, event: PlayerEvent, callback: Listener) -> Callable[[], None]:
        self._listeners[event].append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners[event]:
                self._listeners[event].remove(callback)

        return unsubscribe

    def emit(self, event: PlayerEvent, payload: dict[str, Any] | None = None) -> None:
        data = payload or {}
        for callback in list(self._listeners[event]):
            try:
                callback(data)
            except Exception:
                logger.exception("Listener for %s crashed", event.value)
