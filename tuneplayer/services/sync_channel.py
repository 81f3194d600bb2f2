from __future__ import annotations

import logging
import uuid
from collections import defaultdict
from typing import Any, Callable

from pydantic import BaseModel, Field

from tuneplayer.models.enums import MessageType

logger = logging.getLogger(__name__)


class ChannelMessage(BaseModel):
    type: MessageType
    payload: dict[str, Any] = Field(default_factory=dict)
    sender: str


Handler = Callable[[ChannelMessage], None]


class ChannelHub:
    """
    Routes messages between every BroadcastChannel opened with the same name.
    One hub per process; each player instance opens its own channel on it.
    """

    def __init__(self):
        self._channels: dict[str, list["BroadcastChannel"]] = defaultdict(list)

    def open(self, name: str, member_id: str | None = None) -> "BroadcastChannel":
        channel = BroadcastChannel(name, self, member_id=member_id)
        self._channels[name].append(channel)
        return channel

    def _detach(self, channel: "BroadcastChannel") -> None:
        members = self._channels.get(channel.name, [])
        if channel in members:
            members.remove(channel)

    def _deliver(self, message: ChannelMessage, origin: "BroadcastChannel") -> int:
        delivered = 0
        for member in list(self._channels.get(origin.name, [])):
            if member is origin:
                continue
            member._receive(message)
            delivered += 1
        return delivered


class BroadcastChannel:
    def __init__(self, name: str, hub: ChannelHub, member_id: str | None = None):
        self.name = name
        self.member_id = member_id or uuid.uuid4().hex
        self._hub = hub
        self._handlers: list[Handler] = []
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def post(self, type: MessageType, payload: dict[str, Any] | None = None) -> int:
        """Send to every other member; returns how many received it."""
        if self._closed:
            logger.debug("post on closed channel %s ignored", self.name)
            return 0
        message = ChannelMessage(type=type, payload=payload or {}, sender=self.member_id)
        return self._hub._deliver(message, self)

    def subscribe(self, handler: Handler) -> Callable[[], None]:
        self._handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unsubscribe

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._handlers.clear()
        self._hub._detach(self)

    def _receive(self, message: ChannelMessage) -> None:
        for handler in list(self._handlers):
            try:
                handler(message)
            except Exception:
                logger.exception("Channel %s handler crashed on %s", self.name, message.type.value)
