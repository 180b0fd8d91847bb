"""Host-side wiring: lifecycle hooks and bridge channel registration.

The host calls into this object at fixed points:

    on_create(event)       process cold start with its launch event
    on_new_intent(event)   re-activation while already running
    configure_engine()     once, when the app engine is ready for channels
    invoke(channel, name)  app layer calling a method on a channel
"""

from __future__ import annotations

from dataclasses import replace

from .endpoint import BridgeEndpoint
from .exceptions import ChannelError
from .log import get_logger
from .router import DeepLinkRouter
from .schemas import CHANNEL_NAME, ActivationEvent, BridgeResponse
from .store import FlagStore

_log = get_logger("host")


class Host:
    def __init__(self, store: FlagStore) -> None:
        self.store = store
        self.router = DeepLinkRouter(store)
        self.endpoint = BridgeEndpoint(store)
        self._channels: dict[str, BridgeEndpoint] = {}

    def on_create(self, event: ActivationEvent) -> None:
        self.router.handle(replace(event, kind="create"))

    def on_new_intent(self, event: ActivationEvent) -> None:
        self.router.handle(replace(event, kind="new_intent"))

    def configure_engine(self) -> None:
        if CHANNEL_NAME in self._channels:
            raise ChannelError(f"Channel already registered: {CHANNEL_NAME}")
        self._channels[CHANNEL_NAME] = self.endpoint
        _log.debug("channel_registered", extra={"channel": CHANNEL_NAME})

    @property
    def channels(self) -> list[str]:
        return sorted(self._channels)

    def invoke(self, channel: str, name: str) -> BridgeResponse:
        endpoint = self._channels.get(channel)
        if endpoint is None:
            raise ChannelError(f"No handler registered for channel: {channel}")
        return endpoint.query(name)
