"""Bridge endpoint answering app-layer queries on the deep_link channel."""

from __future__ import annotations

from .log import get_logger
from .schemas import GET_INITIAL_DEEP_LINK, SETUP_REQUESTED_KEY, BridgeResponse
from .store import FlagStore

_log = get_logger("endpoint")


class BridgeEndpoint:
    def __init__(self, store: FlagStore) -> None:
        self.store = store

    def query(self, name: str) -> BridgeResponse:
        """Answer one named request.

        ``getInitialDeepLink`` returns the current flag (False when unset)
        without touching it. Any other name is ``not_implemented``.
        """
        if name == GET_INITIAL_DEEP_LINK:
            value = self.store.get_bool(SETUP_REQUESTED_KEY, False)
            _log.debug("query_answered", extra={"method": name, "value": value})
            return BridgeResponse.success(value)
        _log.debug("query_not_implemented", extra={"method": name})
        return BridgeResponse.not_implemented()
