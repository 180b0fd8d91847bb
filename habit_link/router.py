"""Deep-link intake.

Every activation event the host delivers (cold start and re-activation)
goes through ``DeepLinkRouter.handle``. A VIEW event whose link matches
``habit_reminder://widget_setup`` or ``habit_reminder://widget_settings``
sets the "widget setup requested" flag in the shared store. Anything else
is ignored: other links belong to other consumers of the same events.
"""

from __future__ import annotations

from .log import get_logger
from .schemas import (
    ACTION_VIEW,
    SETUP_REQUESTED_KEY,
    WIDGET_SETUP_RULE,
    ActivationEvent,
    DeepLinkRule,
)
from .store import FlagStore

_log = get_logger("router")


class DeepLinkRouter:
    def __init__(self, store: FlagStore, rule: DeepLinkRule = WIDGET_SETUP_RULE) -> None:
        self.store = store
        self.rule = rule

    def handle(self, event: ActivationEvent) -> None:
        """Record a setup request if ``event`` carries a matching link.

        Returns once the store has committed the write. StoreError propagates.
        """
        if event.action != ACTION_VIEW or event.uri is None:
            _log.debug(
                "activation_skipped", extra={"action": event.action, "kind": event.kind}
            )
            return

        context = {"link": str(event.uri), "kind": event.kind}
        _log.debug("deep_link_received", extra=context)
        if not self.rule.matches(event.uri):
            _log.debug("deep_link_ignored", extra=context)
            return

        self.store.set_bool(SETUP_REQUESTED_KEY, True)
        _log.debug("setup_flag_set", extra={**context, "key": SETUP_REQUESTED_KEY})
