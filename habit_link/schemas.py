"""Data models for activation events, the deep-link rule, and bridge responses."""

from __future__ import annotations

import re
from dataclasses import asdict, dataclass, field
from typing import Any
from urllib.parse import unquote


# ---------------------------------------------------------------------------
# Fixed names shared with the app layer
# ---------------------------------------------------------------------------

ACTION_VIEW = "android.intent.action.VIEW"
ACTION_MAIN = "android.intent.action.MAIN"

STORE_NAMESPACE = "FlutterSharedPreferences"
SETUP_REQUESTED_KEY = "widget_setup_requested"

CHANNEL_NAME = "com.example.habit_reminder/deep_link"
GET_INITIAL_DEEP_LINK = "getInitialDeepLink"

STATUS_SUCCESS = "success"
STATUS_NOT_IMPLEMENTED = "not_implemented"

_URI_PATTERN = re.compile(
    r"^(?:(?P<scheme>[^:/?#]+):)?(?://(?P<authority>[^/?#]*))?[^?#]*(?:\?[^#]*)?(?:#.*)?$",
    re.DOTALL,
)


# ---------------------------------------------------------------------------
# LinkUri / ActivationEvent: one delivered launch or re-activation
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class LinkUri:
    scheme: str
    host: str

    @classmethod
    def parse(cls, text: str) -> LinkUri:
        """Split a raw link into scheme and host, keeping their case.

        ``urllib.parse.urlsplit`` rejects ``_`` in schemes and lowercases
        them, so the RFC 3986 appendix B pattern is applied directly. The
        text is not trimmed. The host is percent-decoded and the scheme is
        kept raw. Missing parts come back as empty strings.
        """
        match = _URI_PATTERN.match(text)
        if not match:
            return cls(scheme="", host="")
        scheme = match.group("scheme") or ""
        authority = match.group("authority") or ""
        host = authority.rsplit("@", 1)[-1]
        if host.startswith("["):
            host = host.split("]", 1)[0] + "]"
        else:
            host = host.split(":", 1)[0]
        return cls(scheme=scheme, host=unquote(host))

    def __str__(self) -> str:
        return f"{self.scheme}://{self.host}"


@dataclass(frozen=True)
class ActivationEvent:
    action: str
    uri: LinkUri | None = None
    kind: str = "create"                          # create | new_intent (logging only)


# ---------------------------------------------------------------------------
# DeepLinkRule: what counts as a "widget setup" request
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DeepLinkRule:
    scheme: str
    hosts: frozenset[str] = field(default_factory=frozenset)

    def matches(self, uri: LinkUri) -> bool:
        return uri.scheme == self.scheme and uri.host in self.hosts


WIDGET_SETUP_RULE = DeepLinkRule(
    scheme="habit_reminder",
    hosts=frozenset({"widget_setup", "widget_settings"}),
)


# ---------------------------------------------------------------------------
# BridgeResponse: result of one bridge query
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class BridgeResponse:
    status: str                                   # success | not_implemented
    value: Any = None

    @classmethod
    def success(cls, value: Any) -> BridgeResponse:
        return cls(status=STATUS_SUCCESS, value=value)

    @classmethod
    def not_implemented(cls) -> BridgeResponse:
        return cls(status=STATUS_NOT_IMPLEMENTED)

    @property
    def ok(self) -> bool:
        return self.status == STATUS_SUCCESS

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
