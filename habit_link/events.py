"""Activation event construction from raw links and YAML event files.

An event file is either a list of records or a mapping with an ``events``
list. Each record is a mapping:

    - uri: habit_reminder://widget_setup          # action defaults to VIEW
    - action: android.intent.action.MAIN          # launcher start, no link
    - {action: android.intent.action.VIEW, uri: null}
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml  # type: ignore[import-untyped]

from .exceptions import InputError
from .schemas import ACTION_VIEW, ActivationEvent, LinkUri

_RECORD_FIELDS = {"action", "uri"}


def event_from_link(text: str | None, action: str = ACTION_VIEW) -> ActivationEvent:
    """Build an event the way the OS would deliver a tapped link."""
    uri = LinkUri.parse(text) if text else None
    return ActivationEvent(action=action, uri=uri)


def event_from_record(record: Any, index: int = 0) -> ActivationEvent:
    if not isinstance(record, dict):
        raise InputError(f"event #{index}: expected a mapping, got {type(record).__name__}")
    unknown = sorted(set(record) - _RECORD_FIELDS)
    if unknown:
        raise InputError(f"event #{index}: unknown fields: {', '.join(map(str, unknown))}")

    action = record.get("action", ACTION_VIEW)
    if not isinstance(action, str) or not action:
        raise InputError(f"event #{index}: action must be a non-empty string")

    uri = record.get("uri")
    if uri is not None and not isinstance(uri, str):
        raise InputError(f"event #{index}: uri must be a string or null")
    return event_from_link(uri, action=action)


def parse_events(text: str) -> list[ActivationEvent]:
    try:
        raw = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise InputError(f"Invalid event YAML: {exc}") from exc

    if raw is None:
        return []
    if isinstance(raw, dict):
        if "events" not in raw:
            raise InputError("Event file mapping must contain an 'events' list")
        raw = raw["events"] or []
    if not isinstance(raw, list):
        raise InputError("Event file must hold a list of events")
    return [event_from_record(record, i) for i, record in enumerate(raw, start=1)]


def load_events(path: Path) -> list[ActivationEvent]:
    """Read activation events from a YAML file."""
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise InputError(f"Cannot read event file {path}: {exc}") from exc
    return parse_events(text)
