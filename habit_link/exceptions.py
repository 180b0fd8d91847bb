"""habit_link exception hierarchy.

Three categories for quick error triage:

    InputError   : bad tooling input: unreadable event file, invalid YAML, bad record
    ChannelError : bridge wiring misuse: unknown channel, duplicate registration
    StoreError   : flag store I/O failure: corrupt file, write failure, lock timeout

All inherit from HabitLinkError for a single catch-all if needed.
Unrecognized deep links and unknown bridge methods are not errors.
"""

from __future__ import annotations


class HabitLinkError(Exception):
    """Base class for all habit_link errors."""

    category: str = "unknown"


class InputError(HabitLinkError):
    """Bad user-supplied input: missing file, malformed YAML, invalid event record."""

    category = "input"


class ChannelError(HabitLinkError):
    """Bridge channel misuse: dispatch to an unregistered channel, double registration."""

    category = "logic"


class StoreError(HabitLinkError):
    """Flag store failure: unreadable store file, write failure, lock timeout."""

    category = "integration"
