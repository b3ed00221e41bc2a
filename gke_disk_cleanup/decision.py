"""
Decision engine for the mark pipeline.

Given when a volume was last attached, the current value of its
marked-for-deletion label, and the configured cutoff, decide whether the
label should be set, cleared, or left alone. No I/O happens here; the
current time is always passed in.
"""

import re
from datetime import UTC, datetime, timedelta
from typing import NamedTuple

from .labels import VALUE_MARKED
from .models import Action, Diagnostic

RFC3339_PATTERN = re.compile(
    r"\d{4}-\d{2}-\d{2}[Tt]\d{2}:\d{2}:\d{2}(\.\d+)?([Zz]|[+-]\d{2}:\d{2})",
    re.ASCII,
)


class TimestampParseError(ValueError):
    """Last-attach timestamp is present but not valid RFC 3339."""

    def __init__(self, value: str):
        self.value = value
        super().__init__(f"cannot parse last attach timestamp {value!r}")


class Decision(NamedTuple):
    action: Action
    diagnostic: Diagnostic | None = None


def utcnow() -> datetime:
    return datetime.now(UTC)


def ensure_utc(dt: datetime) -> datetime:
    """
    Ensure a datetime is timezone-aware and in UTC.

    Naive datetimes are assumed to already be UTC.
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def parse_timestamp(value: str) -> datetime:
    """
    Parse an RFC 3339 timestamp as reported by Compute Engine.

    The full date-time form with an explicit offset is required; date-only,
    basic-format and space-separated values are rejected.

    Raises:
        TimestampParseError: If the value is not a valid timestamp
    """
    if not RFC3339_PATTERN.fullmatch(value):
        raise TimestampParseError(value)

    text = f"{value[:10]}T{value[11:]}"
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as e:
        raise TimestampParseError(value) from e
    return ensure_utc(parsed)


def decide(
    last_attached_at: str | None,
    label_value: str | None,
    cutoff: timedelta,
    now: datetime,
) -> Decision:
    """
    Decide what the mark pipeline should do with one volume.

    Args:
        last_attached_at: RFC 3339 last-attach time; None or '' if never attached
        label_value: Current marked-for-deletion value, None if the label is absent
        cutoff: Minimum time since last attach before a volume is marked
        now: Current time

    Returns:
        Decision with the action and, for skips, the reason

    Raises:
        TimestampParseError: If last_attached_at cannot be parsed
    """
    # Never attached: nothing will ever reclaim it, mark regardless of label
    if not last_attached_at:
        return Decision(Action.MARK)

    elapsed = ensure_utc(now) - parse_timestamp(last_attached_at)

    if elapsed < cutoff:
        if label_value == VALUE_MARKED:
            return Decision(Action.UNMARK)
        return Decision(Action.SKIP, Diagnostic.WITHIN_CUTOFF)

    if label_value == VALUE_MARKED:
        return Decision(Action.SKIP, Diagnostic.ALREADY_MARKED)
    if label_value is not None:
        return Decision(Action.SKIP, Diagnostic.EXPLICITLY_UNMARKED)
    return Decision(Action.MARK)
