"""Flexible datetime parsing for issue front-matter.

Input is tried against an ordered list of recognizers and the first match
wins. Values without a zone are UTC. Output has exactly one shape:
RFC3339 in UTC with a Z suffix, second precision.
"""

import re
from datetime import UTC, datetime
from enum import Enum


class DatetimeFormat(str, Enum):
    """Detected shape of a raw datetime string."""

    RFC3339 = "RFC3339"  # 2026-01-17T15:47:00Z
    ISO8601 = "ISO8601"  # 2026-01-17T15:47:00
    DATETIME_SPACE = "YYYY-MM-DD HH:MM:SS"  # 2026-01-17 15:47:00
    DATETIME_SHORT = "YYYY-MM-DD HH:MM"  # 2026-01-17 15:47
    DATE_ONLY = "YYYY-MM-DD"  # 2026-01-17
    EMPTY = "(empty)"
    UNKNOWN = "(unknown)"


FORMAT_EXAMPLES = {
    DatetimeFormat.RFC3339: "2026-01-17T15:47:00Z",
    DatetimeFormat.ISO8601: "2026-01-17T15:47:00",
    DatetimeFormat.DATETIME_SPACE: "2026-01-17 15:47:00",
    DatetimeFormat.DATETIME_SHORT: "2026-01-17 15:47",
    DatetimeFormat.DATE_ONLY: "2026-01-17",
}

_RFC3339_RE = re.compile(r"^\d{4}-\d{2}-\d{2}[Tt]\d{2}:\d{2}:\d{2}(\.\d+)?([Zz]|[+-]\d{2}:\d{2})$")


def _parse_rfc3339(value: str) -> datetime | None:
    if not _RFC3339_RE.match(value):
        return None
    normalized = value.upper()
    if normalized.endswith("Z"):
        normalized = normalized[:-1] + "+00:00"
    return datetime.fromisoformat(normalized)


def _strptime_recognizer(pattern: str, layout: str):
    regex = re.compile(pattern)

    def recognize(value: str) -> datetime | None:
        if not regex.match(value):
            return None
        return datetime.strptime(value, layout)

    return recognize


# Order matters: first successful recognizer wins
_RECOGNIZERS = [
    (DatetimeFormat.RFC3339, _parse_rfc3339),
    (DatetimeFormat.ISO8601, _strptime_recognizer(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}$", "%Y-%m-%dT%H:%M:%S")),
    (
        DatetimeFormat.DATETIME_SPACE,
        _strptime_recognizer(r"^\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}$", "%Y-%m-%d %H:%M:%S"),
    ),
    (DatetimeFormat.DATETIME_SHORT, _strptime_recognizer(r"^\d{4}-\d{2}-\d{2} \d{2}:\d{2}$", "%Y-%m-%d %H:%M")),
    (DatetimeFormat.DATE_ONLY, _strptime_recognizer(r"^\d{4}-\d{2}-\d{2}$", "%Y-%m-%d")),
]


def _recognize(value: str) -> tuple[DatetimeFormat, datetime] | None:
    for fmt, recognizer in _RECOGNIZERS:
        try:
            parsed = recognizer(value)
        except ValueError:
            # Shape matched but the calendar did not (e.g. month 13)
            continue
        if parsed is not None:
            return fmt, parsed
    return None


def detect_datetime_format(value: str | None) -> DatetimeFormat:
    """Classify a raw front-matter datetime string."""
    if value is None or not str(value).strip():
        return DatetimeFormat.EMPTY
    found = _recognize(str(value).strip())
    return found[0] if found else DatetimeFormat.UNKNOWN


def to_utc(value: datetime) -> datetime:
    """Naive datetimes are taken as UTC; aware ones are converted."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def parse_flexible_datetime(value: str | None) -> datetime | None:
    """Parse any supported shape into an aware UTC datetime.

    Empty and unrecognized values return None rather than raising.
    """
    if value is None or not str(value).strip():
        return None
    found = _recognize(str(value).strip())
    if found is None:
        return None
    return to_utc(found[1])


def format_rfc3339(value: datetime) -> str:
    """Canonical on-disk form: 2026-01-17T06:30:00Z."""
    return to_utc(value).strftime("%Y-%m-%dT%H:%M:%SZ")


def utc_now() -> datetime:
    """Current UTC time truncated to seconds, so in-memory values match what is written."""
    return datetime.now(UTC).replace(microsecond=0)
