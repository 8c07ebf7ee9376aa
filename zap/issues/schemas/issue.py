"""Issue record as stored in .issues/NNN-slug.md front-matter + body."""

from datetime import date, datetime, timedelta
from enum import Enum
from pathlib import Path
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, Field

from zap.issues.datetimes import parse_flexible_datetime, to_utc, utc_now


class State(str, Enum):
    """Valid issue states. Every transition between them is allowed."""

    OPEN = "open"
    WIP = "wip"
    DONE = "done"
    CLOSED = "closed"


ALL_STATES: tuple[State, ...] = (State.OPEN, State.WIP, State.DONE, State.CLOSED)
ACTIVE_STATES: tuple[State, ...] = (State.OPEN, State.WIP)
CLOSED_STATES: tuple[State, ...] = (State.DONE, State.CLOSED)

# Legacy layout: subdirectory name -> state it implies
LEGACY_STATE_DIRS: dict[str, State] = {
    "open": State.OPEN,
    "wip": State.WIP,
    "in-progress": State.WIP,
    "done": State.DONE,
    "closed": State.CLOSED,
}

# Deprecated or hand-written state values and the state they mean
STATE_ALIASES: dict[str, State] = {
    "in-progress": State.WIP,
    "in_progress": State.WIP,
    "progress": State.WIP,
    "working": State.WIP,
    "started": State.WIP,
    "check": State.WIP,
    "checking": State.WIP,
    "verify": State.WIP,
    "verified": State.WIP,
    "review": State.WIP,
    "reviewing": State.WIP,
    "reviewed": State.WIP,
    "complete": State.DONE,
    "completed": State.DONE,
    "finished": State.DONE,
    "cancelled": State.CLOSED,
    "canceled": State.CLOSED,
    "archived": State.CLOSED,
}


def parse_state(value: str | None) -> State | None:
    """Exact (case-sensitive) match against the valid states."""
    try:
        return State(value)
    except ValueError:
        return None


def suggest_state(value: str) -> State | None:
    """Valid state a deprecated value should become, or None if unknown."""
    lowered = value.strip().lower()
    valid = parse_state(lowered)
    if valid is not None:
        return valid
    return STATE_ALIASES.get(lowered)


def _scalar_str(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if value is None:
        return ""
    if isinstance(value, (int, float)):
        return str(value)
    return value


def _string_list(value: Any) -> Any:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, (list, tuple)):
        return [str(item) for item in value if item is not None]
    return value


def _coerce_datetime(value: Any) -> datetime | None:
    """Accept datetimes, dates and any supported string shape; unparseable -> None."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return to_utc(value).replace(microsecond=0)
    if isinstance(value, date):
        return to_utc(datetime(value.year, value.month, value.day))
    parsed = parse_flexible_datetime(str(value))
    return parsed.replace(microsecond=0) if parsed is not None else None


FlexibleDatetime = Annotated[datetime | None, BeforeValidator(_coerce_datetime)]


class Issue(BaseModel):
    """One issue: front-matter fields, Markdown body and the file it came from."""

    number: int = Field(default=0, description="Issue number, also the NNN filename prefix")
    title: Annotated[str, BeforeValidator(_scalar_str)] = Field(default="", description="Issue title")
    state: Annotated[str, BeforeValidator(_scalar_str)] = Field(
        default="",
        description="open, wip, done or closed; unknown values are kept for fix-state",
    )
    labels: Annotated[list[str], BeforeValidator(_string_list)] = Field(default_factory=list)
    assignees: Annotated[list[str], BeforeValidator(_string_list)] = Field(default_factory=list)
    created_at: FlexibleDatetime = Field(default=None, description="Creation time (UTC)")
    updated_at: FlexibleDatetime = Field(default=None, description="Last update time (UTC)")
    closed_at: FlexibleDatetime = Field(default=None, description="Set while state is done or closed")
    body: str = Field(default="", description="Markdown after the front-matter, trimmed")
    file_path: Path | None = Field(default=None, exclude=True, description="Absolute path of the issue file")

    model_config = {"extra": "ignore", "validate_assignment": True}

    def has_valid_state(self) -> bool:
        return parse_state(self.state) is not None

    def is_active(self) -> bool:
        """Open or in progress."""
        return self.state in (State.OPEN.value, State.WIP.value)

    def is_closed(self) -> bool:
        return self.state in (State.DONE.value, State.CLOSED.value)

    def is_recently_closed(self, window: timedelta, now: datetime | None = None) -> bool:
        """Done/closed and last updated no longer than window ago."""
        if not self.is_closed() or self.updated_at is None:
            return False
        now = now or utc_now()
        return now - self.updated_at <= window


class ParseFailure(BaseModel):
    """A .md file in the issues directory whose front-matter could not be decoded."""

    file_path: Path = Field(..., description="Full path to the file")
    file_name: str = Field(..., description="Just the filename")
    error: str = Field(..., description="Parse error message")
    state: str = Field(default="", description="Legacy state directory it was in; empty in flat layout")
    content: str | None = Field(default=None, description="Raw file content, loaded on demand")


class IssueStats(BaseModel):
    """Totals and per-state / per-label / per-assignee counts."""

    total: int = 0
    by_state: dict[str, int] = Field(default_factory=dict)
    by_label: dict[str, int] = Field(default_factory=dict)
    by_assignee: dict[str, int] = Field(default_factory=dict)
