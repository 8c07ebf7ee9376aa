"""Schemas for issue files and store results."""

from zap.issues.schemas.issue import (
    ACTIVE_STATES,
    ALL_STATES,
    CLOSED_STATES,
    LEGACY_STATE_DIRS,
    STATE_ALIASES,
    Issue,
    IssueStats,
    ParseFailure,
    State,
    parse_state,
    suggest_state,
)

__all__ = [
    "ACTIVE_STATES",
    "ALL_STATES",
    "CLOSED_STATES",
    "LEGACY_STATE_DIRS",
    "STATE_ALIASES",
    "Issue",
    "IssueStats",
    "ParseFailure",
    "State",
    "parse_state",
    "suggest_state",
]
