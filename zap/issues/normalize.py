"""Bulk repairs for hand-edited issue files.

Datetimes: report which shapes are in use and rewrite everything to RFC3339
UTC. Date-only and missing values take their time from git history when
available (first commit for created_at, last commit for updated_at).

States: find front-matter states outside open/wip/done/closed and rewrite
the state: line in place with the suggested replacement.
"""

import logging
from collections.abc import Callable, Iterable
from datetime import datetime
from pathlib import Path

from pydantic import BaseModel, Field

from zap.issues.datetimes import DatetimeFormat, detect_datetime_format, format_rfc3339
from zap.issues.errors import IssueError, IssueNotFoundError, IssueParseError
from zap.issues.parser import DELIMITER, read_raw_datetimes, write_issue_file, write_text_atomic
from zap.issues.schemas import Issue, State, parse_state, suggest_state
from zap.issues.store import IssueStore
from zap.services.git import GitHistory

LOG = logging.getLogger("zap.issues.normalize")

DATETIME_FIELDS = ("created_at", "updated_at", "closed_at")


class FormatStats(BaseModel):
    count: int = 0
    issues: list[int] = Field(default_factory=list)


class DatetimeReport(BaseModel):
    """Datetime shapes per field across all parseable issues."""

    total_issues: int = 0
    fields: dict[str, dict[DatetimeFormat, FormatStats]] = Field(
        default_factory=lambda: {name: {} for name in DATETIME_FIELDS}
    )
    total_fields: int = 0
    rfc3339_fields: int = 0
    need_conversion: int = 0

    def add(self, field: str, fmt: DatetimeFormat, number: int) -> None:
        stats = self.fields[field].setdefault(fmt, FormatStats())
        stats.count += 1
        stats.issues.append(number)
        self.total_fields += 1
        if fmt is DatetimeFormat.RFC3339:
            self.rfc3339_fields += 1
        elif fmt is not DatetimeFormat.EMPTY:
            self.need_conversion += 1


class FieldChange(BaseModel):
    field: str
    before: str = Field(..., description="Raw value, or (zero) when missing")
    after: str


class DatetimeChange(BaseModel):
    """Planned (or applied) datetime rewrite of one issue file."""

    number: int
    title: str = ""
    file_path: Path
    changes: list[FieldChange] = Field(default_factory=list)
    written: bool = False
    error: str = ""


class InvalidState(BaseModel):
    path: Path
    file_name: str
    state: str = Field(..., description="State value as written")
    suggestion: State | None = Field(default=None, description="Valid replacement, None if unknown")


def analyze_datetime_formats(store: IssueStore) -> DatetimeReport:
    """Count datetime shapes; closed_at only where present."""
    issues, _ = store.list_issues()
    report = DatetimeReport()
    for issue in issues:
        try:
            raw = read_raw_datetimes(issue.file_path)
        except (IssueParseError, OSError) as e:
            LOG.warning("Cannot read datetimes of issue #%s: %s", issue.number, e)
            continue
        report.total_issues += 1
        report.add("created_at", detect_datetime_format(raw.created_at), issue.number)
        report.add("updated_at", detect_datetime_format(raw.updated_at), issue.number)
        if raw.closed_at:
            report.add("closed_at", detect_datetime_format(raw.closed_at), issue.number)
    return report


def _normalize_field(
    name: str,
    value: datetime | None,
    raw: str,
    from_git: Callable[[], datetime | None],
) -> tuple[datetime | None, FieldChange | None]:
    """New value for one field and the change record, or (value, None) when already canonical."""
    if value is None:
        git_time = from_git()
        if git_time is None:
            return value, None
        return git_time, FieldChange(field=name, before=raw or "(zero)", after=format_rfc3339(git_time))

    if raw == format_rfc3339(value):
        return value, None

    new_value = value
    if detect_datetime_format(raw) is DatetimeFormat.DATE_ONLY:
        new_value = from_git() or value
    return new_value, FieldChange(field=name, before=raw, after=format_rfc3339(new_value))


def _select(issues: list[Issue], numbers: Iterable[int] | None) -> list[Issue]:
    if numbers is None:
        return issues
    by_number = {issue.number: issue for issue in issues}
    selected = []
    for number in numbers:
        if number not in by_number:
            raise IssueNotFoundError(number)
        selected.append(by_number[number])
    return selected


def normalize_datetimes(
    store: IssueStore,
    git: GitHistory | None = None,
    numbers: Iterable[int] | None = None,
    dry_run: bool = False,
) -> list[DatetimeChange]:
    """Rewrite non-canonical datetimes; returns one record per issue that needs changes."""
    issues, _ = store.list_issues()
    results: list[DatetimeChange] = []
    for issue in _select(issues, numbers):
        path = issue.file_path
        try:
            raw = read_raw_datetimes(path)
        except (IssueParseError, OSError) as e:
            LOG.warning("Cannot read datetimes of issue #%s: %s", issue.number, e)
            continue

        def first_commit() -> datetime | None:
            return git.first_commit_time(path) if git is not None else None

        def last_commit() -> datetime | None:
            return git.last_commit_time(path) if git is not None else None

        record = DatetimeChange(number=issue.number, title=issue.title, file_path=path)
        created, change = _normalize_field("created_at", issue.created_at, raw.created_at, first_commit)
        if change:
            record.changes.append(change)
        updated, change = _normalize_field("updated_at", issue.updated_at, raw.updated_at, last_commit)
        if change:
            record.changes.append(change)
        closed = issue.closed_at
        if raw.closed_at and closed is not None and raw.closed_at != format_rfc3339(closed):
            record.changes.append(FieldChange(field="closed_at", before=raw.closed_at, after=format_rfc3339(closed)))

        if not record.changes:
            continue
        results.append(record)
        if dry_run:
            continue

        try:
            write_issue_file(path, issue.model_copy(update={"created_at": created, "updated_at": updated}))
        except OSError as e:
            LOG.warning("Failed to write issue #%s: %s", issue.number, e)
            record.error = str(e)
            continue
        record.written = True
        LOG.info("Normalized datetimes of issue #%s (%d field(s))", issue.number, len(record.changes))
    return results


def _frontmatter_state_line(lines: list[str]) -> int | None:
    """Index of the first state: line inside the front-matter block."""
    inside = False
    for idx, line in enumerate(lines):
        if line.strip() == DELIMITER:
            if inside:
                return None
            inside = True
            continue
        if inside and line.startswith("state:"):
            return idx
    return None


def _state_from_line(line: str) -> str:
    return line[len("state:") :].strip().strip("\"'")


def find_invalid_states(base_dir: Path) -> list[InvalidState]:
    """Flat-layout files whose state is not one of the valid states."""
    found = []
    for path in sorted(Path(base_dir).glob("*.md")):
        try:
            lines = path.read_text(encoding="utf-8").split("\n")
        except (OSError, UnicodeDecodeError) as e:
            LOG.debug("Skipping %s: %s", path.name, e)
            continue
        idx = _frontmatter_state_line(lines)
        if idx is None:
            continue
        state = _state_from_line(lines[idx])
        if not state or parse_state(state) is not None:
            continue
        found.append(InvalidState(path=path, file_name=path.name, state=state, suggestion=suggest_state(state)))
    return found


def fix_invalid_state(invalid: InvalidState, new_state: State | None = None) -> None:
    """Rewrite only the state: line, keeping its quoting style."""
    target = new_state or invalid.suggestion
    if target is None:
        raise IssueError(f"{invalid.file_name}: no replacement known for state {invalid.state!r}")

    lines = invalid.path.read_text(encoding="utf-8").split("\n")
    idx = _frontmatter_state_line(lines)
    if idx is None:
        raise IssueError(f"{invalid.file_name}: no state line in front-matter")

    line = lines[idx]
    if '"' in line:
        lines[idx] = f'state: "{target.value}"'
    elif "'" in line:
        lines[idx] = f"state: '{target.value}'"
    else:
        lines[idx] = f"state: {target.value}"
    write_text_atomic(invalid.path, "\n".join(lines))
    LOG.info("Fixed state of %s: %s -> %s", invalid.file_name, invalid.state, target.value)
