"""Issue storage in .issues/ as Markdown files with YAML front-matter.

Flat layout (preferred): .issues/NNN-slug.md, state lives in the front-matter.
Legacy layout: .issues/<state>/NNN-slug.md, state comes from the directory.
Nothing is cached between calls; every query re-reads the directory.
"""

import logging
from datetime import datetime, timedelta
from pathlib import Path

from zap.config import StoreConfig
from zap.issues.conflicts import Conflict, ConflictDetector, RepairResult
from zap.issues.conflicts import repair_conflicts as repair_detected_conflicts
from zap.issues.datetimes import utc_now
from zap.issues.errors import InvalidStateError, IssueError, IssueNotFoundError, IssueParseError
from zap.issues.migrate import MigrateResult, MigrationInfo
from zap.issues.migrate import detect_legacy_structure as detect_legacy_layout
from zap.issues.migrate import migrate as migrate_legacy_layout
from zap.issues.parser import parse_file, write_issue_file
from zap.issues.refs import RefGraph
from zap.issues.refs import build_ref_graph as build_graph
from zap.issues.schemas import (
    CLOSED_STATES,
    LEGACY_STATE_DIRS,
    Issue,
    IssueStats,
    ParseFailure,
    State,
    parse_state,
)
from zap.issues.slug import extract_filename_number, generate_slug, issue_filename
from zap.services.git import GitHistory

LOG = logging.getLogger("zap.issues.store")

DEFAULT_RECENT_CLOSED_WINDOW = timedelta(minutes=5)


def _state_value(state: State | str) -> str:
    return state.value if isinstance(state, State) else str(state)


def _require_state(state: State | str) -> State:
    valid = parse_state(_state_value(state))
    if valid is None:
        raise InvalidStateError(_state_value(state))
    return valid


def _sort_key(issue: Issue) -> tuple[int, str]:
    return issue.number, issue.file_path.name if issue.file_path else ""


class IssueStore:
    """A directory of issue files presented as a queryable collection.

    The store assumes it is the only writer. Warnings from the most recent
    list_issues() call are kept for repair tooling.
    """

    def __init__(
        self,
        base_dir: Path,
        git: GitHistory | None = None,
        recent_closed_window: timedelta = DEFAULT_RECENT_CLOSED_WINDOW,
    ) -> None:
        self.base_dir = Path(base_dir)
        self.git = git
        self.recent_closed_window = recent_closed_window
        self._warnings: list[ParseFailure] = []

    @classmethod
    def from_config(cls, config: StoreConfig, git: GitHistory | None = None) -> "IssueStore":
        return cls(
            config.issues_dir,
            git=git,
            recent_closed_window=timedelta(minutes=config.recent_closed_minutes),
        )

    # Enumeration

    def _scan_dir(self, directory: Path, state_dir: str = "") -> tuple[list[Issue], list[ParseFailure]]:
        """Parse every .md file directly inside directory."""
        issues: list[Issue] = []
        failures: list[ParseFailure] = []
        if not directory.is_dir():
            return issues, failures
        for path in sorted(directory.iterdir()):
            if path.suffix != ".md" or not path.is_file():
                continue
            try:
                issues.append(parse_file(path))
            except IssueParseError as e:
                LOG.warning("Failed to parse %s: %s", path, e.reason)
                failures.append(
                    ParseFailure(file_path=path, file_name=path.name, error=e.reason, state=state_dir)
                )
        return issues, failures

    def _load_legacy(self) -> tuple[list[Issue], list[ParseFailure]]:
        issues: list[Issue] = []
        failures: list[ParseFailure] = []
        for dir_name, state in LEGACY_STATE_DIRS.items():
            dir_issues, dir_failures = self._scan_dir(self.base_dir / dir_name, state.value)
            for issue in dir_issues:
                # The directory is authoritative in the legacy layout
                issue.state = state.value
            issues.extend(dir_issues)
            failures.extend(dir_failures)
        return issues, failures

    def list_issues(self, *states: State | str) -> tuple[list[Issue], list[ParseFailure]]:
        """All parseable issues (optionally only those in states) and the files that failed.

        Flat layout wins when at least one top-level file parses; otherwise
        the legacy state directories are read. Sorted by number.
        """
        issues, failures = self._scan_dir(self.base_dir)
        if not issues:
            legacy_issues, legacy_failures = self._load_legacy()
            if legacy_issues or legacy_failures:
                LOG.debug("No flat issues in %s, reading legacy state directories", self.base_dir)
            issues = legacy_issues
            failures = failures + legacy_failures

        self._warnings = failures

        wanted = {_state_value(s) for s in states}
        if wanted:
            issues = [i for i in issues if i.state in wanted]
        issues.sort(key=_sort_key)
        return issues, list(failures)

    def is_flat_layout(self) -> bool:
        """True when at least one top-level file parses."""
        issues, _ = self._scan_dir(self.base_dir)
        return bool(issues)

    def get(self, number: int) -> Issue:
        """Issue by number; raises IssueNotFoundError."""
        issues, _ = self.list_issues()
        for issue in issues:
            if issue.number == number:
                return issue
        raise IssueNotFoundError(number)

    # Transitions

    def move(self, number: int, new_state: State | str) -> Issue:
        """Change the state of an issue.

        Flat files get their front-matter rewritten (update_state); legacy
        files are renamed into the matching state directory.
        """
        target = _require_state(new_state)
        issue = self.get(number)
        if issue.state == target.value:
            return issue

        if issue.file_path is None or issue.file_path.parent == self.base_dir:
            return self.update_state(issue, target)

        new_dir = self.base_dir / target.value
        new_dir.mkdir(parents=True, exist_ok=True)
        new_path = new_dir / issue.file_path.name
        issue.file_path.rename(new_path)
        LOG.info("Issue #%s moved %s -> %s", number, issue.state, target.value)
        issue.state = target.value
        issue.file_path = new_path
        return issue

    def update_state(self, issue: Issue, new_state: State | str) -> Issue:
        """Set state, bump updated_at and keep closed_at in step, then rewrite the file."""
        target = _require_state(new_state)
        if issue.state == target.value:
            return issue
        if issue.file_path is None:
            raise IssueError(f"issue #{issue.number} has no file path")

        previous = issue.state
        now = utc_now()
        issue.state = target.value
        issue.updated_at = now
        issue.closed_at = now if target in CLOSED_STATES else None
        write_issue_file(issue.file_path, issue)
        LOG.info("Issue #%s state %s -> %s", issue.number, previous, target.value)
        return issue

    # Queries

    def search(self, keyword: str, title_only: bool = False) -> list[Issue]:
        """Case-insensitive substring match on title (and body unless title_only)."""
        issues, _ = self.list_issues()
        needle = keyword.lower()
        results = []
        for issue in issues:
            if needle in issue.title.lower():
                results.append(issue)
            elif not title_only and needle in issue.body.lower():
                results.append(issue)
        return results

    def filter_by_label(self, label: str, *states: State | str) -> list[Issue]:
        issues, _ = self.list_issues(*states)
        wanted = label.casefold()
        return [i for i in issues if any(lbl.casefold() == wanted for lbl in i.labels)]

    def filter_by_assignee(self, assignee: str, *states: State | str) -> list[Issue]:
        issues, _ = self.list_issues(*states)
        wanted = assignee.casefold()
        return [i for i in issues if any(a.casefold() == wanted for a in i.assignees)]

    def list_recently_closed(self, window: timedelta | None = None, now: datetime | None = None) -> list[Issue]:
        """Done/closed issues updated within window (default: the configured window)."""
        window = self.recent_closed_window if window is None else window
        if window <= timedelta(0):
            return []
        now = now or utc_now()
        issues, _ = self.list_issues(*CLOSED_STATES)
        return [i for i in issues if i.is_recently_closed(window, now)]

    def stats(self) -> IssueStats:
        issues, _ = self.list_issues()
        stats = IssueStats(total=len(issues))
        for issue in issues:
            stats.by_state[issue.state] = stats.by_state.get(issue.state, 0) + 1
            for label in issue.labels:
                stats.by_label[label] = stats.by_label.get(label, 0) + 1
            for assignee in issue.assignees:
                stats.by_assignee[assignee] = stats.by_assignee.get(assignee, 0) + 1
        return stats

    # Parse failures

    def warnings(self) -> list[ParseFailure]:
        """Parse failures captured by the most recent list_issues()."""
        return list(self._warnings)

    def warnings_with_content(self) -> list[ParseFailure]:
        """Same as warnings() with each file's raw content loaded (None if unreadable)."""
        return [self._with_content(w) for w in self._warnings]

    def get_failure_by_number(self, number: int) -> ParseFailure | None:
        """Failure whose filename starts with N- or NNN-, content loaded."""
        prefixes = (f"{number}-", f"{number:03d}-")
        for failure in self._warnings:
            if failure.file_name.startswith(prefixes):
                return self._with_content(failure)
        return None

    @staticmethod
    def _with_content(failure: ParseFailure) -> ParseFailure:
        try:
            content = failure.file_path.read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            LOG.debug("Cannot read %s: %s", failure.file_path, e)
            content = None
        return failure.model_copy(update={"content": content})

    # Creation

    def next_number(self) -> int:
        """One past the highest number in use, counting unparseable files by their filename prefix."""
        issues, failures = self.list_issues()
        highest = max((i.number for i in issues), default=0)
        for failure in failures:
            prefix = extract_filename_number(failure.file_name)
            if prefix is not None and prefix > highest:
                highest = prefix
        return highest + 1

    def create_issue(
        self,
        title: str,
        *,
        labels: list[str] | None = None,
        assignees: list[str] | None = None,
        body: str = "",
        state: State | str = State.OPEN,
    ) -> Issue:
        """Write a new NNN-slug.md in the flat layout and return it."""
        title = title.strip()
        if not title:
            raise IssueError("title is required")
        target = _require_state(state)

        self.base_dir.mkdir(parents=True, exist_ok=True)
        number = self.next_number()
        path = self.base_dir / issue_filename(number, generate_slug(title))
        if path.exists():
            raise IssueError(f"file already exists: {path.name}")

        now = utc_now()
        issue = Issue(
            number=number,
            title=title,
            state=target.value,
            labels=labels or [],
            assignees=assignees or [],
            created_at=now,
            updated_at=now,
            closed_at=now if target in CLOSED_STATES else None,
            body=body,
            file_path=path,
        )
        write_issue_file(path, issue)
        LOG.info("Created issue #%s (%s)", number, path.name)
        return issue

    # Delegates

    def detect_conflicts(self) -> list[Conflict]:
        return ConflictDetector(self.base_dir, git=self.git).detect_conflicts()

    def repair_conflicts(self) -> RepairResult:
        return repair_detected_conflicts(self.detect_conflicts())

    def detect_legacy_structure(self) -> MigrationInfo:
        return detect_legacy_layout(self.base_dir)

    def migrate(self) -> MigrateResult:
        return migrate_legacy_layout(self.base_dir, git=self.git)

    def build_ref_graph(self) -> RefGraph:
        issues, _ = self.list_issues()
        return build_graph(issues)
