"""Issue number conflicts in the flat layout and their repair.

Three kinds are detected:
- duplicate filename number: several NNN-*.md files share NNN
- duplicate front-matter number: several parseable files share `number`
  (skipped when every file in the group also has that filename number,
  since the filename check already reports it)
- mismatch: NNN in the filename differs from the front-matter number

Duplicates keep the earliest created file (git first commit, then
created_at, then "now") and renumber the rest past the highest number in
use. Mismatches take the filename number, which is the visible identity.
"""

import logging
import shutil
from datetime import datetime
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field

from zap.issues.datetimes import utc_now
from zap.issues.errors import ConflictTargetExistsError, IssueError, IssueParseError
from zap.issues.parser import parse_file, write_issue_file
from zap.issues.schemas import Issue
from zap.issues.slug import DEFAULT_SLUG, extract_filename_number, extract_slug, issue_filename
from zap.services.git import GitHistory

LOG = logging.getLogger("zap.issues.conflicts")

BACKUP_SUFFIX = ".backup"


class ConflictKind(str, Enum):
    DUPLICATE_FILENAME = "duplicate_filename"
    DUPLICATE_FRONTMATTER = "duplicate_frontmatter"
    MISMATCH = "mismatch"


class FileInfo(BaseModel):
    """One .md file as seen by the detector."""

    path: Path = Field(..., description="Full path to the file")
    file_name: str = Field(..., description="Just the filename")
    filename_number: int | None = Field(default=None, description="NNN prefix, None without one")
    frontmatter_number: int | None = Field(default=None, description="Front-matter number, None if unparseable")
    created_at: datetime | None = Field(default=None, description="Front-matter created_at")
    git_created_at: datetime | None = Field(default=None, description="First commit time from git log")
    issue: Issue | None = None
    parse_error: str = ""

    def effective_created_at(self, now: datetime | None = None) -> datetime:
        """Git first commit, else created_at, else now (newest)."""
        if self.git_created_at is not None:
            return self.git_created_at
        if self.created_at is not None:
            return self.created_at
        return now or utc_now()


class Conflict(BaseModel):
    """A detected conflict; to_change and new_number are filled in by resolve_conflicts()."""

    kind: ConflictKind
    number: int = Field(..., description="The conflicting number")
    files: list[FileInfo] = Field(default_factory=list)
    to_change: FileInfo | None = Field(default=None, description="File elected for renumbering or rewrite")
    new_number: int = 0
    description: str = ""


class RepairResult(BaseModel):
    fixed: int = 0
    failed: int = 0
    failed_files: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)


def _names(files: list[FileInfo]) -> str:
    return ", ".join(fi.file_name for fi in files)


def load_file_info(path: Path, git: GitHistory | None = None) -> FileInfo:
    info = FileInfo(path=path, file_name=path.name, filename_number=extract_filename_number(path.name))
    try:
        issue = parse_file(path)
    except IssueParseError as e:
        info.parse_error = e.reason
    else:
        info.issue = issue
        info.frontmatter_number = issue.number
        info.created_at = issue.created_at
    if git is not None:
        info.git_created_at = git.first_commit_time(path)
    return info


def find_conflicts(files: list[FileInfo]) -> list[Conflict]:
    """Unresolved conflicts, one per duplicate group and one per mismatched file.

    Order is stable: filename duplicates, front-matter duplicates, then
    mismatches; groups by number and members by filename.
    """
    files = sorted(files, key=lambda fi: fi.file_name)

    by_filename: dict[int, list[FileInfo]] = {}
    by_frontmatter: dict[int, list[FileInfo]] = {}
    for fi in files:
        if fi.filename_number:
            by_filename.setdefault(fi.filename_number, []).append(fi)
        if fi.issue is not None and fi.frontmatter_number:
            by_frontmatter.setdefault(fi.frontmatter_number, []).append(fi)

    conflicts: list[Conflict] = []
    for num in sorted(by_filename):
        group = by_filename[num]
        if len(group) > 1:
            conflicts.append(
                Conflict(
                    kind=ConflictKind.DUPLICATE_FILENAME,
                    number=num,
                    files=group,
                    description=f"Multiple files have filename number {num:03d}: {_names(group)}",
                )
            )

    for num in sorted(by_frontmatter):
        group = by_frontmatter[num]
        if len(group) < 2:
            continue
        if all(fi.filename_number == num for fi in group):
            continue
        conflicts.append(
            Conflict(
                kind=ConflictKind.DUPLICATE_FRONTMATTER,
                number=num,
                files=group,
                description=f"Multiple files have frontmatter number {num}: {_names(group)}",
            )
        )

    for fi in files:
        if fi.issue is None or not fi.filename_number:
            continue
        if fi.filename_number == fi.frontmatter_number:
            continue
        if fi.frontmatter_number:
            found = f"frontmatter number {fi.frontmatter_number}"
        else:
            # Missing or zero number: the filename prefix is the only identity
            found = "no frontmatter number"
        conflicts.append(
            Conflict(
                kind=ConflictKind.MISMATCH,
                number=fi.filename_number,
                files=[fi],
                description=f"File {fi.file_name} has filename number {fi.filename_number:03d} but {found}",
            )
        )
    return conflicts


def resolve_conflicts(
    conflicts: list[Conflict],
    files: list[FileInfo],
    now: datetime | None = None,
) -> list[Conflict]:
    """Assign a fix plan to every conflict.

    A duplicate group of k files yields k-1 renumber plans with fresh
    numbers from max(all numbers) + 1. A file is never elected twice;
    groups left with fewer than two unelected members need no plan.
    Mismatches on files already being renumbered are dropped.
    """
    now = now or utc_now()
    highest = 0
    for fi in files:
        highest = max(highest, fi.filename_number or 0, fi.frontmatter_number or 0)
    next_number = highest + 1

    elected: set[Path] = set()
    plans: list[Conflict] = []
    for conflict in conflicts:
        if conflict.kind is ConflictKind.MISMATCH:
            continue
        members = [fi for fi in conflict.files if fi.path not in elected]
        if len(members) < 2:
            continue
        members.sort(key=lambda fi: (fi.effective_created_at(now), fi.file_name))
        for fi in members[1:]:
            elected.add(fi.path)
            plans.append(conflict.model_copy(update={"to_change": fi, "new_number": next_number}))
            next_number += 1

    for conflict in conflicts:
        if conflict.kind is not ConflictKind.MISMATCH:
            continue
        fi = conflict.files[0]
        if fi.path in elected:
            continue
        plans.append(conflict.model_copy(update={"to_change": fi, "new_number": fi.filename_number}))
    return plans


class ConflictDetector:
    """Scans one flat issues directory for number conflicts.

    git supplies first-commit times for the earliest-created tie-break;
    without it the front-matter created_at is used.
    """

    def __init__(self, base_dir: Path, git: GitHistory | None = None) -> None:
        self.base_dir = Path(base_dir)
        self.git = git if git is not None and git.available else None

    def load_all_files(self) -> list[FileInfo]:
        """FileInfo for every .md file directly in base_dir. OSError propagates."""
        return [
            load_file_info(path, self.git)
            for path in sorted(self.base_dir.iterdir())
            if path.suffix == ".md" and path.is_file()
        ]

    def detect_conflicts(self, now: datetime | None = None) -> list[Conflict]:
        files = self.load_all_files()
        conflicts = resolve_conflicts(find_conflicts(files), files, now=now)
        if conflicts:
            LOG.info("Found %d number conflict(s) in %s", len(conflicts), self.base_dir)
        return conflicts


def _write_backup(path: Path) -> Path:
    backup = path.with_name(path.name + BACKUP_SUFFIX)
    shutil.copyfile(path, backup)
    LOG.debug("Backed up %s to %s", path.name, backup.name)
    return backup


def apply_conflict_fix(conflict: Conflict, now: datetime | None = None) -> Path:
    """Apply one resolved conflict and return the file's final path.

    A <name>.backup copy is written before the file is touched. Renumbers
    that would overwrite an existing file raise ConflictTargetExistsError
    and change nothing.
    """
    fi = conflict.to_change
    if fi is None:
        raise IssueError(f"conflict for #{conflict.number} has not been resolved")
    now = now or utc_now()

    if conflict.kind is ConflictKind.MISMATCH:
        if fi.issue is None:
            raise IssueError(f"cannot rewrite unparseable file {fi.file_name}")
        _write_backup(fi.path)
        write_issue_file(fi.path, fi.issue.model_copy(update={"number": conflict.new_number, "updated_at": now}))
        LOG.info("Set front-matter number of %s to %d", fi.file_name, conflict.new_number)
        return fi.path

    slug = extract_slug(fi.file_name) or DEFAULT_SLUG
    target = fi.path.parent / issue_filename(conflict.new_number, slug)
    if target.exists():
        raise ConflictTargetExistsError(target)

    _write_backup(fi.path)
    if fi.issue is not None:
        write_issue_file(fi.path, fi.issue.model_copy(update={"number": conflict.new_number, "updated_at": now}))
    fi.path.rename(target)
    LOG.info("Renumbered %s -> %s", fi.file_name, target.name)
    return target


def repair_conflicts(conflicts: list[Conflict], now: datetime | None = None) -> RepairResult:
    """Apply every plan; failures are counted per conflict and do not stop the rest."""
    result = RepairResult()
    now = now or utc_now()
    for conflict in conflicts:
        try:
            apply_conflict_fix(conflict, now=now)
        except (IssueError, OSError) as e:
            name = conflict.to_change.file_name if conflict.to_change else f"#{conflict.number}"
            LOG.warning("Failed to fix %s: %s", name, e)
            result.failed += 1
            result.failed_files.append(name)
            result.errors.append(f"{name}: {e}")
        else:
            result.fixed += 1
    return result
