"""Move issues from the legacy .issues/<state>/ layout to the flat layout.

The enclosing directory is the ground truth for state in the legacy layout,
so each file's front-matter state is rewritten to match it before the move.
"""

import logging
from pathlib import Path

from pydantic import BaseModel, Field

from zap.issues.errors import IssueError
from zap.issues.parser import parse_file, write_issue_file
from zap.issues.schemas import LEGACY_STATE_DIRS, State
from zap.services.git import GitHistory, GitRunnerError

LOG = logging.getLogger("zap.issues.migrate")

GITKEEP = ".gitkeep"


class MigrationInfo(BaseModel):
    """Legacy files found under the state directories."""

    has_legacy_structure: bool = False
    issues_by_state: dict[str, list[str]] = Field(
        default_factory=dict, description="State directory name -> filenames"
    )
    total_issues: int = 0


class MigrateResult(BaseModel):
    migrated: int = 0
    failed: int = 0
    failed_files: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)

    def record_failure(self, file_name: str, error: str) -> None:
        self.failed += 1
        self.failed_files.append(file_name)
        self.errors.append(f"{file_name}: {error}")
        LOG.warning("Migration of %s failed: %s", file_name, error)


def detect_legacy_structure(base_dir: Path) -> MigrationInfo:
    """List .md files in every legacy state directory that exists."""
    base_dir = Path(base_dir)
    info = MigrationInfo()
    for dir_name in LEGACY_STATE_DIRS:
        directory = base_dir / dir_name
        if not directory.is_dir():
            continue
        names = sorted(p.name for p in directory.iterdir() if p.suffix == ".md" and p.is_file())
        if names:
            info.issues_by_state[dir_name] = names
            info.total_issues += len(names)
    info.has_legacy_structure = info.total_issues > 0
    return info


def _sync_state(path: Path, state: State) -> None:
    """Rewrite the front-matter state when it differs from the directory."""
    issue = parse_file(path)
    if issue.state != state.value:
        LOG.debug("%s: front-matter state %r -> %s", path.name, issue.state, state.value)
        issue.state = state.value
        write_issue_file(path, issue)


def _move(src: Path, dst: Path, git: GitHistory | None) -> None:
    if git is not None and git.available:
        try:
            git.move(src, dst)
            return
        except GitRunnerError as e:
            LOG.debug("git mv %s failed, renaming instead: %s", src.name, e)
    src.rename(dst)


def _remove_if_empty(directory: Path, git: GitHistory | None) -> None:
    """Remove a state directory that is empty or holds only .gitkeep."""
    if not directory.is_dir():
        return
    if any(entry.name != GITKEEP for entry in directory.iterdir()):
        return
    gitkeep = directory / GITKEEP
    if gitkeep.exists():
        removed = False
        if git is not None and git.available:
            try:
                git.remove(gitkeep)
                removed = True
            except GitRunnerError as e:
                LOG.debug("git rm %s failed: %s", gitkeep, e)
        if not removed:
            gitkeep.unlink(missing_ok=True)
    # git rm may already have removed the emptied directory
    if directory.is_dir():
        directory.rmdir()
    LOG.info("Removed empty state directory %s", directory.name)


def migrate(base_dir: Path, git: GitHistory | None = None) -> MigrateResult:
    """Move every legacy file to base_dir, keeping its filename.

    Per-file failures (destination exists, unparseable front-matter, I/O)
    are recorded and do not stop the run. No legacy structure is a no-op.
    """
    base_dir = Path(base_dir)
    result = MigrateResult()
    info = detect_legacy_structure(base_dir)
    if not info.has_legacy_structure:
        return result

    for dir_name, names in info.issues_by_state.items():
        state = LEGACY_STATE_DIRS[dir_name]
        for name in names:
            src = base_dir / dir_name / name
            dst = base_dir / name
            if dst.exists():
                result.record_failure(name, "destination file already exists")
                continue
            try:
                _sync_state(src, state)
                _move(src, dst, git)
            except (IssueError, OSError) as e:
                result.record_failure(name, str(e))
                continue
            result.migrated += 1
            LOG.info("Migrated %s/%s", dir_name, name)

    for dir_name in LEGACY_STATE_DIRS:
        try:
            _remove_if_empty(base_dir / dir_name, git)
        except OSError as e:
            LOG.warning("Could not remove %s: %s", dir_name, e)
    return result
