"""Git history lookups and history-preserving file moves for the issues directory.

Everything here is best-effort: callers treat a missing git binary, a
directory outside a checkout or an untracked file as "no history" and fall
back to plain filesystem operations.
"""

import logging
from datetime import UTC, datetime
from pathlib import Path

from zap.services.git._run import GitRunnerError, _run_git

LOG = logging.getLogger("zap.services.git.history")


def _parse_git_time(output: str, last: bool = False) -> datetime | None:
    """Parse one %aI line of git log output into an aware UTC datetime."""
    lines = [line.strip() for line in output.strip().splitlines() if line.strip()]
    if not lines:
        return None
    raw = lines[-1] if last else lines[0]
    try:
        return datetime.fromisoformat(raw).astimezone(UTC)
    except ValueError:
        return None


def _pathspec(path: Path) -> str:
    """Absolute form of path; git runs with the repository root as cwd."""
    return str(Path(path).resolve())


class GitHistory:
    """Git capability bound to one repository root.

    root is None when the directory is not inside a git checkout; all
    lookups then return None and all moves raise GitRunnerError.
    """

    def __init__(self, root: Path | None, log: logging.Logger | None = None) -> None:
        self.root = Path(root) if root is not None else None
        self._log = log or LOG

    @classmethod
    def discover(cls, path: Path) -> "GitHistory":
        """Find the repository containing path via git rev-parse --show-toplevel."""
        try:
            out = _run_git(["rev-parse", "--show-toplevel"], cwd=Path(path), log=LOG)
        except GitRunnerError:
            LOG.debug("No git repository at %s", path)
            return cls(None)
        top = out.strip()
        return cls(Path(top) if top else None)

    @property
    def available(self) -> bool:
        return self.root is not None

    def first_commit_time(self, path: Path) -> datetime | None:
        """Author time of the commit that added path (following renames)."""
        if self.root is None:
            return None
        try:
            out = _run_git(
                ["log", "--diff-filter=A", "--follow", "--format=%aI", "--", _pathspec(path)],
                cwd=self.root,
                log=self._log,
            )
        except GitRunnerError:
            return None
        # git log is newest first; the last line is the original add
        return _parse_git_time(out, last=True)

    def last_commit_time(self, path: Path) -> datetime | None:
        """Author time of the most recent commit touching path."""
        if self.root is None:
            return None
        try:
            out = _run_git(["log", "-1", "--format=%aI", "--", _pathspec(path)], cwd=self.root, log=self._log)
        except GitRunnerError:
            return None
        return _parse_git_time(out)

    def move(self, src: Path, dst: Path) -> None:
        """git mv src dst; raises GitRunnerError when git refuses (e.g. untracked file)."""
        if self.root is None:
            raise GitRunnerError("not a git repository")
        _run_git(["mv", _pathspec(src), _pathspec(dst)], cwd=self.root, log=self._log)
        self._log.debug("git mv %s -> %s", src, dst)

    def remove(self, path: Path) -> None:
        """git rm -f path; raises GitRunnerError on failure."""
        if self.root is None:
            raise GitRunnerError("not a git repository")
        _run_git(["rm", "-f", _pathspec(path)], cwd=self.root, log=self._log)
        self._log.debug("git rm %s", path)
