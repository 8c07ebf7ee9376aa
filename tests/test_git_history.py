"""Tests for zap.services.git (runner and history lookups)."""

import subprocess
from datetime import UTC, datetime
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from zap.services.git import GitHistory, GitRunnerError
from zap.services.git._run import _run_git


class TestRunGit:
    """_run_git error mapping."""

    def test_returns_stdout(self, tmp_path: Path) -> None:
        """Successful commands return stdout."""
        with patch("zap.services.git._run.subprocess.run") as run:
            run.return_value = MagicMock(stdout="ok\n")
            assert _run_git(["status"], cwd=tmp_path) == "ok\n"
        run.assert_called_once_with(["git", "status"], cwd=tmp_path, check=True, capture_output=True, text=True)

    def test_non_zero_exit(self, tmp_path: Path) -> None:
        """CalledProcessError becomes GitRunnerError with stderr."""
        error = subprocess.CalledProcessError(128, ["git", "mv"], output="", stderr="fatal: not under version control\n")
        with patch("zap.services.git._run.subprocess.run", side_effect=error):
            with pytest.raises(GitRunnerError, match="not under version control"):
                _run_git(["mv", "a", "b"], cwd=tmp_path)

    def test_git_missing(self, tmp_path: Path) -> None:
        """A missing git binary is a GitRunnerError too."""
        with patch("zap.services.git._run.subprocess.run", side_effect=FileNotFoundError("git")):
            with pytest.raises(GitRunnerError, match="git not found"):
                _run_git(["status"], cwd=tmp_path)


class TestGitHistory:
    """GitHistory with the runner patched out."""

    def test_discover(self, tmp_path: Path) -> None:
        """rev-parse output becomes the root."""
        with patch("zap.services.git.history._run_git", return_value=f"{tmp_path}\n") as run:
            git = GitHistory.discover(tmp_path / ".issues")
        assert git.available
        assert git.root == tmp_path
        assert run.call_args.args[0] == ["rev-parse", "--show-toplevel"]

    def test_discover_outside_checkout(self, tmp_path: Path) -> None:
        """No repository gives an unavailable history."""
        with patch("zap.services.git.history._run_git", side_effect=GitRunnerError("not a git repository")):
            git = GitHistory.discover(tmp_path)
        assert not git.available
        assert git.first_commit_time(tmp_path / "001-a.md") is None
        assert git.last_commit_time(tmp_path / "001-a.md") is None

    def test_first_commit_is_last_line(self, tmp_path: Path) -> None:
        """git log lists newest first; the original add is the last line."""
        out = "2026-01-15T10:00:00+09:00\n2026-01-10T08:30:00+09:00\n"
        with patch("zap.services.git.history._run_git", return_value=out) as run:
            assert GitHistory(tmp_path).first_commit_time(tmp_path / "001-a.md") == datetime(
                2026, 1, 9, 23, 30, tzinfo=UTC
            )
        assert "--follow" in run.call_args.args[0]

    def test_last_commit_time(self, tmp_path: Path) -> None:
        """Most recent author time in UTC."""
        with patch("zap.services.git.history._run_git", return_value="2026-01-18T21:05:00Z\n"):
            assert GitHistory(tmp_path).last_commit_time(tmp_path / "001-a.md") == datetime(
                2026, 1, 18, 21, 5, tzinfo=UTC
            )

    @pytest.mark.parametrize("out", ["", "\n", "not a date\n"])
    def test_untracked_or_garbage(self, tmp_path: Path, out: str) -> None:
        """Empty or unparseable output means no history."""
        with patch("zap.services.git.history._run_git", return_value=out):
            assert GitHistory(tmp_path).first_commit_time(tmp_path / "001-a.md") is None

    def test_lookup_failure_is_none(self, tmp_path: Path) -> None:
        """A failing git log is treated as no history."""
        with patch("zap.services.git.history._run_git", side_effect=GitRunnerError("boom")):
            assert GitHistory(tmp_path).last_commit_time(tmp_path / "001-a.md") is None

    def test_move_and_remove(self, tmp_path: Path) -> None:
        """mv and rm run from the repository root."""
        git = GitHistory(tmp_path)
        with patch("zap.services.git.history._run_git", return_value="") as run:
            git.move(tmp_path / "open" / "001-a.md", tmp_path / "001-a.md")
            git.remove(tmp_path / "open" / ".gitkeep")
        assert [c.args[0][0] for c in run.call_args_list] == ["mv", "rm"]
        assert all(c.kwargs["cwd"] == tmp_path for c in run.call_args_list)

    def test_relative_paths_resolved_from_subdirectory(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Paths relative to a subdirectory cwd reach git as absolute paths."""
        sub = tmp_path / "sub"
        (sub / ".issues").mkdir(parents=True)
        monkeypatch.chdir(sub)
        git = GitHistory(tmp_path)
        expected = str((sub / ".issues" / "001-a.md").resolve())
        with patch("zap.services.git.history._run_git", return_value="2026-01-10T08:30:00Z\n") as run:
            assert git.first_commit_time(Path(".issues/001-a.md")) == datetime(2026, 1, 10, 8, 30, tzinfo=UTC)
            git.last_commit_time(Path(".issues/001-a.md"))
            git.move(Path(".issues/001-a.md"), Path(".issues/002-a.md"))
            git.remove(Path(".issues/.gitkeep"))
        logs, last, mv, rm = (c.args[0] for c in run.call_args_list)
        assert logs[-1] == expected
        assert last[-1] == expected
        assert mv[1:] == [expected, str((sub / ".issues" / "002-a.md").resolve())]
        assert rm[-1] == str((sub / ".issues" / ".gitkeep").resolve())
        assert all(c.kwargs["cwd"] == tmp_path for c in run.call_args_list)

    def test_move_without_repository(self, tmp_path: Path) -> None:
        """Moves need a repository."""
        git = GitHistory(None)
        with pytest.raises(GitRunnerError):
            git.move(tmp_path / "a.md", tmp_path / "b.md")
        with pytest.raises(GitRunnerError):
            git.remove(tmp_path / "a.md")
