"""Tests for zap.bootstrap (wiring config, git and store)."""

import logging
from datetime import timedelta
from pathlib import Path
from unittest.mock import patch

from zap.bootstrap import bootstrap, build_git
from zap.config import AppConfig, LoggingConfig, StoreConfig, WatchConfig
from zap.services.git import GitHistory


def _config(issues_dir: Path, use_git: bool = False) -> AppConfig:
    return AppConfig(
        store=StoreConfig(issues_dir=issues_dir, recent_closed_minutes=2, use_git=use_git),
        watch=WatchConfig(debounce_ms=50),
        logging=LoggingConfig(level="WARNING"),
    )


class TestBuildGit:
    """build_git."""

    def test_disabled(self, tmp_path: Path) -> None:
        """use_git false never looks for a repository."""
        with patch.object(GitHistory, "discover") as discover:
            assert build_git(_config(tmp_path)) is None
        discover.assert_not_called()

    def test_outside_checkout(self, tmp_path: Path) -> None:
        """An unavailable history is reported as None."""
        with patch.object(GitHistory, "discover", return_value=GitHistory(None)):
            assert build_git(_config(tmp_path, use_git=True)) is None

    def test_inside_checkout(self, tmp_path: Path) -> None:
        """A discovered repository is returned."""
        with patch.object(GitHistory, "discover", return_value=GitHistory(tmp_path)) as discover:
            git = build_git(_config(tmp_path, use_git=True))
        assert git is not None and git.root == tmp_path
        discover.assert_called_once_with(tmp_path)


class TestBootstrap:
    """bootstrap."""

    def test_runtime_from_config(self, tmp_path: Path) -> None:
        """Store directory and recent window come from the config."""
        runtime = bootstrap(config=_config(tmp_path))
        assert runtime.git is None
        assert runtime.store.base_dir == tmp_path
        assert runtime.store.recent_closed_window == timedelta(minutes=2)
        assert runtime.logger.name == "zap"
        assert runtime.logger.level == logging.WARNING
        assert runtime.logger.propagate is False

    def test_runtime_from_file(self, tmp_path: Path) -> None:
        """A config file's relative issues_dir is resolved next to it."""
        (tmp_path / "tracker").mkdir()
        config_file = tmp_path / ".zap.yaml"
        config_file.write_text("store:\n  issues_dir: tracker\n  use_git: false\n", encoding="utf-8")
        runtime = bootstrap(config_path=config_file)
        assert runtime.store.base_dir == (tmp_path / "tracker").resolve()

    def test_watcher_uses_store_directory(self, tmp_path: Path) -> None:
        """Runtime.watcher builds an unstarted watcher with the configured debounce."""
        watcher = bootstrap(config=_config(tmp_path)).watcher()
        assert watcher.base_dir == tmp_path
        assert watcher.debounce == 0.05
        assert not watcher.is_alive()
