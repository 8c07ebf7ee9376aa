"""Composition root: config -> logging -> git -> store.

Everything the library needs is built here and passed down explicitly;
no module keeps process-wide state.
"""

import logging
from pathlib import Path

from zap.config import AppConfig, load_config
from zap.issues.store import IssueStore
from zap.issues.watcher import IssueWatcher
from zap.logging import configure_logging
from zap.services.git import GitHistory


class Runtime:
    """Objects built from one AppConfig."""

    def __init__(self, config: AppConfig, store: IssueStore, git: GitHistory | None, logger: logging.Logger) -> None:
        self.config = config
        self.store = store
        self.git = git
        self.logger = logger

    def watcher(self, on_reload=None) -> IssueWatcher:
        """New (unstarted) watcher over the store's directory."""
        return IssueWatcher.from_config(self.config, on_reload=on_reload)


def build_git(config: AppConfig) -> GitHistory | None:
    """Git capability for the issues directory, or None when disabled or outside a checkout."""
    if not config.store.use_git:
        return None
    issues_dir = config.store.issues_dir
    start = issues_dir if issues_dir.is_dir() else issues_dir.parent
    git = GitHistory.discover(start if start.is_dir() else Path.cwd())
    return git if git.available else None


def bootstrap(config_path: Path | None = None, config: AppConfig | None = None) -> Runtime:
    """Load config (unless given), configure logging and build the store."""
    config = config or load_config(config_path)
    logger = configure_logging(config.logging)

    git = build_git(config)
    store = IssueStore.from_config(config.store, git=git)
    logger.debug(
        "Issues directory %s (git %s)",
        store.base_dir,
        git.root if git is not None else "unavailable",
    )
    return Runtime(config=config, store=store, git=git, logger=logger)
