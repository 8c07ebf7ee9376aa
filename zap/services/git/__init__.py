"""Git operations: history lookups, mv and rm for issue files."""

from zap.services.git._run import GitRunnerError
from zap.services.git.history import GitHistory

__all__ = [
    "GitHistory",
    "GitRunnerError",
]
