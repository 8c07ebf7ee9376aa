"""Exceptions raised by the issue store."""

from pathlib import Path


class IssueError(Exception):
    """Base class for issue store errors."""

    pass


class IssueParseError(IssueError):
    """An issue file could not be decoded. reason is the short diagnostic shown in warnings."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class MalformedFrontmatterError(IssueParseError):
    """Missing or unterminated --- delimiters, or an empty file."""

    pass


class MalformedYAMLError(IssueParseError):
    """Front-matter block is not a valid YAML mapping of issue fields."""

    pass


class IssueNotFoundError(IssueError, LookupError):
    """No parseable issue carries the requested number."""

    def __init__(self, number: int) -> None:
        super().__init__(f"issue #{number} not found")
        self.number = number


class InvalidStateError(IssueError, ValueError):
    """Requested state is outside open/wip/done/closed."""

    def __init__(self, state: str) -> None:
        super().__init__(f"invalid state: {state} (valid: open, wip, done, closed)")
        self.state = state


class ConflictTargetExistsError(IssueError):
    """Renumbering would overwrite an existing file."""

    def __init__(self, target: Path) -> None:
        super().__init__(f"target file already exists: {target.name}")
        self.target = target
