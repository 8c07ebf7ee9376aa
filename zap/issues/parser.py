"""Front-matter parsing and canonical serialization of issue files.

On disk an issue is a --- delimited YAML block followed by a Markdown body:

    ---
    number: 7
    title: iOS build
    state: done
    labels: []
    assignees: []
    created_at: 2026-01-17T15:47:00Z
    updated_at: 2026-01-17T15:48:00Z
    closed_at: 2026-01-17T15:48:00Z
    ---

    Body.

Parsing is lenient (created/updated aliases, several datetime shapes);
serialization always produces the form above.
"""

import logging
import os
import tempfile
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ValidationError

from zap.issues.datetimes import format_rfc3339
from zap.issues.errors import MalformedFrontmatterError, MalformedYAMLError
from zap.issues.schemas import Issue

LOG = logging.getLogger("zap.issues.parser")

DELIMITER = "---"

_TIMESTAMP_TAG = "tag:yaml.org,2002:timestamp"


def _without_timestamps(resolvers: dict) -> dict:
    return {key: [r for r in rules if r[0] != _TIMESTAMP_TAG] for key, rules in resolvers.items()}


class _FrontmatterLoader(yaml.SafeLoader):
    """SafeLoader that leaves datetimes as strings for the flexible recognizers."""


class _FrontmatterDumper(yaml.SafeDumper):
    """SafeDumper that writes RFC3339 strings unquoted."""


_FrontmatterLoader.yaml_implicit_resolvers = _without_timestamps(yaml.SafeLoader.yaml_implicit_resolvers)
_FrontmatterDumper.yaml_implicit_resolvers = _without_timestamps(yaml.SafeDumper.yaml_implicit_resolvers)


class RawDatetimeInfo(BaseModel):
    """Datetime strings exactly as written in a file (after alias resolution)."""

    number: int = 0
    title: str = ""
    file_path: Path
    created_at: str = ""
    updated_at: str = ""
    closed_at: str = ""


def _coalesce(*values: Any) -> Any:
    """First value that is neither None nor an empty string."""
    for value in values:
        if value is not None and value != "":
            return value
    return None


def _raw_str(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def split_frontmatter(text: str) -> tuple[str, str]:
    """Split file text into (front-matter YAML, trimmed body).

    Raises MalformedFrontmatterError for empty input or missing delimiters.
    """
    lines = text.splitlines()
    idx = 0
    while idx < len(lines) and not lines[idx].strip():
        idx += 1
    if idx == len(lines):
        raise MalformedFrontmatterError("empty file")
    if lines[idx].strip() != DELIMITER:
        raise MalformedFrontmatterError("file must start with ---")

    for end in range(idx + 1, len(lines)):
        if lines[end].strip() == DELIMITER:
            frontmatter = "\n".join(lines[idx + 1 : end])
            body = "\n".join(lines[end + 1 :]).strip()
            return frontmatter, body
    raise MalformedFrontmatterError("frontmatter not properly closed with ---")


def _load_mapping(frontmatter: str) -> dict[str, Any]:
    try:
        data = yaml.load(frontmatter, Loader=_FrontmatterLoader)
    except yaml.YAMLError as e:
        raise MalformedYAMLError(f"failed to unmarshal frontmatter: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise MalformedYAMLError(f"failed to unmarshal frontmatter: expected a mapping, got {type(data).__name__}")
    return data


def _decode(data: str | bytes) -> str:
    if isinstance(data, bytes):
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise MalformedFrontmatterError(f"file is not valid UTF-8: {e}") from e
    return data


def parse_issue(data: str | bytes, path: Path | str | None = None) -> Issue:
    """Parse issue file content.

    created/updated are accepted as aliases of created_at/updated_at (the
    _at key wins when both are set). Datetimes that match no known shape
    leave the field None instead of failing.
    """
    frontmatter, body = split_frontmatter(_decode(data))
    raw = _load_mapping(frontmatter)

    fields = {
        "number": raw.get("number"),
        "title": raw.get("title"),
        "state": raw.get("state"),
        "labels": raw.get("labels"),
        "assignees": raw.get("assignees"),
        "created_at": _coalesce(raw.get("created_at"), raw.get("created")),
        "updated_at": _coalesce(raw.get("updated_at"), raw.get("updated")),
        "closed_at": raw.get("closed_at"),
        "body": body,
        "file_path": Path(path) if path is not None else None,
    }
    try:
        return Issue.model_validate({k: v for k, v in fields.items() if v is not None})
    except ValidationError as e:
        errors = "; ".join(f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors())
        raise MalformedYAMLError(f"failed to unmarshal frontmatter: {errors}") from e


def parse_file(path: Path) -> Issue:
    """Read and parse one issue file. OSError propagates."""
    path = Path(path)
    return parse_issue(path.read_bytes(), path)


def read_raw_datetimes(path: Path) -> RawDatetimeInfo:
    """Datetime strings of a file before any parsing, for format analysis."""
    path = Path(path)
    frontmatter, _ = split_frontmatter(_decode(path.read_bytes()))
    raw = _load_mapping(frontmatter)
    number = raw.get("number")
    return RawDatetimeInfo(
        number=number if isinstance(number, int) else 0,
        title=_raw_str(raw.get("title")),
        file_path=path,
        created_at=_raw_str(_coalesce(raw.get("created_at"), raw.get("created"))),
        updated_at=_raw_str(_coalesce(raw.get("updated_at"), raw.get("updated"))),
        closed_at=_raw_str(raw.get("closed_at")),
    )


def serialize_issue(issue: Issue) -> str:
    """Canonical file content for an issue.

    Key order is fixed; timestamps are RFC3339 UTC; closed_at only when set.
    """
    payload: dict[str, Any] = {
        "number": issue.number,
        "title": issue.title,
        "state": issue.state,
        "labels": list(issue.labels),
        "assignees": list(issue.assignees),
    }
    if issue.created_at is not None:
        payload["created_at"] = format_rfc3339(issue.created_at)
    if issue.updated_at is not None:
        payload["updated_at"] = format_rfc3339(issue.updated_at)
    if issue.closed_at is not None:
        payload["closed_at"] = format_rfc3339(issue.closed_at)

    frontmatter = yaml.dump(
        payload,
        Dumper=_FrontmatterDumper,
        default_flow_style=False,
        allow_unicode=True,
        sort_keys=False,
        width=1000,
    )
    out = f"{DELIMITER}\n{frontmatter}{DELIMITER}\n"
    body = issue.body.strip()
    if body:
        out += f"\n{body}\n"
    return out


def write_text_atomic(path: Path, content: str) -> Path:
    """Write content to a temp file beside path, then os.replace it into place."""
    path = Path(path)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as fh:
            fh.write(content)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
    return path


def write_issue_file(path: Path, issue: Issue) -> Path:
    """Serialize issue and atomically replace path with it."""
    path = write_text_atomic(path, serialize_issue(issue))
    LOG.debug("Wrote issue #%s to %s", issue.number, path)
    return path
