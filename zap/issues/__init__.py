"""Issue files: parsing, the store, conflict repair, migration, references and watching."""

from zap.issues.conflicts import (
    Conflict,
    ConflictDetector,
    ConflictKind,
    FileInfo,
    RepairResult,
    apply_conflict_fix,
    find_conflicts,
    repair_conflicts,
    resolve_conflicts,
)
from zap.issues.datetimes import DatetimeFormat, detect_datetime_format, format_rfc3339, parse_flexible_datetime
from zap.issues.errors import (
    ConflictTargetExistsError,
    InvalidStateError,
    IssueError,
    IssueNotFoundError,
    IssueParseError,
    MalformedFrontmatterError,
    MalformedYAMLError,
)
from zap.issues.migrate import MigrateResult, MigrationInfo, detect_legacy_structure, migrate
from zap.issues.parser import parse_file, parse_issue, serialize_issue, write_issue_file
from zap.issues.refs import ConnectedIssue, RefDirection, RefGraph, TreeNode, build_ref_graph, extract_refs
from zap.issues.schemas import Issue, IssueStats, ParseFailure, State
from zap.issues.store import IssueStore
from zap.issues.watcher import RELOAD, IssueWatcher

__all__ = [
    "RELOAD",
    "Conflict",
    "ConflictDetector",
    "ConflictKind",
    "ConflictTargetExistsError",
    "ConnectedIssue",
    "DatetimeFormat",
    "FileInfo",
    "InvalidStateError",
    "Issue",
    "IssueError",
    "IssueNotFoundError",
    "IssueParseError",
    "IssueStats",
    "IssueStore",
    "IssueWatcher",
    "MalformedFrontmatterError",
    "MalformedYAMLError",
    "MigrateResult",
    "MigrationInfo",
    "ParseFailure",
    "RefDirection",
    "RefGraph",
    "RepairResult",
    "State",
    "TreeNode",
    "apply_conflict_fix",
    "build_ref_graph",
    "detect_datetime_format",
    "detect_legacy_structure",
    "extract_refs",
    "find_conflicts",
    "format_rfc3339",
    "migrate",
    "parse_file",
    "parse_flexible_datetime",
    "parse_issue",
    "repair_conflicts",
    "resolve_conflicts",
    "serialize_issue",
    "write_issue_file",
]
