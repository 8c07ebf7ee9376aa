"""Tests for zap.issues.normalize (datetime and state repairs)."""

import os
from datetime import UTC, datetime
from pathlib import Path
from unittest.mock import patch

import pytest

from zap.issues.datetimes import DatetimeFormat
from zap.issues.errors import IssueError, IssueNotFoundError
from zap.issues.normalize import (
    analyze_datetime_formats,
    find_invalid_states,
    fix_invalid_state,
    normalize_datetimes,
)
from zap.issues.parser import parse_file
from zap.issues.schemas import State
from zap.issues.store import IssueStore

GIT_FIRST = datetime(2026, 1, 10, 8, 30, tzinfo=UTC)
GIT_LAST = datetime(2026, 1, 18, 21, 5, tzinfo=UTC)

FILES = {
    "001-canonical.md": (
        "---\nnumber: 1\ntitle: canonical\nstate: open\n"
        "created_at: 2026-01-17T15:47:00Z\nupdated_at: 2026-01-17T15:48:00Z\n---\n\nbody\n"
    ),
    "002-hand-written.md": (
        "---\nnumber: 2\ntitle: hand written\nstate: open\n"
        "created: 2026-01-17 15:47\nupdated_at: 2026-01-18\n---\n\nbody\n"
    ),
    "003-no-created.md": (
        "---\nnumber: 3\ntitle: no created\nstate: done\n"
        "updated_at: 2026-01-17T15:47:00\nclosed_at: 2026-01-17T16:00:00+09:00\n---\n\nbody\n"
    ),
}


class FakeGit:
    """Git capability with fixed first and last commit times."""

    available = True

    def first_commit_time(self, path: Path) -> datetime | None:
        return GIT_FIRST

    def last_commit_time(self, path: Path) -> datetime | None:
        return GIT_LAST


@pytest.fixture
def store(tmp_path: Path) -> IssueStore:
    for name, content in FILES.items():
        (tmp_path / name).write_text(content, encoding="utf-8")
    return IssueStore(tmp_path)


def _changes(record) -> dict[str, tuple[str, str]]:
    return {c.field: (c.before, c.after) for c in record.changes}


class TestAnalyze:
    """analyze_datetime_formats."""

    def test_counts(self, store: IssueStore) -> None:
        """Shapes are counted per field with the issues that use them."""
        report = analyze_datetime_formats(store)
        assert report.total_issues == 3
        created = report.fields["created_at"]
        assert created[DatetimeFormat.RFC3339].issues == [1]
        assert created[DatetimeFormat.DATETIME_SHORT].issues == [2]
        assert created[DatetimeFormat.EMPTY].issues == [3]
        updated = report.fields["updated_at"]
        assert updated[DatetimeFormat.DATE_ONLY].issues == [2]
        assert updated[DatetimeFormat.ISO8601].issues == [3]
        assert report.fields["closed_at"][DatetimeFormat.RFC3339].count == 1
        assert report.total_fields == 7
        assert report.rfc3339_fields == 3
        assert report.need_conversion == 3


class TestNormalizeDatetimes:
    """normalize_datetimes."""

    def test_dry_run_reports_without_writing(self, store: IssueStore, tmp_path: Path) -> None:
        """Planned changes are listed and no file changes."""
        before = {p.name: p.read_text(encoding="utf-8") for p in tmp_path.iterdir()}
        results = normalize_datetimes(store, dry_run=True)
        assert [r.number for r in results] == [2, 3]
        assert not any(r.written for r in results)
        assert _changes(results[0]) == {
            "created_at": ("2026-01-17 15:47", "2026-01-17T15:47:00Z"),
            "updated_at": ("2026-01-18", "2026-01-18T00:00:00Z"),
        }
        assert _changes(results[1]) == {
            "updated_at": ("2026-01-17T15:47:00", "2026-01-17T15:47:00Z"),
            "closed_at": ("2026-01-17T16:00:00+09:00", "2026-01-17T07:00:00Z"),
        }
        assert {p.name: p.read_text(encoding="utf-8") for p in tmp_path.iterdir()} == before

    def test_write_then_nothing_left(self, store: IssueStore, tmp_path: Path) -> None:
        """After a real run the files are canonical and a rerun finds nothing."""
        results = normalize_datetimes(store)
        assert all(r.written for r in results)
        text = (tmp_path / "002-hand-written.md").read_text(encoding="utf-8")
        assert "created_at: 2026-01-17T15:47:00Z\n" in text
        assert "created:" not in text
        assert "closed_at: 2026-01-17T07:00:00Z\n" in (tmp_path / "003-no-created.md").read_text(encoding="utf-8")
        assert normalize_datetimes(store, dry_run=True) == []

    def test_git_fills_missing_and_date_only(self, store: IssueStore, tmp_path: Path) -> None:
        """Missing created_at takes the first commit; date-only updated_at takes the last commit."""
        results = normalize_datetimes(store, git=FakeGit(), numbers=[2, 3])
        by_number = {r.number: r for r in results}
        assert _changes(by_number[2])["updated_at"] == ("2026-01-18", "2026-01-18T21:05:00Z")
        assert _changes(by_number[2])["created_at"] == ("2026-01-17 15:47", "2026-01-17T15:47:00Z")
        assert _changes(by_number[3])["created_at"] == ("(zero)", "2026-01-10T08:30:00Z")
        assert parse_file(tmp_path / "003-no-created.md").created_at == GIT_FIRST
        assert parse_file(tmp_path / "002-hand-written.md").updated_at == GIT_LAST

    def test_selected_numbers_only(self, store: IssueStore, tmp_path: Path) -> None:
        """Only the requested issues are touched."""
        original = (tmp_path / "003-no-created.md").read_text(encoding="utf-8")
        results = normalize_datetimes(store, numbers=[2])
        assert [r.number for r in results] == [2]
        assert (tmp_path / "003-no-created.md").read_text(encoding="utf-8") == original

    def test_unknown_number(self, store: IssueStore) -> None:
        """Asking for an issue that does not exist raises."""
        with pytest.raises(IssueNotFoundError):
            normalize_datetimes(store, numbers=[99])


STATE_FILES = {
    "010-a.md": "---\nnumber: 10\ntitle: a\nstate: in-progress\n---\n\nbody\n",
    "011-b.md": '---\nnumber: 11\ntitle: b\nstate: "Done"\n---\n\nbody\n',
    "012-c.md": "---\nnumber: 12\ntitle: c\nstate: 'someday'\n---\n\nbody\n",
    "013-d.md": "---\nnumber: 13\ntitle: d\nstate: open\n---\n\nstate: bogus in the body\n",
    "014-e.md": "---\nnumber: 14\ntitle: e\n---\n\nstate: bogus in the body\n",
}


class TestInvalidStates:
    """find_invalid_states and fix_invalid_state."""

    @pytest.fixture
    def base(self, tmp_path: Path) -> Path:
        for name, content in STATE_FILES.items():
            (tmp_path / name).write_text(content, encoding="utf-8")
        return tmp_path

    def test_find(self, base: Path) -> None:
        """Only front-matter states outside the valid set are reported."""
        found = find_invalid_states(base)
        assert [(i.file_name, i.state, i.suggestion) for i in found] == [
            ("010-a.md", "in-progress", State.WIP),
            ("011-b.md", "Done", State.DONE),
            ("012-c.md", "someday", None),
        ]

    def test_fix_keeps_quoting_and_rest_of_file(self, base: Path) -> None:
        """Only the state line changes, in the same quoting style."""
        found = {i.file_name: i for i in find_invalid_states(base)}
        fix_invalid_state(found["010-a.md"])
        fix_invalid_state(found["011-b.md"])
        fix_invalid_state(found["012-c.md"], State.CLOSED)

        assert (base / "010-a.md").read_text(encoding="utf-8") == STATE_FILES["010-a.md"].replace(
            "in-progress", "wip"
        )
        assert 'state: "done"\n' in (base / "011-b.md").read_text(encoding="utf-8")
        assert "state: 'closed'\n" in (base / "012-c.md").read_text(encoding="utf-8")
        assert parse_file(base / "011-b.md").state == "done"
        assert find_invalid_states(base) == []

    def test_unknown_without_replacement(self, base: Path) -> None:
        """A state with no suggestion needs an explicit replacement."""
        found = {i.file_name: i for i in find_invalid_states(base)}
        with pytest.raises(IssueError):
            fix_invalid_state(found["012-c.md"])
        assert (base / "012-c.md").read_text(encoding="utf-8") == STATE_FILES["012-c.md"]

    def test_fix_replaces_file_atomically(self, base: Path) -> None:
        """The rewrite goes through a temp file and os.replace, leaving no temp files."""
        found = {i.file_name: i for i in find_invalid_states(base)}
        before = sorted(p.name for p in base.iterdir())
        with patch("zap.issues.parser.os.replace", wraps=os.replace) as replace:
            fix_invalid_state(found["010-a.md"])
        src, dst = replace.call_args.args
        assert Path(dst) == base / "010-a.md"
        assert Path(src).parent == base
        assert sorted(p.name for p in base.iterdir()) == before
        assert "state: wip\n" in (base / "010-a.md").read_text(encoding="utf-8")

    def test_failed_replace_keeps_original(self, base: Path) -> None:
        """A failing replace leaves the original file and no temp file behind."""
        found = {i.file_name: i for i in find_invalid_states(base)}
        before = sorted(p.name for p in base.iterdir())
        with patch("zap.issues.parser.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(OSError):
                fix_invalid_state(found["010-a.md"])
        assert (base / "010-a.md").read_text(encoding="utf-8") == STATE_FILES["010-a.md"]
        assert sorted(p.name for p in base.iterdir()) == before
