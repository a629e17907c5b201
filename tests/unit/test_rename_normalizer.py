"""Unit tests for the diff and rename normalizer."""

from datetime import datetime, timezone
from unittest.mock import Mock

import pytest

from linetrace.errors import ErrorCategory, InputError, ParseError, VcsError
from linetrace.models import ChangedPath, Commit, DiffStat, PathAction
from linetrace.services.memory_repository import InMemoryRepository
from linetrace.services.rename_normalizer import (
    DiffNormalizer,
    collect_raw_diff_stats,
    detect_rename_pairs,
)


def _commit(revision, *changed):
    return Commit(
        revision=revision,
        author="alice",
        timestamp=datetime(2024, 1, 1, tzinfo=timezone.utc),
        changed_paths=list(changed),
    )


class TestDetectRenamePairs:
    """Test cases for detect_rename_pairs."""

    def test_add_with_deleted_source_is_rename(self):
        """Test pairing a copy-from Add with the Delete of its source."""
        commit = _commit(
            103,
            ChangedPath(path="/src/Helper.cs", action=PathAction.DELETE),
            ChangedPath(
                path="/src/Util.cs",
                action=PathAction.ADD,
                copy_from_path="/src/Helper.cs",
                copy_from_revision=102,
            ),
        )
        pairs = detect_rename_pairs(commit)

        assert len(pairs) == 1
        assert pairs[0].old_path == "/src/Helper.cs"
        assert pairs[0].new_path == "/src/Util.cs"
        assert (pairs[0].copy_from_revision, pairs[0].commit_revision) == (102, 103)

    def test_copy_without_delete_is_not_rename(self):
        """Test that a plain copy produces no pair."""
        commit = _commit(
            5,
            ChangedPath(
                path="b.py", action=PathAction.ADD, copy_from_path="a.py", copy_from_revision=4
            ),
        )
        assert detect_rename_pairs(commit) == []

    def test_source_is_consumed_once(self):
        """Test that two copies of one deleted source pair only the first."""
        commit = _commit(
            5,
            ChangedPath(
                path="b.py", action=PathAction.ADD, copy_from_path="a.py", copy_from_revision=4
            ),
            ChangedPath(
                path="c.py", action=PathAction.ADD, copy_from_path="a.py", copy_from_revision=4
            ),
            ChangedPath(path="a.py", action=PathAction.DELETE),
        )
        pairs = detect_rename_pairs(commit)

        assert [(p.old_path, p.new_path) for p in pairs] == [("a.py", "b.py")]


class TestDiffNormalizer:
    """Test cases for DiffNormalizer with an in-memory history."""

    def setup_method(self):
        """Set up test fixtures."""
        self.repo = InMemoryRepository()
        self.repo.pad_to(102)
        self.helper = [f"helper line {i}" for i in range(500)]
        self.repo.commit("alice", {"/src/Helper.cs": self.helper})
        self.normalizer = DiffNormalizer(self.repo)

    def test_pure_rename_is_neutral(self):
        """Test that a pure rename yields 0/0 for both paths."""
        revision = self.repo.commit("bob", renames={"/src/Util.cs": "/src/Helper.cs"})
        normalized = self.normalizer.normalize(self.repo.get_commits(revision, revision)[0])

        assert revision == 103
        assert normalized.diff_stats["/src/Util.cs"] == DiffStat()
        assert normalized.diff_stats["/src/Helper.cs"] == DiffStat()
        assert normalized.rename_to("/src/Helper.cs").new_path == "/src/Util.cs"
        assert normalized.rename_to("/src/Util.cs") is None

    def test_replaced_rename_source_counts_new_content(self):
        """Test that new content left at a renamed path is counted as added."""
        revision = self.repo.commit(
            "bob",
            {"/src/Helper.cs": ["fresh 1", "fresh 2"]},
            renames={"/src/Util.cs": "/src/Helper.cs"},
            replaces=["/src/Helper.cs"],
        )
        normalized = self.normalizer.normalize(self.repo.get_commits(revision, revision)[0])
        helper = normalized.diff_stats["/src/Helper.cs"]

        assert [(p.old_path, p.new_path) for p in normalized.rename_pairs] == [
            ("/src/Helper.cs", "/src/Util.cs")
        ]
        assert normalized.diff_stats["/src/Util.cs"] == DiffStat()
        assert (helper.added, helper.deleted) == (2, 0)
        assert [(h.old_start, h.old_count, h.new_start, h.new_count) for h in helper.hunks] == [
            (0, 0, 1, 2)
        ]

    def test_raw_stats_are_naive(self):
        """Test that raw collection counts a rename as delete plus add."""
        revision = self.repo.commit("bob", renames={"/src/Util.cs": "/src/Helper.cs"})
        raw = collect_raw_diff_stats(self.repo.get_commits(revision, revision)[0], self.repo)

        assert (raw["/src/Util.cs"].added, raw["/src/Util.cs"].deleted) == (500, 0)
        assert (raw["/src/Helper.cs"].added, raw["/src/Helper.cs"].deleted) == (0, 500)

    def test_rename_with_edits_keeps_real_delta(self):
        """Test that the real delta lands on the new path only."""
        edited = self.helper[:10] + ["changed"] + self.helper[11:] + ["appended"]
        revision = self.repo.commit(
            "bob", {"/src/Util.cs": edited}, renames={"/src/Util.cs": "/src/Helper.cs"}
        )
        normalized = self.normalizer.normalize(self.repo.get_commits(revision, revision)[0])
        util = normalized.diff_stats["/src/Util.cs"]

        assert (util.added, util.deleted) == (2, 1)
        assert len(util.hunks) == 2
        assert normalized.diff_stats["/src/Helper.cs"] == DiffStat()

    def test_rename_chain(self):
        """Test that A to B and B to C in one commit resolve pairwise."""
        self.repo.commit("alice", {"b.py": ["b content"]})
        revision = self.repo.commit("bob", renames={"b.py": "/src/Helper.cs", "c.py": "b.py"})
        normalized = self.normalizer.normalize(self.repo.get_commits(revision, revision)[0])

        assert [(p.old_path, p.new_path) for p in normalized.rename_pairs] == [
            ("/src/Helper.cs", "b.py"),
            ("b.py", "c.py"),
        ]
        assert normalized.diff_stats["b.py"] == DiffStat()
        assert normalized.diff_stats["c.py"] == DiffStat()
        assert normalized.diff_stats["/src/Helper.cs"] == DiffStat()

    def test_binary_rename(self):
        """Test that binary renames skip the comparison."""
        self.repo.commit("alice", {"logo.png": b"\x89PNG\x00\x00"})
        revision = self.repo.commit("bob", renames={"art/logo.png": "logo.png"})
        self.repo.requests.clear()
        normalized = self.normalizer.normalize(self.repo.get_commits(revision, revision)[0])

        assert normalized.diff_stats["art/logo.png"] == DiffStat(is_binary=True)
        assert normalized.diff_stats["logo.png"] == DiffStat(is_binary=True)
        assert len(self.repo.requests) == 2

    def test_plain_copy_gets_copy_stat(self):
        """Test that a plain copy keeps its full add and records a copy comparison."""
        revision = self.repo.commit("bob", copies={"/src/Copy.cs": "/src/Helper.cs"})
        normalized = self.normalizer.normalize(self.repo.get_commits(revision, revision)[0])

        assert normalized.diff_stats["/src/Copy.cs"].added == 500
        assert normalized.copy_stats["/src/Copy.cs"] == DiffStat()
        assert normalized.rename_pairs == []

    def test_correction_failure_is_parse_error(self):
        """Test that a failing rename comparison aborts with PARSE."""
        revision = self.repo.commit("bob", renames={"/src/Util.cs": "/src/Helper.cs"})
        self.repo.failures[("/src/Helper.cs@102:/src/Util.cs@103", 103)] = VcsError("down")

        with pytest.raises(ParseError) as exc_info:
            self.normalizer.normalize(self.repo.get_commits(revision, revision)[0])

        assert exc_info.value.category == ErrorCategory.PARSE
        assert exc_info.value.context["operation"] == "rename-correction"
        assert exc_info.value.context["file"] == "/src/Util.cs"


class TestCollectRawDiffStats:
    """Test cases for collect_raw_diff_stats error handling."""

    def test_duplicate_path(self):
        """Test that a path listed twice is an input error."""
        comparisons = Mock()
        comparisons.get_comparison.return_value = DiffStat()
        commit = _commit(
            2,
            ChangedPath(path="a.py", action=PathAction.MODIFY),
            ChangedPath(path="a.py", action=PathAction.MODIFY),
        )
        with pytest.raises(InputError):
            collect_raw_diff_stats(commit, comparisons)

    def test_missing_path_is_input_error(self):
        """Test that a Modify of a path missing in the repository is an input error."""
        repo = InMemoryRepository()
        repo.commit("alice", {"a.py": ["x"]})
        commit = _commit(1, ChangedPath(path="b.py", action=PathAction.MODIFY))

        with pytest.raises(InputError):
            collect_raw_diff_stats(commit, repo)

    def test_sides_requested(self):
        """Test which sides are compared for each action."""
        comparisons = Mock()
        comparisons.get_comparison.return_value = DiffStat()
        commit = _commit(
            7,
            ChangedPath(path="new.py", action=PathAction.ADD),
            ChangedPath(path="old.py", action=PathAction.DELETE),
            ChangedPath(path="mod.py", action=PathAction.MODIFY),
        )
        collect_raw_diff_stats(commit, comparisons)

        calls = [c.args for c in comparisons.get_comparison.call_args_list]
        assert calls == [
            (None, 6, "new.py", 7),
            ("old.py", 6, None, 7),
            ("mod.py", 6, "mod.py", 7),
        ]
