"""Unit tests for the metric reducer."""

from fractions import Fraction

from linetrace.models import (
    BlameLine,
    BlameSnapshot,
    Born,
    CanonicalRange,
    FileResult,
    Killed,
    LineHistory,
    PingPong,
    Reattributed,
    RepeatedHunkEdit,
)
from linetrace.services.metric_reducer import MetricAccumulator, reduce_results


def _born(line_id, author, revision=100, file="Main.cs"):
    return Born(file=file, line_id=line_id, revision=revision, author=author, position=1)


def _killed(line_id, origin_author, killer, revision=101, file="Main.cs"):
    return Killed(
        file=file,
        line_id=line_id,
        origin_revision=100,
        origin_author=origin_author,
        kill_revision=revision,
        killer_author=killer,
        position=1,
    )


def _result(events, file="Main.cs", initial=0, final=0, **detections):
    return FileResult(
        line_history=LineHistory(
            file=file,
            paths=[file],
            start_revision=100,
            end_revision=101,
            initial_line_count=initial,
            final_line_count=final,
            events=events,
        ),
        **detections,
    )


class TestMetricAccumulator:
    """Test cases for MetricAccumulator."""

    def setup_method(self):
        """Set up test fixtures."""
        self.cross_revert = _result(
            [
                _born("a1", "alice"),
                _born("a2", "alice"),
                _killed("a1", "alice", "bob"),
                _killed("a2", "alice", "bob"),
                _born("b1", "bob", revision=101),
            ],
            initial=20,
            final=21,
        )

    def test_cross_revert(self):
        """Test bob replacing two of alice's new lines."""
        report = reduce_results([self.cross_revert])
        alice = report.authors["alice"]
        bob = report.authors["bob"]

        assert (alice.born, alice.consumed, alice.cross_reverted, alice.self_cancel) == (2, 2, 2, 0)
        assert alice.survived == 0
        assert (bob.born, bob.survived, bob.kills_of_others) == (1, 1, 2)
        assert report.kill_matrix == {"bob": {"alice": 2}}
        assert report.files["Main.cs"].net_change == 1
        assert report.files["Main.cs"].killed == 2

    def test_identities_hold(self):
        """Test that consumed splits exactly into self-cancel and cross-revert."""
        result = _result(
            [
                _born("a1", "alice"),
                _born("a2", "alice"),
                _born("a3", "alice"),
                _killed("a1", "alice", "alice"),
                _killed("a2", "alice", "carol"),
            ]
        )
        alice = reduce_results([result]).authors["alice"]

        assert alice.self_cancel + alice.cross_reverted == alice.consumed == 2
        assert alice.survived + alice.consumed == alice.born == 3
        assert alice.survival_ratio.value == Fraction(1, 3)

    def test_undefined_survival_ratio(self):
        """Test that an author with no births has an undefined ratio."""
        result = _result([_killed("~Main.cs@99#1", "alice", "bob")])
        bob = reduce_results([result]).authors["bob"]

        assert bob.born == 0
        assert not bob.survival_ratio.defined
        assert str(bob.survival_ratio) == "undefined"

    def test_legacy_kills_count_for_killer(self):
        """Test that kills of lines born before the range are legacy kills."""
        result = _result([_killed("~Main.cs@99#1", "alice", "bob")])
        report = reduce_results([result])

        assert report.authors["bob"].legacy_killed == 1
        assert report.authors["bob"].kills_of_others == 0
        assert report.files["Main.cs"].legacy_killed == 1
        assert report.kill_matrix == {}

    def test_reattributions_and_detections(self):
        """Test counting of moves and hunk detections."""
        ranges = tuple(CanonicalRange(start=1, end=5) for _ in range(3))
        result = _result(
            [
                Reattributed(
                    file="Main.cs",
                    line_id="~Main.cs@99#1",
                    from_origin_revision=3,
                    to_origin_revision=3,
                    at_revision=100,
                    old_position=1,
                    new_position=4,
                )
            ],
            repeated_edits=[
                RepeatedHunkEdit(
                    file="Main.cs",
                    author="alice",
                    first_revision=100,
                    second_revision=101,
                    first_range=ranges[0],
                    second_range=ranges[1],
                )
            ],
            ping_pongs=[
                PingPong(
                    file="Main.cs",
                    author="bob",
                    opponent="alice",
                    revisions=(100, 101, 102),
                    ranges=ranges,
                )
            ],
        )
        report = reduce_results([result])

        assert report.files["Main.cs"].reattributed == 1
        assert report.files["Main.cs"].internal_moves == 1
        assert report.authors["alice"].repeated_hunk_edits == 1
        assert report.authors["bob"].ping_pongs == 1

    def test_ownership(self):
        """Test ownership counting from final snapshots."""
        snapshot = BlameSnapshot(
            path="Main.cs",
            revision=101,
            lines=[
                BlameLine(line_number=1, content="a", origin_revision=1, origin_author="alice"),
                BlameLine(line_number=2, content="b", origin_revision=2, origin_author="bob"),
                BlameLine(line_number=3, content="c", origin_revision=1, origin_author="alice"),
            ],
        )
        report = reduce_results([], ownership=[snapshot])

        assert report.files["Main.cs"].ownership == {"alice": 2, "bob": 1}
        assert report.authors["alice"].ownership == 2

    def test_merge_is_order_independent(self):
        """Test that merging partial accumulators in any order gives the same report."""
        other = _result([_born("c1", "carol", file="Other.cs")], file="Other.cs", final=1)

        left = MetricAccumulator().add_file(self.cross_revert)
        right = MetricAccumulator().add_file(other)

        assert left.merge(right).finalize() == right.merge(left).finalize()
        assert left.merge(right).finalize() == reduce_results([other, self.cross_revert])

    def test_reduction_is_idempotent(self):
        """Test that reducing the same results twice gives equal reports."""
        assert reduce_results([self.cross_revert]) == reduce_results([self.cross_revert])
