"""
Tests for walking first-parent chains into operation blocks.
"""

from merging_rebase.chain_walker import ChainWalker
from merging_rebase.commit_graph import CommitGraph
from merging_rebase.models import CommitInfo, Operation, OperationKind, ParentRef


def full(short):
    return short.ljust(40, "0")


def commit(short, parents=(), subject=None):
    return CommitInfo(
        id=full(short),
        short_id=short,
        parents=tuple(full(p) for p in parents),
        subject=subject or short.upper(),
        short_parents=tuple(parents),
    )


class TestCommitGraph:
    """Test CommitGraph lookups."""

    def test_branch_tips_in_range_only(self):
        graph = CommitGraph.from_commits(
            [commit("a1", ["u1"]), commit("b1", ["u1"]), commit("m1", ["a1", "b1", "x1"])]
        )
        assert graph.branch_tips() == [full("b1"), full("m1")]

    def test_branch_tips_dedupe(self):
        graph = CommitGraph.from_commits(
            [
                commit("a1", ["u1"]),
                commit("b1", ["u1"]),
                commit("m1", ["a1", "b1"]),
                commit("m2", ["m1", "b1"]),
            ]
        )
        assert graph.branch_tips() == [full("b1"), full("m2")]

    def test_from_commits_pickable_default(self):
        graph = CommitGraph.from_commits([commit("a1", ["u1"]), commit("m1", ["a1", "x1"])])
        assert graph.is_pickable(full("a1"))
        assert not graph.is_pickable(full("m1"))
        assert graph.head_short == "m1"


class TestChainWalker:
    """Test ChainWalker class."""

    def test_linear_chain(self):
        graph = CommitGraph.from_commits([commit("a1", ["u1"]), commit("b1", ["a1"]), commit("c1", ["b1"])])
        walker = ChainWalker(graph)
        blocks = walker.walk()
        assert blocks == [
            [
                Operation.reset("onto"),
                Operation.pick("a1", "A1"),
                Operation.pick("b1", "B1"),
                Operation.pick("c1", "C1"),
            ]
        ]
        assert len(walker.bookmarks) == 0
        assert len(walker.handled) == 3

    def test_merge_of_out_of_range_branch(self):
        graph = CommitGraph.from_commits([commit("a1", ["u1"]), commit("m1", ["a1", "x1"])])
        walker = ChainWalker(graph)
        blocks = walker.walk()
        assert blocks == [
            [
                Operation.reset("onto"),
                Operation.pick("a1", "A1"),
                Operation.merge("m1", [ParentRef("a1", rewritten=True), ParentRef("x1")], "M1"),
            ]
        ]
        assert walker.bookmarks.names() == ["a1"]

    def test_merge_with_first_parent_out_of_range(self):
        graph = CommitGraph.from_commits([commit("b1", ["u1"]), commit("m1", ["u1", "b1"])])
        blocks = ChainWalker(graph).walk()
        assert blocks[-1] == [
            Operation.reset("onto"),
            Operation.merge(
                "m1", [ParentRef("onto", rewritten=True), ParentRef("b1", rewritten=True)], "M1"
            ),
        ]

    def test_fork_point_resets_to_bookmark(self):
        graph = CommitGraph.from_commits(
            [
                commit("a1", ["u1"]),
                commit("b1", ["a1"]),
                commit("c1", ["a1"]),
                commit("m1", ["b1", "c1"]),
            ]
        )
        walker = ChainWalker(graph)
        blocks = walker.walk()
        assert blocks == [
            [Operation.reset("onto"), Operation.pick("a1", "A1"), Operation.pick("c1", "C1")],
            [
                Operation.reset("a1", "A1"),
                Operation.pick("b1", "B1"),
                Operation.merge(
                    "m1", [ParentRef("b1", rewritten=True), ParentRef("c1", rewritten=True)], "M1"
                ),
            ],
        ]
        assert walker.bookmarks.names() == ["b1", "c1", "a1"]

    def test_skip_for_commits_already_upstream(self):
        commits = [commit("a1", ["u1"]), commit("b1", ["a1"])]
        graph = CommitGraph.from_commits(commits, pickable=[full("b1")])
        blocks = ChainWalker(graph).walk()
        assert blocks[0][1] == Operation.skip("a1", "A1")
        assert blocks[0][2].kind == OperationKind.PICK

    def test_each_commit_replayed_once(self):
        graph = CommitGraph.from_commits(
            [
                commit("a1", ["u1"]),
                commit("b1", ["a1"]),
                commit("c1", ["a1"]),
                commit("m1", ["b1", "c1"]),
                commit("d1", ["c1"]),
                commit("m2", ["m1", "d1"]),
            ]
        )
        ops = [op for block in ChainWalker(graph).walk() for op in block if op.kind.replays_commit]
        assert sorted(op.commit for op in ops) == sorted(c.short_id for c in graph.commits)

    def test_empty_range(self):
        assert ChainWalker(CommitGraph.from_commits([])).walk() == []
