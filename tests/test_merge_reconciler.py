"""
Tests for merge replay decisions.
"""

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from merging_rebase.merge_reconciler import MergeReconciler, is_unchanged
from merging_rebase.models import Operation, ParentRef, ReplayStoppedError, ResolutionError


ORIG = "m" * 40
P1 = "1" * 40
P2 = "2" * 40
NEW = "n" * 40


def _merge_op():
    return Operation.merge("mmmmmmm", [ParentRef("1111111", rewritten=True), ParentRef("2222222")], "Merge side")


@pytest.fixture()
def gm():
    gm = MagicMock()
    gm.resolve.side_effect = lambda name: {"mmmmmmm": ORIG, "2222222": P2}[name]
    gm.get_parents.return_value = [P1, P2]
    gm.read_message.return_value = "Merge side\n\nDetails"
    gm.merge_commits.return_value = (True, [])
    return gm


class TestIsUnchanged:
    def test_equal(self):
        assert is_unchanged([P1, P2], [P1, P2])

    def test_order_matters(self):
        assert not is_unchanged([P1, P2], [P2, P1])

    def test_length_mismatch(self):
        assert not is_unchanged([P1, P2], [P1])


class TestMergeReconciler:
    """Test MergeReconciler class."""

    def test_unchanged_merge_is_fast_forwarded(self, gm):
        gm.resolve_bookmark.return_value = P1
        head, fast_forwarded = MergeReconciler(gm).replay(_merge_op())
        assert (head, fast_forwarded) == (ORIG, True)
        gm.reset_hard.assert_called_once_with(ORIG)
        gm.merge_commits.assert_not_called()

    def test_changed_merge_is_recreated(self, gm):
        gm.resolve_bookmark.return_value = NEW
        gm.head_id.side_effect = [NEW, "r" * 40]
        head, fast_forwarded = MergeReconciler(gm).replay(_merge_op())
        assert (head, fast_forwarded) == ("r" * 40, False)
        gm.merge_commits.assert_called_once_with([P2], "Merge side\n\nDetails")
        gm.reset_hard.assert_not_called()

    def test_head_moved_to_first_parent(self, gm):
        gm.resolve_bookmark.return_value = NEW
        gm.head_id.side_effect = ["o" * 40, "r" * 40]
        MergeReconciler(gm).replay(_merge_op())
        gm.reset_hard.assert_called_once_with(NEW)

    def test_conflicts_stop_the_replay(self, gm):
        gm.resolve_bookmark.return_value = NEW
        gm.head_id.return_value = NEW
        gm.merge_commits.return_value = (False, [Path("a.txt")])
        with pytest.raises(ReplayStoppedError) as exc_info:
            MergeReconciler(gm).replay(_merge_op())
        assert exc_info.value.conflict_files == [Path("a.txt")]
        assert exc_info.value.operation == _merge_op()

    def test_missing_bookmark(self, gm):
        gm.resolve_bookmark.return_value = None
        with pytest.raises(ResolutionError, match="1111111"):
            MergeReconciler(gm).replay(_merge_op())
