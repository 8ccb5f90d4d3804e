"""
Tests for the replay driver.
"""

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from merging_rebase.executor import ScriptExecutor
from merging_rebase.models import (
    Operation,
    OperationKind,
    RebaseError,
    RebaseScript,
    ReplayStoppedError,
    ResolutionError,
    RewrittenEntry,
)
from merging_rebase.session import SessionStore


BASE = "b" * 40
ONTO = "n" * 40
A = "a" * 40


@pytest.fixture()
def gm(tmp_path):
    gm = MagicMock()
    gm.git_dir = tmp_path
    gm.is_index_clean.return_value = True
    gm.head_id.return_value = ONTO
    gm.resolve.side_effect = lambda name: {"main": ONTO, "a1": A}.get(name, name)
    gm.get_parents.return_value = [ONTO]
    gm.cherry_pick.return_value = (True, [])
    gm.apply_without_commit.return_value = (True, [])
    gm.get_conflict_files.return_value = []
    gm.run_shell.return_value = 0
    return gm


def _script(*ops, message=None):
    return RebaseScript(operations=list(ops), merging_message=message)


class TestScriptExecutor:
    """Test ScriptExecutor class."""

    def test_fast_forward_pick(self, gm):
        executor = ScriptExecutor(gm)
        head = executor.start(_script(Operation.pick("a1", "A1")), onto="main", head_name="topic")
        assert head == ONTO
        gm.checkout_detached.assert_called_once_with(ONTO)
        gm.reset_hard.assert_called_once_with(A)
        gm.cherry_pick.assert_not_called()
        gm.update_branch.assert_called_once_with("topic", ONTO)
        assert not executor.store.exists()

    def test_pick_onto_new_base(self, gm):
        gm.get_parents.return_value = [BASE]
        ScriptExecutor(gm).start(_script(Operation.pick("a1", "A1")), onto="main")
        gm.cherry_pick.assert_called_once_with(A)
        gm.update_branch.assert_not_called()

    def test_refuses_dirty_tree(self, gm):
        gm.is_index_clean.return_value = False
        gm.get_dirty_paths.return_value = ["file.txt"]
        with pytest.raises(RebaseError, match="file.txt"):
            ScriptExecutor(gm).start(_script(Operation.pick("a1", "A1")), onto="main")
        gm.checkout_detached.assert_not_called()

    def test_refuses_second_session(self, gm):
        store = SessionStore(gm.git_dir)
        store.path.mkdir(parents=True)
        (store.path / "orig-head").write_text(ONTO)
        with pytest.raises(RebaseError, match="already in progress"):
            ScriptExecutor(gm, store).start(_script(), onto="main")

    def test_conflict_stops_and_continue_resumes(self, gm):
        gm.get_parents.return_value = [BASE]
        gm.cherry_pick.return_value = (False, [Path("a.txt")])
        script = _script(Operation.pick("a1", "A1"), Operation.bookmark("a1"))

        with pytest.raises(ReplayStoppedError) as exc_info:
            ScriptExecutor(gm).start(script, onto="main", head_name="topic")
        assert exc_info.value.conflict_files == [Path("a.txt")]

        state = SessionStore(gm.git_dir).load()
        assert state.position == 0
        assert state.stopped == OperationKind.PICK

        gm.has_pending.return_value = True
        head = ScriptExecutor(gm).resume()
        assert head == ONTO
        gm.continue_cherry_pick.assert_called_once()
        gm.set_bookmark.assert_called_once_with("a1", "HEAD")
        assert not SessionStore(gm.git_dir).exists()

    def test_continue_refuses_unresolved_conflicts(self, gm):
        gm.get_parents.return_value = [BASE]
        gm.cherry_pick.return_value = (False, [Path("a.txt")])
        with pytest.raises(ReplayStoppedError):
            ScriptExecutor(gm).start(_script(Operation.pick("a1", "A1")), onto="main")

        gm.get_conflict_files.return_value = [Path("a.txt")]
        with pytest.raises(ReplayStoppedError, match="Resolve all conflicts"):
            ScriptExecutor(gm).resume()
        gm.continue_cherry_pick.assert_not_called()

    def test_resume_without_session(self, gm):
        with pytest.raises(RebaseError, match="No merging rebase"):
            ScriptExecutor(gm).resume()

    def test_fixup_amends_without_message(self, gm):
        script = _script(Operation(OperationKind.FIXUP, commit="a1", subject="fixup! X"))
        ScriptExecutor(gm).start(script, onto="main")
        gm.apply_without_commit.assert_called_once_with(A)
        gm.amend_head.assert_called_once_with(None)

    def test_squash_combines_messages(self, gm):
        gm.read_message.side_effect = lambda c: {"HEAD": "Add parser\n", A: "squash! Add parser\n\nMore"}[c]
        script = _script(Operation(OperationKind.SQUASH, commit="a1", subject="squash! Add parser"))
        ScriptExecutor(gm).start(script, onto="main")
        gm.amend_head.assert_called_once_with("Add parser\n\nsquash! Add parser\n\nMore")

    def test_reset_to_missing_bookmark(self, gm):
        gm.resolve_bookmark.return_value = None
        with pytest.raises(ResolutionError):
            ScriptExecutor(gm).start(_script(Operation.reset("a1")), onto="main")
        assert SessionStore(gm.git_dir).load().position == 0

    def test_start_merging(self, gm):
        script = _script(Operation.exec("start-merging c1"), message="Start the merging-rebase to main\n")
        ScriptExecutor(gm).start(script, onto="main")
        gm.merge_ours.assert_called_once_with("c1", "Start the merging-rebase to main\n")

    def test_cleanup_records_rewritten_ids(self, gm):
        gm.resolve_bookmark.return_value = "r" * 40
        gm.get_commit_subject.return_value = "A1"
        executor = ScriptExecutor(gm)
        executor.start(_script(Operation.bookmark("onto"), Operation.exec("cleanup a1")), onto="main")
        gm.set_bookmark.assert_called_once_with("onto", "HEAD")
        assert [c.args[0] for c in gm.delete_bookmark.call_args_list] == ["a1", "onto"]
        assert executor.bookmarks.entries() == [RewrittenEntry("a1", "r" * 40, "A1")]

    def test_failed_exec_is_not_rerun(self, gm):
        gm.run_shell.return_value = 1
        script = _script(Operation.exec("make test"), Operation.pick("a1", "A1"))
        with pytest.raises(RebaseError, match="make test"):
            ScriptExecutor(gm).start(script, onto="main")
        state = SessionStore(gm.git_dir).load()
        assert state.position == 1
        assert state.stopped is None

        gm.run_shell.reset_mock()
        ScriptExecutor(gm).resume()
        gm.run_shell.assert_not_called()
        gm.reset_hard.assert_called_once_with(A)

    def test_skip_does_nothing(self, gm):
        ScriptExecutor(gm).start(_script(Operation.skip("a1", "A1")), onto="main")
        gm.cherry_pick.assert_not_called()
        gm.reset_hard.assert_not_called()
