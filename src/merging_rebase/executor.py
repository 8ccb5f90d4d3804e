"""
Replay driver: executes a script operation by operation.
"""

from __future__ import annotations

import logging
from typing import Optional

from .bookmarks import BookmarkTable
from .git_manager import GitManager
from .merge_reconciler import MergeReconciler
from .models import (
    CLEANUP,
    ONTO_BOOKMARK,
    START_MERGING,
    Operation,
    OperationKind,
    RebaseError,
    RebaseScript,
    ReplayStoppedError,
    ResolutionError,
    SessionState,
)
from .session import SessionStore


logger = logging.getLogger(__name__)


class ScriptExecutor:
    """Interprets a replay script against the repository.

    Every operation only assumes that the ones before it completed, so a
    stopped replay resumes at the operation it stopped on.
    """

    def __init__(self, git_manager: GitManager, store: Optional[SessionStore] = None) -> None:
        self.gm = git_manager
        self.store = store or SessionStore(git_manager.git_dir)
        self.reconciler = MergeReconciler(git_manager)
        self.bookmarks = BookmarkTable()

    def start(self, script: RebaseScript, onto: str, head_name: Optional[str] = None) -> str:
        """Check out ``onto`` and replay ``script`` from the beginning.

        Returns the id of the rewritten head.
        """
        if self.store.exists():
            raise RebaseError("A merging rebase is already in progress; use 'continue' or 'quit'")
        if not self.gm.is_index_clean():
            dirty = self.gm.get_dirty_paths()
            raise RebaseError(f"Working tree has uncommitted changes: {', '.join(dirty)}")

        state = SessionState(
            script=script,
            head_name=head_name,
            orig_head=self.gm.head_id(),
            onto=self.gm.resolve(onto),
        )
        self.gm.checkout_detached(state.onto)
        self.store.save(state)
        logger.info(f"Replaying {len(script)} operation(s) onto {state.onto[:8]}")
        return self.run(state)

    def resume(self) -> str:
        """Finish the operation a previous replay stopped on, then carry on."""
        state = self.store.load()
        if state is None:
            raise RebaseError("No merging rebase in progress")
        if state.stopped is not None:
            conflict_files = self.gm.get_conflict_files()
            if conflict_files:
                raise ReplayStoppedError(
                    "Resolve all conflicts and stage the result before continuing",
                    operation=state.current,
                    conflict_files=conflict_files,
                )
            self._conclude(state)
            state.position += 1
            state.stopped = None
            self.store.save_progress(state)
        return self.run(state)

    def run(self, state: SessionState) -> str:
        while not state.is_finished:
            op = state.current
            logger.debug(f"[{state.position + 1}/{len(state.script)}] {op.to_line()}")
            try:
                self.execute(op, state)
            except ReplayStoppedError:
                state.stopped = op.kind
                self.store.save_progress(state)
                raise
            except RebaseError:
                self.store.save_progress(state)
                raise
            state.position += 1
            self.store.save_progress(state)
        return self._finish(state)

    def execute(self, op: Operation, state: SessionState) -> None:
        kind = op.kind
        if kind == OperationKind.PICK:
            self._pick(op)
        elif kind in (OperationKind.FIXUP, OperationKind.SQUASH):
            self._fold(op)
        elif kind == OperationKind.SKIP:
            logger.info(f"Skipping {op.commit} (already upstream): {op.subject}")
        elif kind == OperationKind.MERGE:
            self.reconciler.replay(op)
        elif kind == OperationKind.RESET:
            target = self.gm.resolve_bookmark(op.target)
            if target is None:
                raise ResolutionError(f"Bookmark '{op.target}' does not exist (yet)")
            self.gm.reset_hard(target)
        elif kind == OperationKind.BOOKMARK:
            self.gm.set_bookmark(op.target, "HEAD")
        else:
            self._exec(op, state)

    def _pick(self, op: Operation) -> None:
        commit = self.gm.resolve(op.commit)
        parents = self.gm.get_parents(commit)
        if parents and parents[0] == self.gm.head_id():
            self.gm.reset_hard(commit)
            logger.info(f"Fast-forwarded {op.commit}: {op.subject}")
            return
        ok, conflict_files = self.gm.cherry_pick(commit)
        if not ok:
            raise ReplayStoppedError(
                f"Could not apply {op.commit}: {op.subject}", operation=op, conflict_files=conflict_files
            )
        logger.info(f"Applied {op.commit}: {op.subject}")

    def _fold(self, op: Operation) -> None:
        commit = self.gm.resolve(op.commit)
        ok, conflict_files = self.gm.apply_without_commit(commit)
        if not ok:
            raise ReplayStoppedError(
                f"Could not apply {op.kind.value} {op.commit}: {op.subject}",
                operation=op,
                conflict_files=conflict_files,
            )
        self._amend(op)

    def _amend(self, op: Operation) -> None:
        if op.kind == OperationKind.SQUASH:
            combined = self.gm.read_message("HEAD").rstrip("\n") + "\n\n" + self.gm.read_message(
                self.gm.resolve(op.commit)
            )
            self.gm.amend_head(combined)
        else:
            self.gm.amend_head(None)
        logger.info(f"Folded {op.commit} into HEAD ({op.kind.value})")

    def _exec(self, op: Operation, state: SessionState) -> None:
        action, args = op.exec_action
        if action == START_MERGING and len(args) == 1:
            message = state.script.merging_message or f"Start the merging-rebase of {args[0]}\n"
            self.gm.merge_ours(args[0], message)
        elif action == CLEANUP:
            self._cleanup(args)
        else:
            status = self.gm.run_shell(op.arguments or "")
            if status != 0:
                # A failed exec is not run again on continue
                state.position += 1
                raise RebaseError(f"Execution failed (exit {status}): {op.arguments}")

    def _cleanup(self, names) -> None:
        for name in [*names, ONTO_BOOKMARK]:
            value = self.gm.resolve_bookmark(name)
            if value is None:
                logger.warning(f"Bookmark {name} already gone")
                continue
            if name != ONTO_BOOKMARK:
                self.bookmarks.record_rewritten(name, value, self.gm.get_commit_subject(name) or "")
            self.gm.delete_bookmark(name)
        logger.info(f"Released {len(names)} bookmark(s)")

    def _conclude(self, state: SessionState) -> None:
        op = state.current
        kind = state.stopped
        if kind == OperationKind.PICK and self.gm.has_pending("CHERRY_PICK_HEAD"):
            self.gm.continue_cherry_pick()
        elif kind in (OperationKind.FIXUP, OperationKind.SQUASH):
            self.gm.clear_pending("CHERRY_PICK_HEAD")
            self._amend(op)
        elif kind == OperationKind.MERGE and self.gm.has_pending("MERGE_HEAD"):
            self.gm.commit_pending_merge()
        logger.info(f"Concluded stopped {kind.value} {op.commit if op else ''}".rstrip())

    def _finish(self, state: SessionState) -> str:
        head = self.gm.head_id()
        if state.head_name:
            self.gm.update_branch(state.head_name, head)
        self.store.clean()
        logger.info(f"Merging rebase finished at {head[:8]}")
        return head
