"""
Main orchestration logic: plan a merging rebase, then replay it.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

from .commit_graph import CommitGraph, CommitGraphReader
from .executor import ScriptExecutor
from .git_manager import GitManager
from .models import (
    ONTO_BOOKMARK,
    PlanOptions,
    RebaseError,
    RebaseInProgressError,
    RebaseScript,
    RewrittenEntry,
    SessionState,
)
from .prompt_interface import NoOpReviewer, ScriptReviewer
from .script_assembler import DEFAULT_MERGING_TEMPLATE, ScriptAssembler
from .session import SessionStore


logger = logging.getLogger(__name__)


class RebaseOrchestrator:
    """Plans and replays merging rebases for one repository."""

    def __init__(self, root_path: Optional[Path] = None, git_manager: Optional[GitManager] = None) -> None:
        """Initialize the rebase orchestrator."""
        self.root_path = root_path or Path.cwd()
        self.git_manager = git_manager or GitManager(self.root_path)
        self.reader = CommitGraphReader(self.git_manager)
        self._store: Optional[SessionStore] = None
        self.last_graph: Optional[CommitGraph] = None
        self.last_rewritten: List[RewrittenEntry] = []

    @property
    def store(self) -> SessionStore:
        if self._store is None:
            self._store = SessionStore(self.git_manager.git_dir)
        return self._store

    def plan(self, options: PlanOptions, template: str = DEFAULT_MERGING_TEMPLATE) -> RebaseScript:
        """
        Generate the replay script for ``options.upstream..options.head``.

        Planning only reads from the repository.
        """
        logger.info(f"Planning merging rebase of {options.head} onto {options.onto or options.upstream}")
        if self.store.exists():
            raise RebaseInProgressError("A merging rebase is already in progress")

        graph = self.reader.read(options.to_range())
        self.last_graph = graph
        if not graph.commits:
            logger.info("Nothing to rebase")
        return ScriptAssembler(graph, options, template).assemble()

    def execute(
        self,
        script: RebaseScript,
        options: PlanOptions,
        reviewer: Optional[ScriptReviewer] = None,
    ) -> Optional[str]:
        """
        Review and replay a planned script.

        Returns:
            The rewritten head id, or None if the review cancelled the rebase
        """
        reviewer = reviewer or NoOpReviewer()
        reviewed = reviewer.review(script)
        if reviewed is None:
            logger.info("Merging rebase cancelled during review")
            return None

        head_name = self.git_manager.get_current_branch()
        executor = ScriptExecutor(self.git_manager, self.store)
        try:
            return executor.start(reviewed, onto=options.onto or options.upstream, head_name=head_name)
        finally:
            self.last_rewritten = executor.bookmarks.entries()

    def continue_rebase(self) -> str:
        executor = ScriptExecutor(self.git_manager, self.store)
        try:
            return executor.resume()
        finally:
            self.last_rewritten = executor.bookmarks.entries()

    def get_session(self) -> Optional[SessionState]:
        return self.store.load()

    def quit_rebase(self) -> int:
        """Forget the session and release its bookmarks; branches are not moved.

        Returns the number of bookmarks deleted.
        """
        state = self.store.load()
        if state is None:
            raise RebaseError("No merging rebase in progress")
        present = set(self.git_manager.list_bookmarks())
        deleted = 0
        for name in dict.fromkeys([*state.script.bookmarked, ONTO_BOOKMARK]):
            if name not in present:
                continue
            self.git_manager.delete_bookmark(name)
            deleted += 1
        self.store.clean()
        logger.info(f"Quit merging rebase; deleted {deleted} bookmark(s)")
        return deleted

    def validate_repository_state(self) -> List[str]:
        """Validate that the repository is ready for a merging rebase."""
        errors = []
        if self.git_manager.is_rebase_in_progress():
            errors.append("Rebase already in progress")
        if self.store.exists():
            errors.append("A merging rebase is already in progress")
        if not self.git_manager.is_index_clean():
            dirty = self.git_manager.get_dirty_paths()
            errors.append(f"Working tree has uncommitted changes: {', '.join(dirty)}")
        return errors
