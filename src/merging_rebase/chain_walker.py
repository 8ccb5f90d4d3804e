"""
Walking first-parent chains of the rebase range into blocks of operations.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Set

from .bookmarks import BookmarkTable
from .commit_graph import CommitGraph
from .models import CommitInfo, ONTO_BOOKMARK, Operation, ParentRef


logger = logging.getLogger(__name__)


class ChainWalker:
    """Turns every branch tip into a block of operations in execution order.

    Each block starts with a reset: to the bookmark of a fork point when the
    chain runs into a commit handled by an earlier block, or to ``onto`` when
    it leaves the range.
    """

    def __init__(self, graph: CommitGraph, bookmarks: Optional[BookmarkTable] = None) -> None:
        self.graph = graph
        self.bookmarks = bookmarks if bookmarks is not None else BookmarkTable()
        self.handled: Set[str] = set()

    def walk(self) -> List[List[Operation]]:
        blocks: List[List[Operation]] = []
        for tip in self.graph.branch_tips():
            if tip in self.handled:
                continue
            blocks.append(self.walk_chain(tip))
        logger.info(
            f"Walked {len(blocks)} chain(s) over {len(self.handled)} commit(s), "
            f"{len(self.bookmarks)} bookmark(s) needed"
        )
        return blocks

    def walk_chain(self, tip: str) -> List[Operation]:
        """Walk first parents back from ``tip``; returns the block in execution order."""
        block: List[Operation] = []
        commit_id: Optional[str] = tip
        while True:
            if commit_id in self.handled:
                fork = self.graph.get(commit_id)
                name = self.bookmarks.track(fork)
                block.append(Operation.reset(name, fork.subject))
                logger.debug(f"Fork point {fork.short_id} reached from tip {tip[:8]}")
                break

            commit = self.graph.get(commit_id) if commit_id else None
            if commit is None:
                block.append(Operation.reset(ONTO_BOOKMARK))
                break

            if commit.is_merge:
                block.append(self._merge(commit))
            elif self.graph.is_pickable(commit.id):
                block.append(Operation.pick(commit.short_id, commit.subject))
            else:
                block.append(Operation.skip(commit.short_id, commit.subject))

            self.handled.add(commit.id)
            commit_id = commit.first_parent

        block.reverse()
        return block

    def _merge(self, commit: CommitInfo) -> Operation:
        refs: List[ParentRef] = []
        for index, parent_id in enumerate(commit.parents):
            parent = self.graph.get(parent_id)
            if parent is not None:
                refs.append(ParentRef(self.bookmarks.track(parent), rewritten=True))
            elif index == 0:
                # The chain below leaves the range, so it restarts at the new base
                refs.append(ParentRef(ONTO_BOOKMARK, rewritten=True))
            else:
                refs.append(ParentRef(commit.short_parent(index)))
        return Operation.merge(commit.short_id, refs, commit.subject)
