"""
Reading the commit range to be rebased.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set

from .git_manager import GitManager
from .models import CommitInfo, RebaseInProgressError, RebaseRange


logger = logging.getLogger(__name__)


@dataclass
class CommitGraph:
    """Arena of the commits in ``upstream..head``, addressed by full id.

    ``commits`` is oldest first in topological order. ``pickable`` holds the
    ids of non-merge commits that have no patch-equivalent upstream.
    """

    commits: List[CommitInfo]
    pickable: Set[str] = field(default_factory=set)
    head: Optional[str] = None
    onto: Optional[str] = None
    onto_short: Optional[str] = None
    upstream: Optional[str] = None
    upstream_short: Optional[str] = None
    head_short: Optional[str] = None

    def __post_init__(self) -> None:
        self._by_id: Dict[str, CommitInfo] = {c.id: c for c in self.commits}

    @classmethod
    def from_commits(
        cls,
        commits: Iterable[CommitInfo],
        pickable: Optional[Iterable[str]] = None,
        head: Optional[str] = None,
    ) -> "CommitGraph":
        """Build a graph; every non-merge commit is pickable unless told otherwise."""
        commits = list(commits)
        if pickable is None:
            pickable = [c.id for c in commits if not c.is_merge]
        if head is None and commits:
            head = commits[-1].id
        head_short = None
        for c in commits:
            if c.id == head:
                head_short = c.short_id
        return cls(commits=commits, pickable=set(pickable), head=head, head_short=head_short)

    def __len__(self) -> int:
        return len(self.commits)

    def contains(self, commit_id: Optional[str]) -> bool:
        return commit_id is not None and commit_id in self._by_id

    def get(self, commit_id: str) -> Optional[CommitInfo]:
        return self._by_id.get(commit_id)

    def is_pickable(self, commit_id: str) -> bool:
        return commit_id in self.pickable

    def branch_tips(self) -> List[str]:
        """Every in-range non-first parent in list order, then head."""
        tips: List[str] = []
        seen: Set[str] = set()
        candidates = [p for c in self.commits for p in c.parents[1:]]
        if self.head is not None:
            candidates.append(self.head)
        for tip in candidates:
            if tip in seen or not self.contains(tip):
                continue
            seen.add(tip)
            tips.append(tip)
        return tips


class CommitGraphReader:
    """Queries the backend for the range, parents, subjects and pickability."""

    def __init__(self, git_manager: GitManager) -> None:
        self.gm = git_manager

    def ensure_not_in_progress(self) -> None:
        if self.gm.is_rebase_in_progress():
            raise RebaseInProgressError("Rebase already in progress")

    def read(self, rebase_range: RebaseRange) -> CommitGraph:
        """Read ``upstream..head`` from the backend."""
        self.ensure_not_in_progress()

        head = self.gm.resolve(rebase_range.head)
        upstream = self.gm.resolve(rebase_range.upstream)
        onto = self.gm.resolve(rebase_range.onto)
        logger.info(
            f"Reading commits {rebase_range.upstream}..{rebase_range.head} (onto {rebase_range.onto})"
        )

        commits = self.gm.list_range(upstream, head)
        pickable = set(self.gm.list_pickable(upstream, head))
        skipped = [c for c in commits if not c.is_merge and c.id not in pickable]
        if skipped:
            logger.info(f"{len(skipped)} commit(s) already applied upstream will be skipped")

        return CommitGraph(
            commits=commits,
            pickable=pickable,
            head=head,
            head_short=self.gm.short_id(head),
            onto=onto,
            onto_short=self.gm.short_id(onto),
            upstream=upstream,
            upstream_short=self.gm.short_id(upstream),
        )
