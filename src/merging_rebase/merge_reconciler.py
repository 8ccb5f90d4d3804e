"""
Replaying a merge: fast-forward when nothing changed, else recreate it.
"""

from __future__ import annotations

import logging
from typing import List, Sequence, Tuple

from .git_manager import GitManager
from .models import Operation, ParentRef, ReplayStoppedError, ResolutionError


logger = logging.getLogger(__name__)


def is_unchanged(original_parents: Sequence[str], resolved_parents: Sequence[str]) -> bool:
    """True when every resolved parent equals the original parent at the same position."""
    if len(original_parents) != len(resolved_parents):
        return False
    return all(o == r for o, r in zip(original_parents, resolved_parents))


class MergeReconciler:
    """Decides per merge whether it can be fast-forwarded or must be recreated.

    Parent references are resolved when the merge is replayed, because a
    bookmark only exists once the operation that records it has run.
    """

    def __init__(self, git_manager: GitManager) -> None:
        self.gm = git_manager

    def resolve_parent(self, ref: ParentRef) -> str:
        if ref.rewritten:
            value = self.gm.resolve_bookmark(ref.commit)
            if value is None:
                raise ResolutionError(f"Bookmark '{ref.commit}' does not exist (yet)")
            return value
        return self.gm.resolve(ref.commit)

    def replay(self, operation: Operation) -> Tuple[str, bool]:
        """
        Replay one merge operation.

        Returns:
            Tuple of (new HEAD id, fast_forwarded)
        """
        original = self.gm.resolve(operation.commit)
        original_parents = self.gm.get_parents(original)
        resolved: List[str] = [self.resolve_parent(ref) for ref in operation.parents]

        if is_unchanged(original_parents, resolved):
            self.gm.reset_hard(original)
            logger.info(f"Merge {operation.commit} unchanged; fast-forwarded")
            return original, True

        message = self.gm.read_message(original)
        first, others = resolved[0], resolved[1:]
        if self.gm.head_id() != first:
            logger.warning(f"HEAD is not the first parent of {operation.commit}; moving to {first[:8]}")
            self.gm.reset_hard(first)

        ok, conflict_files = self.gm.merge_commits(others, message)
        if not ok:
            raise ReplayStoppedError(
                f"Merge {operation.commit} stopped with conflicts",
                operation=operation,
                conflict_files=conflict_files,
            )
        new_head = self.gm.head_id()
        logger.info(f"Recreated merge {operation.commit} as {new_head[:8]}")
        return new_head, False
