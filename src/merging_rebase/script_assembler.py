"""
Assembling the complete replay script from the planned chains.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from .bookmarks import BookmarkTable
from .chain_walker import ChainWalker
from .commit_graph import CommitGraph
from .fixup_folder import FixupFolder
from .label_planner import LabelPlanner
from .models import CLEANUP, ONTO_BOOKMARK, START_MERGING, Operation, PlanOptions, RebaseScript


logger = logging.getLogger(__name__)


DEFAULT_MERGING_TEMPLATE = (
    "Start the merging-rebase to {onto}\n"
    "\n"
    "This commit starts the rebase of {upstream_short} to {onto_short}\n"
    "{note}"
)


def render_merging_message(
    options: PlanOptions, graph: CommitGraph, template: str = DEFAULT_MERGING_TEMPLATE
) -> str:
    """Message of the commit that starts a fast-forward-preserving rewrite."""
    onto = options.onto or options.upstream
    message = template.format(
        onto=onto,
        upstream=options.upstream,
        upstream_short=graph.upstream_short or options.upstream,
        onto_short=graph.onto_short or onto,
        note=options.merging_note or "",
    )
    return message.rstrip("\n") + "\n"


def collapse_adjacent(operations: List[Operation]) -> List[Operation]:
    """Drop operations identical to the one right before them."""
    result: List[Operation] = []
    for op in operations:
        if result and result[-1] == op:
            continue
        result.append(op)
    return result


class ScriptAssembler:
    """Produces the final ordered script for one rebase range."""

    def __init__(
        self,
        graph: CommitGraph,
        options: PlanOptions,
        template: str = DEFAULT_MERGING_TEMPLATE,
    ) -> None:
        self.graph = graph
        self.options = options
        self.template = template
        self.bookmarks = BookmarkTable()
        self.folder = FixupFolder()

    def assemble(self) -> RebaseScript:
        operations: List[Operation] = []
        merging_message: Optional[str] = None

        if self.options.merging:
            merging_message = render_merging_message(self.options, self.graph, self.template)
            head = self.graph.head_short or (self.graph.head or "")[:7]
            operations.append(Operation.exec(f"{START_MERGING} {head}"))
        operations.append(Operation.bookmark(ONTO_BOOKMARK))

        walker = ChainWalker(self.graph, self.bookmarks)
        for block in walker.walk():
            operations.extend(block)

        operations = LabelPlanner(self.bookmarks).insert(operations)
        operations = self.folder.fold(operations)

        names = self.bookmarks.names()
        operations.append(Operation.exec(" ".join([CLEANUP, *names])))
        operations = collapse_adjacent(operations)

        script = RebaseScript(operations=operations, merging_message=merging_message)
        logger.info(
            f"Assembled script with {len(script)} operation(s) for {len(self.graph)} commit(s)"
        )
        return script
