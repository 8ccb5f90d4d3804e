"""
Scheduling bookmark operations after the commits later operations refer to.
"""

from __future__ import annotations

import logging
from typing import List

from .bookmarks import BookmarkTable
from .models import Operation, ScriptConsistencyError


logger = logging.getLogger(__name__)


class LabelPlanner:
    """Inserts ``bookmark <name>`` directly after each tracked commit's own operation."""

    def __init__(self, bookmarks: BookmarkTable) -> None:
        self.bookmarks = bookmarks

    def insert(self, operations: List[Operation]) -> List[Operation]:
        result = list(operations)
        for name in self.bookmarks.names():
            index = self.locate(result, name)
            result.insert(index + 1, Operation.bookmark(name))
        logger.debug(f"Inserted {len(self.bookmarks)} bookmark operation(s)")
        return result

    @staticmethod
    def locate(operations: List[Operation], name: str) -> int:
        """Index of the pick, skip or merge of commit ``name``."""
        for index, op in enumerate(operations):
            if op.kind.replays_commit and op.commit == name:
                return index
        raise ScriptConsistencyError(
            f"Internal error: could not find {name} in the generated script"
        )

