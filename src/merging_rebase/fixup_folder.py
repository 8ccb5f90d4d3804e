"""
Folding ``fixup!`` and ``squash!`` commits into the commits they name.
"""

from __future__ import annotations

import logging
import re
from typing import List, Optional, Tuple

from .models import Operation, OperationKind


logger = logging.getLogger(__name__)


FIXUP_PATTERN = re.compile(r"^(fixup|squash)! (.+)$")


def parse_fixup_subject(subject: str) -> Optional[Tuple[OperationKind, str]]:
    """Return (fixup|squash, target subject) for a fixup-style subject, else None."""
    match = FIXUP_PATTERN.match(subject)
    if not match:
        return None
    return OperationKind(match.group(1)), match.group(2)


class FixupFolder:
    """Moves each fixup/squash pick directly after the pick whose subject it names.

    The script is scanned bottom to top. A fold removes the entry and
    reinserts it after its target with kind fixup or squash; entries whose
    target is not found stay ordinary picks. Each step only rescans the part
    of the script above the entry it just handled.
    """

    def fold(self, operations: List[Operation]) -> List[Operation]:
        ops = list(operations)
        limit = len(ops)
        folded = 0
        while True:
            index = self._last_fixup(ops, limit)
            if index is None:
                break
            kind, target_subject = parse_fixup_subject(ops[index].subject)
            target = self._last_pick_with_subject(ops, index, target_subject)
            if target is None:
                logger.info(f"No target for '{ops[index].subject}'; keeping it as a pick")
                limit = index
                continue
            entry = ops.pop(index).with_kind(kind)
            ops.insert(target + 1, entry)
            folded += 1
            # The entries that were above ``index`` now end at ``index``
            limit = index + 1
        if folded:
            logger.info(f"Folded {folded} fixup/squash commit(s)")
        return ops

    @staticmethod
    def _last_fixup(ops: List[Operation], limit: int) -> Optional[int]:
        for index in range(limit - 1, -1, -1):
            op = ops[index]
            if op.kind == OperationKind.PICK and parse_fixup_subject(op.subject):
                return index
        return None

    @staticmethod
    def _last_pick_with_subject(ops: List[Operation], limit: int, subject: str) -> Optional[int]:
        for index in range(limit - 1, -1, -1):
            op = ops[index]
            if op.kind == OperationKind.PICK and op.subject == subject:
                return index
        return None
