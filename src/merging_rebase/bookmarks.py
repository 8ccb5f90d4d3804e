"""
Bookmark tracking: which original commits need a named rewritten state.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterator, List, Optional

from .models import CommitInfo, RewrittenEntry, bookmark_ref


logger = logging.getLogger(__name__)


class BookmarkTable:
    """Maps original commits to bookmark names and, after replay, to rewritten ids.

    Names are added at most once, in discovery order, and never change.
    """

    def __init__(self) -> None:
        """Initialize an empty table."""
        self._names: Dict[str, str] = {}  # original id -> bookmark name
        self._subjects: Dict[str, str] = {}  # bookmark name -> subject
        self.rewritten: Dict[str, str] = {}  # bookmark name -> rewritten id

    def __len__(self) -> int:
        return len(self._names)

    def __contains__(self, commit_id: object) -> bool:
        return commit_id in self._names

    def __iter__(self) -> Iterator[str]:
        return iter(self._names)

    def track(self, commit: CommitInfo) -> str:
        """Schedule a bookmark for ``commit``; returns its name."""
        name = self._names.get(commit.id)
        if name is None:
            name = commit.short_id
            self._names[commit.id] = name
            self._subjects[name] = commit.subject
            logger.debug(f"Tracking bookmark {bookmark_ref(name)} ({commit.subject})")
        return name

    def names(self) -> List[str]:
        """Bookmark names in the order they were first tracked."""
        return list(self._names.values())

    def record_rewritten(self, name: str, new_id: str, subject: Optional[str] = None) -> None:
        self.rewritten[name] = new_id
        if subject is not None:
            self._subjects.setdefault(name, subject)
        logger.debug(f"Bookmark {name} -> {new_id[:8]}")

    def entries(self) -> List[RewrittenEntry]:
        """Structured view of tracked commits and their rewritten ids, if known."""
        names = self.names() + [n for n in self.rewritten if n not in self._names.values()]
        return [
            RewrittenEntry(original=name, rewritten=self.rewritten.get(name), subject=self._subjects.get(name, ""))
            for name in names
        ]
