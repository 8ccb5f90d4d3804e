"""
UI-agnostic interface for reviewing a generated script before replay.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from .models import RebaseScript


class ScriptReviewer(ABC):
    """Abstract interface for letting a user inspect and edit the script."""

    @abstractmethod
    def review(self, script: RebaseScript) -> Optional[RebaseScript]:
        """
        Present the script and return the version to replay.

        Args:
            script: The generated script

        Returns:
            The script to replay (possibly edited), or None to cancel
        """
        pass


class NoOpReviewer(ScriptReviewer):
    """Reviewer that accepts the generated script unchanged."""

    def review(self, script: RebaseScript) -> Optional[RebaseScript]:
        return script
