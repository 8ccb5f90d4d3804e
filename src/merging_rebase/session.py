"""
Persisting replay progress so a stopped merging rebase can be continued.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Optional

from .models import OperationKind, RebaseScript, SessionState


logger = logging.getLogger(__name__)


STATE_DIR_NAME = "merging-rebase"


class SessionStore:
    """Reads and writes session state in ``<git-dir>/merging-rebase``."""

    def __init__(self, git_dir: Path) -> None:
        self.path = Path(git_dir) / STATE_DIR_NAME

    def exists(self) -> bool:
        return (self.path / "orig-head").exists()

    def save(self, state: SessionState) -> None:
        self.path.mkdir(parents=True, exist_ok=True)
        self._write_file("todo", state.script.to_text())
        self._write_file("head-name", state.head_name or "")
        self._write_file("onto", state.onto)
        self._write_file("position", str(state.position))
        self._write_file("stopped", state.stopped.value if state.stopped else "")
        if state.script.merging_message is not None:
            self._write_file("message", state.script.merging_message)
        # Written last: its presence marks a complete session
        self._write_file("orig-head", state.orig_head)
        logger.debug(f"Saved session at operation {state.position}/{len(state.script)}")

    def save_progress(self, state: SessionState) -> None:
        """Update only the position and stop marker of an existing session."""
        self._write_file("position", str(state.position))
        self._write_file("stopped", state.stopped.value if state.stopped else "")

    def load(self) -> Optional[SessionState]:
        if not self.exists():
            return None
        message = self._read_file("message")
        script = RebaseScript.from_text(self._read_file("todo") or "", merging_message=message)
        stopped = (self._read_file("stopped") or "").strip()
        return SessionState(
            script=script,
            head_name=(self._read_file("head-name") or "").strip() or None,
            orig_head=(self._read_file("orig-head") or "").strip(),
            onto=(self._read_file("onto") or "").strip(),
            position=int((self._read_file("position") or "0").strip() or 0),
            stopped=OperationKind(stopped) if stopped else None,
        )

    def clean(self) -> None:
        """Remove all session state."""
        try:
            shutil.rmtree(self.path)
            logger.debug(f"Removed session state at {self.path}")
        except FileNotFoundError:
            # Directory doesn't exist, that's ok
            pass

    def _write_file(self, name: str, content: str) -> None:
        (self.path / name).write_text(content, encoding="utf-8")

    def _read_file(self, name: str) -> Optional[str]:
        try:
            return (self.path / name).read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
