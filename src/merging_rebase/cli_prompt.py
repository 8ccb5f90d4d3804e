"""
CLI-specific implementation of the script review interface.
"""

from __future__ import annotations

from typing import Optional
import click
from rich.console import Console

from .models import RebaseScript
from .prompt_interface import ScriptReviewer


HELP_TEXT = """
# Merging rebase script
#
# Commands:
# p, pick <commit> = use commit
# f, fixup <commit> = meld into the previous commit, keep its message
# s, squash <commit> = meld into the previous commit, append the message
# skip <commit> = commit is already upstream, do nothing
# m, merge -C <commit> <parent>... = fast-forward the merge or recreate it
# t, reset rewritten/<name> = reset HEAD to a bookmark
# b, bookmark <name> = record HEAD as rewritten/<name>
# x, exec <command> = start-merging, cleanup, or run a shell command
#
# Lines are executed top to bottom. Removing everything cancels the rebase.
"""


class CliScriptEditor(ScriptReviewer):
    """Opens the script in the user's editor via click."""

    def __init__(self, console: Console = None):
        self.console = console or Console()

    def review(self, script: RebaseScript) -> Optional[RebaseScript]:
        """Let the user edit the script; an empty result cancels."""
        edited = click.edit(script.to_text() + HELP_TEXT, extension=".txt", require_save=False)
        if edited is None:
            return script

        reviewed = RebaseScript.from_text(edited, merging_message=script.merging_message)
        if not reviewed.operations:
            self.console.print("Empty script, nothing to do.", style="yellow")
            return None
        if len(reviewed) != len(script):
            self.console.print(f"Script edited: {len(script)} -> {len(reviewed)} operation(s)")
        return reviewed
