"""
Data models for the merging-rebase tool.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple


BOOKMARK_PREFIX = "refs/rewritten"
ONTO_BOOKMARK = "onto"
REWRITTEN_TOKEN = "rewritten/"

START_MERGING = "start-merging"
CLEANUP = "cleanup"


@dataclass(frozen=True)
class CommitInfo:
    """Information about a Git commit inside the rebase range."""

    id: str
    short_id: str
    parents: Tuple[str, ...] = ()
    subject: str = ""
    # Abbreviated parent ids, same order as ``parents``
    short_parents: Tuple[str, ...] = ()

    @property
    def is_merge(self) -> bool:
        return len(self.parents) > 1

    @property
    def first_parent(self) -> Optional[str]:
        return self.parents[0] if self.parents else None

    def short_parent(self, index: int) -> str:
        if index < len(self.short_parents):
            return self.short_parents[index]
        return self.parents[index][:7]


@dataclass
class RebaseRange:
    """Commits reachable from ``head`` but not from ``upstream``, replayed on ``onto``."""

    upstream: str
    head: str = "HEAD"
    onto: Optional[str] = None

    def __post_init__(self) -> None:
        """Default the new base to the upstream."""
        if not self.onto:
            self.onto = self.upstream


@dataclass
class PlanOptions:
    """Per-run planning choices."""

    upstream: str
    onto: Optional[str] = None
    head: str = "HEAD"
    merging: bool = False
    merging_note: str = ""

    def to_range(self) -> RebaseRange:
        return RebaseRange(upstream=self.upstream, head=self.head, onto=self.onto)


class OperationKind(Enum):
    """Commands understood by the replay driver."""

    PICK = "pick"
    FIXUP = "fixup"
    SQUASH = "squash"
    SKIP = "skip"
    MERGE = "merge"
    RESET = "reset"
    BOOKMARK = "bookmark"
    EXEC = "exec"

    @classmethod
    def from_string(cls, s: str) -> "OperationKind":
        """Parse a command name, accepting one-letter abbreviations."""
        s = s.lower()
        abbreviations = {
            "p": cls.PICK,
            "f": cls.FIXUP,
            "s": cls.SQUASH,
            "m": cls.MERGE,
            "t": cls.RESET,
            "b": cls.BOOKMARK,
            "x": cls.EXEC,
        }
        if s in abbreviations:
            return abbreviations[s]
        try:
            return cls(s)
        except ValueError:
            raise ScriptParseError(f"Unknown script command: {s}")

    @property
    def replays_commit(self) -> bool:
        """True for operations that stand for one commit of the range."""
        return self in (OperationKind.PICK, OperationKind.SKIP, OperationKind.MERGE)


def bookmark_ref(name: str) -> str:
    """Full reference name of a bookmark."""
    return f"{BOOKMARK_PREFIX}/{name}"


@dataclass(frozen=True)
class ParentRef:
    """A merge parent: a literal commit, or the rewritten equivalent of one."""

    commit: str
    rewritten: bool = False

    def to_token(self) -> str:
        return f"{REWRITTEN_TOKEN}{self.commit}" if self.rewritten else self.commit

    @classmethod
    def from_token(cls, token: str) -> "ParentRef":
        if token.startswith(REWRITTEN_TOKEN):
            return cls(commit=token[len(REWRITTEN_TOKEN):], rewritten=True)
        return cls(commit=token)


@dataclass(frozen=True)
class Operation:
    """One line of a replay script.

    ``commit`` is the abbreviated id of the original commit for pick, fixup,
    squash, skip and merge; ``target`` names the bookmark for reset and
    bookmark; ``arguments`` holds the literal of an exec.
    """

    kind: OperationKind
    commit: Optional[str] = None
    subject: str = ""
    parents: Tuple[ParentRef, ...] = ()
    target: Optional[str] = None
    arguments: Optional[str] = None

    @classmethod
    def pick(cls, commit: str, subject: str = "") -> "Operation":
        return cls(OperationKind.PICK, commit=commit, subject=subject)

    @classmethod
    def skip(cls, commit: str, subject: str = "") -> "Operation":
        return cls(OperationKind.SKIP, commit=commit, subject=subject)

    @classmethod
    def merge(cls, commit: str, parents: List[ParentRef], subject: str = "") -> "Operation":
        return cls(OperationKind.MERGE, commit=commit, subject=subject, parents=tuple(parents))

    @classmethod
    def reset(cls, target: str, subject: str = "") -> "Operation":
        return cls(OperationKind.RESET, target=target, subject=subject)

    @classmethod
    def bookmark(cls, target: str) -> "Operation":
        return cls(OperationKind.BOOKMARK, target=target)

    @classmethod
    def exec(cls, arguments: str) -> "Operation":
        return cls(OperationKind.EXEC, arguments=arguments)

    @property
    def exec_action(self) -> Tuple[str, List[str]]:
        """Split an exec literal into its first word and the remaining words."""
        words = (self.arguments or "").split()
        if not words:
            return "", []
        return words[0], words[1:]

    def with_kind(self, kind: OperationKind) -> "Operation":
        return Operation(
            kind,
            commit=self.commit,
            subject=self.subject,
            parents=self.parents,
            target=self.target,
            arguments=self.arguments,
        )

    def to_line(self) -> str:
        """Render in the textual script format."""
        kind = self.kind
        if kind in (OperationKind.PICK, OperationKind.FIXUP, OperationKind.SQUASH, OperationKind.SKIP):
            return " ".join(p for p in (kind.value, self.commit or "", self.subject) if p)
        if kind == OperationKind.MERGE:
            refs = " ".join(p.to_token() for p in self.parents)
            line = f"merge -C {self.commit} {refs}".rstrip()
            return f"{line} # {self.subject}" if self.subject else line
        if kind == OperationKind.RESET:
            line = f"reset {REWRITTEN_TOKEN}{self.target}"
            return f"{line} # {self.subject}" if self.subject else line
        if kind == OperationKind.BOOKMARK:
            return f"bookmark {self.target}"
        return f"exec {self.arguments or ''}".rstrip()

    @classmethod
    def from_line(cls, line: str) -> Optional["Operation"]:
        """Parse one script line; blank lines and comments yield None."""
        line = line.strip()
        if not line or line.startswith("#"):
            return None

        command, _, rest = line.partition(" ")
        kind = OperationKind.from_string(command)
        rest = rest.strip()

        if kind == OperationKind.EXEC:
            if not rest:
                raise ScriptParseError(f"Missing command for exec: {line}")
            return cls.exec(rest)

        body, _, comment = rest.partition("#")
        body = body.strip()
        comment = comment.strip()

        if kind == OperationKind.BOOKMARK:
            if not body or len(body.split()) != 1:
                raise ScriptParseError(f"Bookmark needs exactly one name: {line}")
            return cls.bookmark(body)

        if kind == OperationKind.RESET:
            if not body or len(body.split()) != 1:
                raise ScriptParseError(f"Reset needs exactly one bookmark: {line}")
            target = body[len(REWRITTEN_TOKEN):] if body.startswith(REWRITTEN_TOKEN) else body
            return cls.reset(target, comment)

        if kind == OperationKind.MERGE:
            tokens = body.split()
            if len(tokens) < 4 or tokens[0] != "-C":
                raise ScriptParseError(f"Merge must read 'merge -C <commit> <parent> <parent>...': {line}")
            parents = [ParentRef.from_token(t) for t in tokens[2:]]
            return cls.merge(tokens[1], parents, comment)

        # pick, fixup, squash, skip: the subject is free text
        commit, _, subject = rest.partition(" ")
        if not commit:
            raise ScriptParseError(f"Missing commit for {kind.value}: {line}")
        return cls(kind, commit=commit, subject=subject.strip())


@dataclass
class RebaseScript:
    """Ordered replay script plus the text of the optional starting merge."""

    operations: List[Operation] = field(default_factory=list)
    merging_message: Optional[str] = None

    def __len__(self) -> int:
        return len(self.operations)

    def __iter__(self):
        return iter(self.operations)

    @property
    def bookmarked(self) -> List[str]:
        """Bookmark names created by the script, in order."""
        return [op.target for op in self.operations if op.kind == OperationKind.BOOKMARK]

    def count(self, kind: OperationKind) -> int:
        return sum(1 for op in self.operations if op.kind == kind)

    def to_text(self) -> str:
        """Render one operation per line, chain blocks separated by a blank line."""
        lines: List[str] = []
        for op in self.operations:
            starts_block = op.kind == OperationKind.RESET or (
                op.kind == OperationKind.EXEC and op.exec_action[0] == CLEANUP
            )
            if starts_block and lines:
                lines.append("")
            lines.append(op.to_line())
        return "\n".join(lines) + "\n" if lines else ""

    @classmethod
    def from_text(cls, text: str, merging_message: Optional[str] = None) -> "RebaseScript":
        operations: List[Operation] = []
        for number, line in enumerate(text.splitlines(), 1):
            try:
                op = Operation.from_line(line)
            except ScriptParseError as e:
                raise ScriptParseError(f"line {number}: {e}") from e
            if op is not None:
                operations.append(op)
        return cls(operations=operations, merging_message=merging_message)


@dataclass
class SessionState:
    """Progress of a replay, persisted between invocations."""

    script: RebaseScript
    head_name: Optional[str]
    orig_head: str
    onto: str
    position: int = 0
    stopped: Optional[OperationKind] = None

    @property
    def current(self) -> Optional[Operation]:
        if self.position < len(self.script.operations):
            return self.script.operations[self.position]
        return None

    @property
    def is_finished(self) -> bool:
        return self.position >= len(self.script.operations)


@dataclass
class RewrittenEntry:
    """Structured representation of a bookmarked commit and its rewritten id."""

    original: str
    rewritten: Optional[str]
    subject: str = ""


class RebaseError(Exception):
    """Base exception for merging-rebase operations."""

    pass


class GitRepositoryError(RebaseError):
    """Exception raised for Git repository related errors."""

    pass


class ResolutionError(RebaseError):
    """Exception raised when a name does not resolve to a commit."""

    pass


class RebaseInProgressError(RebaseError):
    """Exception raised when a rebase or merging-rebase session is already active."""

    pass


class ScriptConsistencyError(RebaseError):
    """Exception raised when the generated script contradicts the commit graph."""

    pass


class ScriptParseError(RebaseError):
    """Exception raised for invalid lines in an edited script."""

    pass


class ReplayStoppedError(RebaseError):
    """Exception raised when replay stops and needs the user before continuing."""

    def __init__(self, message: str, operation: Optional[Operation] = None, conflict_files=None) -> None:
        super().__init__(message)
        self.operation = operation
        self.conflict_files = list(conflict_files or [])
