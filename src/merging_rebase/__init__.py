"""
Merging Rebase - rebase a branch while recreating the merges it contains.

This package plans a replay script for a range of commits, keeping the
topology of merged side branches, folding fixup!/squash! commits into
their targets, and replays the script one operation at a time.
"""

__version__ = "0.1.0"

from .rebase_orchestrator import RebaseOrchestrator
from .models import CommitInfo, Operation, OperationKind, PlanOptions, RebaseScript, SessionState
from .git_manager import GitManager
from .commit_graph import CommitGraph, CommitGraphReader
from .chain_walker import ChainWalker
from .label_planner import LabelPlanner
from .fixup_folder import FixupFolder
from .script_assembler import ScriptAssembler
from .merge_reconciler import MergeReconciler

__all__ = [
    "RebaseOrchestrator",
    "CommitInfo",
    "Operation",
    "OperationKind",
    "PlanOptions",
    "RebaseScript",
    "SessionState",
    "GitManager",
    "CommitGraph",
    "CommitGraphReader",
    "ChainWalker",
    "LabelPlanner",
    "FixupFolder",
    "ScriptAssembler",
    "MergeReconciler",
]
