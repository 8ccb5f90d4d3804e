"""
Basic tests for the merging-rebase tool.
"""

import pytest
from merging_rebase import __version__
from merging_rebase import (
    RebaseOrchestrator, CommitInfo, Operation, OperationKind, PlanOptions, RebaseScript,
    SessionState, GitManager, CommitGraph, CommitGraphReader, ChainWalker, LabelPlanner,
    FixupFolder, ScriptAssembler, MergeReconciler
)


def test_version_format():
    assert isinstance(__version__, str)
    assert __version__ != ""

def test_version_matches_semver():
    import re
    semver_pattern = r"^\d+\.\d+\.\d+$"
    assert re.match(semver_pattern, __version__)

def test_import():
    """Test that the package can be imported."""
    import merging_rebase
    assert merging_rebase is not None


def test_all_imports():
    """Test that all main classes can be imported."""
    for obj in (
        RebaseOrchestrator, CommitInfo, Operation, OperationKind, PlanOptions, RebaseScript,
        SessionState, GitManager, CommitGraph, CommitGraphReader, ChainWalker, LabelPlanner,
        FixupFolder, ScriptAssembler, MergeReconciler,
    ):
        assert obj is not None


def test_plan_options_default_onto():
    """Test that the new base defaults to the upstream."""
    options = PlanOptions(upstream="origin/main")
    rebase_range = options.to_range()
    assert rebase_range.onto == "origin/main"
    assert rebase_range.head == "HEAD"


def test_plan_options_explicit_onto():
    options = PlanOptions(upstream="origin/main", onto="v2.0")
    assert options.to_range().onto == "v2.0"


def test_commit_info_merge():
    """Test merge detection on CommitInfo."""
    commit = CommitInfo(id="m" * 40, short_id="mmmmmmm", parents=("a" * 40, "b" * 40))
    assert commit.is_merge
    assert commit.first_parent == "a" * 40
    # Falls back to a prefix when no abbreviated parents were read
    assert commit.short_parent(1) == "bbbbbbb"


def test_root_commit_has_no_first_parent():
    commit = CommitInfo(id="r" * 40, short_id="rrrrrrr")
    assert not commit.is_merge
    assert commit.first_parent is None
