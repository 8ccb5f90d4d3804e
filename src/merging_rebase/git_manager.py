"""
Git repository management and operations.
"""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import List, Optional, Tuple
from git import Repo, InvalidGitRepositoryError
from git.exc import GitCommandError

from .models import CommitInfo, GitRepositoryError, ResolutionError, bookmark_ref, BOOKMARK_PREFIX


logger = logging.getLogger(__name__)


LOG_FORMAT = "%H%x09%h%x09%P%x09%p%x09%s"


class GitManager:
    """Backend for planning and replaying a merging rebase."""

    def __init__(self, repo_path: Optional[Path] = None) -> None:
        """Initialize Git manager with optional repository path."""
        self.repo_path = (repo_path or Path.cwd()).resolve()
        self._repo: Optional[Repo] = None

    @property
    def repo(self) -> Repo:
        """Get the Git repository instance."""
        if self._repo is None:
            self._repo = self._discover_repository()
        return self._repo

    def _discover_repository(self) -> Repo:
        """Discover the Git repository from current or specified path."""
        search_path = self.repo_path

        logger.debug(f"Discovering repository in: {search_path}")
        # Walk up the directory tree to find a Git repository
        while search_path != search_path.parent:
            try:
                repo = Repo(search_path)
                logger.info(f"Found Git repository at: {search_path}")
                return repo
            except InvalidGitRepositoryError:
                search_path = search_path.parent

        # Try current directory as last resort
        try:
            repo = Repo(self.repo_path)
            return repo
        except InvalidGitRepositoryError as e:
            raise GitRepositoryError(
                f"No Git repository found at {self.repo_path} or any parent directory"
            ) from e

    @property
    def git_dir(self) -> Path:
        return Path(self.repo.git_dir)

    @property
    def working_dir(self) -> Path:
        return Path(self.repo.working_dir)

    # --- Reading the commit graph ---
    def resolve(self, name: str) -> str:
        """Resolve a revision name to a full commit id."""
        try:
            value = self.repo.git.rev_parse("--verify", "--quiet", f"{name}^{{commit}}").strip()
        except GitCommandError as e:
            raise ResolutionError(f"Could not resolve '{name}' to a commit") from e
        if not value:
            raise ResolutionError(f"Could not resolve '{name}' to a commit")
        return value

    def short_id(self, name: str) -> str:
        """Return the abbreviated commit id for a revision name."""
        try:
            return self.repo.git.rev_parse("--short", f"{name}^{{commit}}").strip()
        except GitCommandError as e:
            raise ResolutionError(f"Could not resolve '{name}' to a commit") from e

    def head_id(self) -> str:
        return self.resolve("HEAD")

    def get_current_branch(self) -> Optional[str]:
        """Get the current branch name, or None when HEAD is detached."""
        try:
            if self.repo.head.is_detached:
                return None
            return self.repo.active_branch.name
        except Exception as e:
            logger.error(f"Error getting current branch: {e}")
            raise GitRepositoryError(f"Could not determine current branch: {e}")

    def list_range(self, lower: str, upper: str) -> List[CommitInfo]:
        """List ``lower..upper`` oldest first in topological order, with parents."""
        try:
            output = self.repo.git.log(
                f"--format={LOG_FORMAT}", "--topo-order", "--reverse", f"{lower}..{upper}"
            )
        except GitCommandError as e:
            logger.error(f"Error listing commits {lower}..{upper}: {e}")
            raise GitRepositoryError(f"Failed to list commits {lower}..{upper}: {e}")

        commits: List[CommitInfo] = []
        for line in output.splitlines():
            if not line.strip():
                continue
            parts = line.split("\t", 4)
            if len(parts) < 5:
                parts += [""] * (5 - len(parts))
            full, short, parents, short_parents, subject = parts
            commits.append(
                CommitInfo(
                    id=full,
                    short_id=short,
                    parents=tuple(parents.split()),
                    subject=subject,
                    short_parents=tuple(short_parents.split()),
                )
            )
        logger.debug(f"Listed {len(commits)} commits in {lower}..{upper}")
        return commits

    def list_pickable(self, upstream: str, head: str) -> List[str]:
        """Return non-merge commits of head that have no patch-equivalent in upstream."""
        try:
            output = self.repo.git.rev_list(
                "--no-merges",
                "--cherry-pick",
                "--right-only",
                "--topo-order",
                "--reverse",
                f"{upstream}...{head}",
            )
        except GitCommandError as e:
            logger.error(f"Error listing pickable commits: {e}")
            raise GitRepositoryError(f"Failed to list commits {upstream}...{head}: {e}")
        return [ln.strip() for ln in output.splitlines() if ln.strip()]

    def read_message(self, commit: str) -> str:
        """Return the full commit message (headers stripped)."""
        try:
            raw = self.repo.git.cat_file("commit", commit)
        except GitCommandError as e:
            raise ResolutionError(f"Could not read commit {commit}: {e}") from e
        _, _, message = raw.partition("\n\n")
        return message

    def get_parents(self, commit: str) -> List[str]:
        """Return the full parent ids of a commit, first parent first."""
        try:
            output = self.repo.git.rev_list("--parents", "-n", "1", commit)
        except GitCommandError as e:
            raise ResolutionError(f"Could not read parents of {commit}: {e}") from e
        return output.split()[1:]

    def get_commit_subject(self, commit: str) -> Optional[str]:
        """Return the one-line subject for a commit."""
        try:
            subj = self.repo.commit(commit).summary
            return subj.strip() if subj else None
        except Exception:
            return None

    # --- Bookmarks ---
    def set_bookmark(self, name: str, commit: str = "HEAD") -> None:
        """Record ``commit`` under refs/rewritten/<name>."""
        try:
            self.repo.git.update_ref(bookmark_ref(name), commit)
            logger.debug(f"Bookmarked {name} -> {commit}")
        except GitCommandError as e:
            logger.error(f"Failed to set bookmark {name}: {e}")
            raise GitRepositoryError(f"Failed to set bookmark {name}: {e}")

    def resolve_bookmark(self, name: str) -> Optional[str]:
        """Return the commit a bookmark points at, or None if it does not exist."""
        try:
            value = self.repo.git.rev_parse("--verify", "--quiet", bookmark_ref(name)).strip()
            return value or None
        except GitCommandError:
            return None

    def delete_bookmark(self, name: str) -> None:
        try:
            self.repo.git.update_ref("-d", bookmark_ref(name))
            logger.debug(f"Deleted bookmark {name}")
        except GitCommandError as e:
            logger.error(f"Failed to delete bookmark {name}: {e}")
            raise GitRepositoryError(f"Failed to delete bookmark {name}: {e}")

    def list_bookmarks(self) -> List[str]:
        """List bookmark names currently present in the repository."""
        try:
            output = self.repo.git.for_each_ref("--format=%(refname)", f"{BOOKMARK_PREFIX}/")
        except GitCommandError as e:
            logger.error(f"Error listing bookmarks: {e}")
            return []
        prefix = f"{BOOKMARK_PREFIX}/"
        return [ln.strip()[len(prefix):] for ln in output.splitlines() if ln.strip().startswith(prefix)]

    # --- Moving HEAD ---
    def checkout_detached(self, commit: str) -> None:
        try:
            self.repo.git.checkout("--detach", commit)
            logger.info(f"Detached HEAD at {commit}")
        except GitCommandError as e:
            logger.error(f"Failed to checkout {commit}: {e}")
            raise GitRepositoryError(f"Failed to checkout {commit}: {e}")

    def reset_hard(self, commit: str) -> None:
        try:
            self.repo.git.reset("--hard", commit)
            logger.debug(f"Reset HEAD to {commit}")
        except GitCommandError as e:
            logger.error(f"Failed to reset to {commit}: {e}")
            raise GitRepositoryError(f"Failed to reset to {commit}: {e}")

    def update_branch(self, branch_name: str, commit: str) -> None:
        """Point ``branch_name`` at ``commit`` and check it out."""
        try:
            self.repo.git.checkout("-B", branch_name, commit)
            logger.info(f"Updated branch {branch_name} -> {commit}")
        except GitCommandError as e:
            logger.error(f"Error updating branch {branch_name}: {e}")
            raise GitRepositoryError(f"Failed to update branch {branch_name}: {e}")

    # --- Creating commits ---
    def cherry_pick(self, commit: str) -> Tuple[bool, List[Path]]:
        """
        Apply a commit on top of HEAD.

        Returns:
            Tuple of (success, conflict_files)
        """
        return self._apply("cherry-pick", ["--keep-redundant-commits", commit])

    def apply_without_commit(self, commit: str) -> Tuple[bool, List[Path]]:
        """Apply a commit's changes to the index and work tree only."""
        return self._apply("cherry-pick", ["--no-commit", commit])

    def merge_commits(self, parents: List[str], message: str) -> Tuple[bool, List[Path]]:
        """Merge ``parents`` into HEAD as a new, non-fast-forward merge commit."""
        return self._apply("merge", ["--no-ff", "--no-stat", "--no-edit", "-m", message, *parents])

    def merge_ours(self, commit: str, message: str) -> None:
        """Record ``commit`` as merged without taking any of its changes."""
        try:
            self.repo.git.merge("-s", "ours", "--no-ff", "--no-edit", "-m", message, commit)
            logger.info(f"Recorded {commit} as merged with the 'ours' strategy")
        except GitCommandError as e:
            logger.error(f"Failed to merge {commit} with the 'ours' strategy: {e}")
            raise GitRepositoryError(f"Failed to start merging rebase: {e}")

    def _apply(self, command: str, args: List[str]) -> Tuple[bool, List[Path]]:
        try:
            with self.repo.git.custom_environment(GIT_EDITOR="true"):
                self.repo.git.execute(["git", command, *args])
            return True, []
        except GitCommandError as e:
            conflict_files = self.get_conflict_files()
            if conflict_files:
                logger.warning(f"{command} stopped with conflicts in: {conflict_files}")
                return False, conflict_files
            logger.error(f"{command} failed: {e}")
            raise GitRepositoryError(f"{command} {' '.join(args)} failed: {e}")

    def amend_head(self, message: Optional[str] = None) -> None:
        """Fold the staged changes into HEAD, optionally replacing its message."""
        args = ["--amend", "--allow-empty", "--no-verify"]
        args += ["-m", message] if message is not None else ["--no-edit"]
        try:
            with self.repo.git.custom_environment(GIT_EDITOR="true"):
                self.repo.git.commit(*args)
        except GitCommandError as e:
            logger.error(f"Failed to amend HEAD: {e}")
            raise GitRepositoryError(f"Failed to amend HEAD: {e}")

    def continue_cherry_pick(self) -> None:
        try:
            with self.repo.git.custom_environment(GIT_EDITOR="true"):
                self.repo.git.cherry_pick("--continue")
        except GitCommandError as e:
            logger.error(f"Cherry-pick continue failed: {e}")
            raise GitRepositoryError(f"Cherry-pick continue failed: {e}")

    def commit_pending_merge(self) -> None:
        """Conclude a merge that stopped on conflicts, keeping the prepared message."""
        try:
            with self.repo.git.custom_environment(GIT_EDITOR="true"):
                self.repo.git.commit("--no-edit")
        except GitCommandError as e:
            logger.error(f"Failed to conclude merge: {e}")
            raise GitRepositoryError(f"Failed to conclude merge: {e}")

    def has_pending(self, name: str) -> bool:
        """Check for a pending-operation marker such as CHERRY_PICK_HEAD or MERGE_HEAD."""
        return (self.git_dir / name).exists()

    def clear_pending(self, name: str) -> None:
        marker = self.git_dir / name
        if marker.exists():
            marker.unlink()
            logger.debug(f"Removed {name}")

    def run_shell(self, command: str) -> int:
        """Run a shell command in the working tree and return its exit status."""
        logger.info(f"Executing: {command}")
        result = subprocess.run(command, shell=True, cwd=str(self.working_dir))
        return result.returncode

    # --- State checks ---
    def is_rebase_in_progress(self) -> bool:
        """Check if a rebase is currently in progress."""
        try:
            git_dir = Path(self.repo.git_dir)

            # Check for rebase-related files
            rebase_files = [git_dir / "rebase-merge", git_dir / "rebase-apply"]

            return any(f.exists() for f in rebase_files)
        except Exception as e:
            logger.error(f"Error checking rebase status: {e}")
            return False

    def get_conflict_files(self) -> List[Path]:
        """Get list of files with merge conflicts."""
        try:
            output = self.repo.git.diff("--name-only", "--diff-filter=U")
            return [Path(self.repo.working_dir) / Path(f.strip()) for f in output.split("\n") if f.strip()]
        except Exception as e:
            logger.error(f"Error getting conflict files: {e}")
            return []

    def is_index_clean(self) -> bool:
        """Return True if there are no staged or unstaged changes (untracked ignored)."""
        try:
            # No staged or unstaged changes; ignore untracked files
            if self.repo.is_dirty(index=True, working_tree=True, untracked_files=False):
                return False
            # No unresolved merges
            if self.repo.git.ls_files("-u").strip():
                return False
            return True
        except Exception:
            return False

    def get_dirty_paths(self) -> List[str]:
        """Return list of paths that are staged or unstaged (untracked ignored)."""
        try:
            output = self.repo.git.status("--porcelain")
            dirty: List[str] = []
            for line in output.splitlines():
                if not line.strip():
                    continue
                # First two columns are status codes; path follows
                # Ignore untracked (??)
                if line.startswith("??"):
                    continue
                path = line[3:].strip()
                if path:
                    dirty.append(path)
            return dirty
        except Exception:
            return []
