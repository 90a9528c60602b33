"""Git operations used by the pull and push commands.

GitWorkspace is a thin subprocess wrapper over the caller's repository:
named refs, branches, worktrees, scoped stashes, commits, annotated tags
and scoped name-status diffs. Branches and refs are always looked up by
name, never cached, because other git processes may touch the repository
between calls.
"""

import logging
import os
import subprocess
from typing import List, Optional, Sequence, Tuple

from src.git_integration.errors import GitRepositoryError

logger = logging.getLogger(__name__)

# Git command timeout in seconds
GIT_TIMEOUT = 60


class GitWorkspace:
    """Git repository the synced space directories live in.

    Args:
        repo_path: Repository top-level directory

    Example:
        >>> git = GitWorkspace.discover("docs/TEAM")
        >>> git.scope_of("docs/TEAM")
        'docs/TEAM'
    """

    def __init__(self, repo_path: str):
        self.repo_path = os.path.abspath(repo_path)

    @classmethod
    def discover(cls, path: str) -> "GitWorkspace":
        """Find the repository containing path.

        Raises:
            GitRepositoryError: If path is not inside a git work tree
        """
        start = os.path.abspath(path)
        toplevel = cls(start).git("rev-parse", "--show-toplevel", cwd=start).strip()
        return cls(toplevel)

    def scope_of(self, path: str) -> str:
        """Repository-relative path of a directory ('.' for the top level)."""
        rel = os.path.relpath(os.path.realpath(os.path.abspath(path)), os.path.realpath(self.repo_path))
        if rel == os.pardir or rel.startswith(os.pardir + os.sep):
            raise GitRepositoryError(self.repo_path, f"{path} is outside the repository")
        return rel.replace(os.sep, "/")

    # Command execution

    def run(self, *args: str, cwd: Optional[str] = None,
            stdin: Optional[str] = None) -> subprocess.CompletedProcess:
        """Run a git command without checking its exit status."""
        command = ["git", *args]
        logger.debug(f"git {' '.join(args)}")
        try:
            return subprocess.run(
                command,
                cwd=cwd or self.repo_path,
                input=stdin,
                capture_output=True,
                text=True,
                timeout=GIT_TIMEOUT,
            )
        except subprocess.TimeoutExpired:
            raise GitRepositoryError(
                repo_path=self.repo_path,
                message=f"git {args[0]} timed out after {GIT_TIMEOUT} seconds",
            )
        except FileNotFoundError:
            raise GitRepositoryError(
                repo_path=self.repo_path,
                message="Git command not found. Please install git.",
            )

    def git(self, *args: str, cwd: Optional[str] = None, stdin: Optional[str] = None) -> str:
        """Run a git command and return stdout.

        Raises:
            GitRepositoryError: If the command exits non-zero
        """
        result = self.run(*args, cwd=cwd, stdin=stdin)
        if result.returncode != 0:
            raise GitRepositoryError(
                repo_path=self.repo_path,
                message=f"git {' '.join(args)} failed",
                git_output=(result.stderr or result.stdout).strip(),
            )
        return result.stdout

    # Refs

    def rev_parse(self, ref: str) -> Optional[str]:
        """Commit SHA for ref, or None if it does not resolve."""
        result = self.run("rev-parse", "-q", "--verify", f"{ref}^{{commit}}")
        if result.returncode != 0:
            return None
        return result.stdout.strip() or None

    def head(self) -> str:
        return self.git("rev-parse", "HEAD").strip()

    def current_branch(self) -> str:
        """Short name of the checked-out branch, empty when detached."""
        result = self.run("symbolic-ref", "--short", "-q", "HEAD")
        return result.stdout.strip() if result.returncode == 0 else ""

    def root_commit(self) -> str:
        roots = self.git("rev-list", "--max-parents=0", "HEAD").split()
        if not roots:
            raise GitRepositoryError(self.repo_path, "repository has no commits")
        return roots[-1]

    def update_ref(self, ref: str, sha: str) -> None:
        self.git("update-ref", ref, sha)

    def delete_ref(self, ref: str) -> None:
        self.git("update-ref", "-d", ref)

    def list_tags(self, *patterns: str) -> List[str]:
        output = self.git("tag", "--list", *patterns)
        return [line.strip() for line in output.splitlines() if line.strip()]

    def create_tag(self, name: str, message: str, target: str = "HEAD") -> None:
        self.git("tag", "-a", name, "-m", message, target)

    # Branches and worktrees

    def create_branch(self, name: str, start: str) -> None:
        self.git("branch", name, start)

    def delete_branch(self, name: str) -> None:
        self.git("branch", "-D", name)

    def add_worktree(self, path: str, branch: str) -> None:
        os.makedirs(os.path.dirname(path), exist_ok=True)
        self.git("worktree", "add", path, branch)
        self._exclude(os.path.relpath(os.path.dirname(path), self.repo_path))

    def remove_worktree(self, path: str) -> None:
        if os.path.exists(path):
            self.git("worktree", "remove", "--force", path)
        self.git("worktree", "prune")

    def _exclude(self, rel_dir: str) -> None:
        # Keep worktrees out of `git status` in the main checkout
        if rel_dir.startswith(os.pardir):
            return
        pattern = "/" + rel_dir.replace(os.sep, "/").strip("/") + "/"
        info_dir = os.path.join(self.git_dir(), "info")
        exclude_path = os.path.join(info_dir, "exclude")
        existing = ""
        if os.path.exists(exclude_path):
            with open(exclude_path, "r", encoding="utf-8") as f:
                existing = f.read()
        if pattern in existing.splitlines():
            return
        os.makedirs(info_dir, exist_ok=True)
        with open(exclude_path, "a", encoding="utf-8") as f:
            if existing and not existing.endswith("\n"):
                f.write("\n")
            f.write(pattern + "\n")

    def git_dir(self) -> str:
        git_dir = self.git("rev-parse", "--git-common-dir").strip()
        return git_dir if os.path.isabs(git_dir) else os.path.join(self.repo_path, git_dir)

    # Working tree state

    def has_changes(self, scope: str, cwd: Optional[str] = None) -> bool:
        output = self.git("status", "--porcelain", "--untracked-files=all", "--", scope, cwd=cwd)
        return bool(output.strip())

    def add(self, paths: Sequence[str], cwd: Optional[str] = None) -> None:
        if paths:
            self.git("add", "-A", "--", *paths, cwd=cwd)

    def is_tracked(self, path: str, cwd: Optional[str] = None) -> bool:
        return self.run("ls-files", "--error-unmatch", "--", path, cwd=cwd).returncode == 0

    def has_staged_changes(self, scope: str = "", cwd: Optional[str] = None) -> bool:
        args = ["diff", "--cached", "--quiet"]
        if scope:
            args.extend(["--", scope])
        return self.run(*args, cwd=cwd).returncode != 0

    def commit(self, message: str, cwd: Optional[str] = None, paths: Sequence[str] = ()) -> str:
        """Commit with message (read from stdin) and return the SHA.

        With paths, only those paths are committed; other staged changes stay staged.
        """
        args = ["commit", "-q", "-F", "-"]
        if paths:
            args.extend(["--", *paths])
        self.git(*args, cwd=cwd, stdin=message)
        return self.git("rev-parse", "HEAD", cwd=cwd).strip()

    def merge_no_ff(self, branch: str, message: str) -> None:
        self.git("merge", "--no-ff", "-m", message, branch)

    # Stashes

    def stash_push(self, scope: str, message: str) -> Optional[str]:
        """Stash in-scope changes, untracked files included.

        Returns:
            The stash commit SHA, or None when there was nothing to stash
        """
        if not self.has_changes(scope):
            return None
        before = self.rev_parse("refs/stash")
        self.git("stash", "push", "--include-untracked", "-m", message, "--", scope)
        after = self.rev_parse("refs/stash")
        if after is None or after == before:
            return None
        logger.debug(f"Stashed changes under {scope} as {after[:12]}")
        return after

    def stash_apply(self, stash_sha: str, cwd: Optional[str] = None) -> None:
        self.git("stash", "apply", stash_sha, cwd=cwd)

    def stash_pop(self, stash_sha: str) -> None:
        """Pop a stash entry by commit SHA, restoring the index too."""
        self.git("stash", "pop", "--index", self._stash_entry(stash_sha))

    def stash_drop(self, stash_sha: str) -> None:
        self.git("stash", "drop", self._stash_entry(stash_sha))

    def _stash_entry(self, stash_sha: str) -> str:
        output = self.git("stash", "list", "--format=%H")
        for index, sha in enumerate(output.split()):
            if sha == stash_sha:
                return f"stash@{{{index}}}"
        raise GitRepositoryError(self.repo_path, f"stash {stash_sha[:12]} not found")

    def stash_paths(self, stash_sha: str) -> Tuple[List[str], List[str], List[str]]:
        """Paths recorded in a stash commit.

        Returns:
            (modified or added tracked paths, deleted tracked paths, untracked paths)
        """
        modified: List[str] = []
        deleted: List[str] = []
        for status, path in self.diff_name_status(f"{stash_sha}^1", stash_sha):
            (deleted if status == "D" else modified).append(path)

        untracked: List[str] = []
        if self.rev_parse(f"{stash_sha}^3"):
            output = self.git("ls-tree", "-r", "-z", "--name-only", f"{stash_sha}^3")
            untracked = [p for p in output.split("\0") if p]
        return modified, deleted, untracked

    def restore_path(self, source: str, path: str) -> None:
        """Write path from commit source into the working tree only."""
        self.git("restore", f"--source={source}", "--worktree", "--", path)

    def diff_no_index(self, left: str, right: str, cwd: Optional[str] = None) -> str:
        """Unified diff of two paths that need not be tracked.

        Returns:
            The diff text, empty when the paths have the same content

        Raises:
            GitRepositoryError: If git fails instead of reporting differences
        """
        args = ("diff", "--no-index", "--no-color", "--", left, right)
        result = self.run(*args, cwd=cwd)
        # Exit status 1 only means the paths differ
        if result.returncode not in (0, 1):
            raise GitRepositoryError(
                repo_path=self.repo_path,
                message=f"git {' '.join(args)} failed",
                git_output=(result.stderr or result.stdout).strip(),
            )
        return result.stdout

    def stash_staged_paths(self, stash_sha: str) -> List[Tuple[str, str]]:
        """(status letter, path) pairs that were staged when the stash was taken."""
        return self.diff_name_status(f"{stash_sha}^1", f"{stash_sha}^2")

    def restore_staged(self, stash_sha: str, path: str) -> None:
        """Set the index entry of path to the one recorded in a stash."""
        self.git("restore", f"--source={stash_sha}^2", "--staged", "--", path)

    def stage_removal(self, path: str) -> None:
        self.git("rm", "--cached", "--quiet", "--", path)

    # Diffs

    def diff_name_status(self, base: str, target: Optional[str] = None, scope: str = "",
                         cwd: Optional[str] = None) -> List[Tuple[str, str]]:
        """Name-status diff as (status letter, path) pairs.

        Compares base with target, or with the working tree when target is
        None. Renames and copies come back as a delete of the old path (for
        renames) plus an add of the new one.
        """
        args = ["diff", "--name-status", "-z", base]
        if target:
            args.append(target)
        if scope:
            args.extend(["--", scope])
        tokens = self.git(*args, cwd=cwd).split("\0")

        entries: List[Tuple[str, str]] = []
        i = 0
        while i < len(tokens):
            status = tokens[i].strip()
            if not status:
                i += 1
                continue
            letter = status[0]
            if letter in ("R", "C"):
                old_path, new_path = tokens[i + 1], tokens[i + 2]
                if letter == "R":
                    entries.append(("D", old_path))
                entries.append(("A", new_path))
                i += 3
                continue
            entries.append((letter, tokens[i + 1]))
            i += 2
        return entries

    def untracked_files(self, scope: str, cwd: Optional[str] = None) -> List[str]:
        output = self.git("ls-files", "--others", "--exclude-standard", "-z", "--", scope, cwd=cwd)
        return [p for p in output.split("\0") if p]
