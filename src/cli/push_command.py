"""Push command orchestration for CLI.

This module provides the PushCommand class that runs the push engine inside
a git transaction:

1. Compute the change set read-only (baseline tag vs working tree).
2. Stash in-scope edits and record them under a snapshot ref.
3. Create a sync branch and worktree from HEAD and apply the stash there.
4. Push, committing each applied change on the sync branch.
5. On success merge the branch, tag it and restore uncommitted edits.
   On failure restore the stash and keep the branch and snapshot ref so
   the partial push can be inspected.
"""

import logging
import os
import shutil
import tempfile
from datetime import datetime
from typing import Callable, List, Optional, Set

from src.cli.config import StateManager
from src.cli.errors import CLIError, PushTransactionError
from src.cli.models import ExitCode, PushSummary
from src.cli.output import OutputHandler
from src.cli.pull_command import PullCommand
from src.cli.sync_refs import (
    baseline_ref,
    push_tag,
    snapshot_ref,
    sync_branch,
    sync_timestamp,
    worktree_path,
)
from src.confluence_client.api_wrapper import APIWrapper
from src.confluence_client.auth import Authenticator
from src.confluence_client.dry_run import DryRunRemote
from src.confluence_client.errors import (
    APIAccessError,
    APIUnreachableError,
    InvalidCredentialsError,
    SyncError,
)
from src.file_mapper.models import SpaceState
from src.file_mapper.timestamps import format_rfc3339, utc_now
from src.git_integration.errors import GitRepositoryError
from src.git_integration.workspace import GitWorkspace
from src.sync_engine.conflict_policy import normalize_policy
from src.sync_engine.errors import (
    PullMergeRequiredError,
    PushConflictError,
    ValidationFailedError,
)
from src.sync_engine.models import (
    ChangeType,
    PushChange,
    PushCommitPlan,
    PushOptions,
    PushResult,
    RemoteService,
)
from src.sync_engine.push import normalize_changes
from src.sync_engine.push import push as run_push

logger = logging.getLogger(__name__)

_STATUS_TO_CHANGE = {
    "A": ChangeType.ADD,
    "M": ChangeType.MODIFY,
    "T": ChangeType.MODIFY,
    "D": ChangeType.DELETE,
}


def format_commit_message(plan: PushCommitPlan) -> str:
    """Commit message for one applied change, with machine-readable trailers."""
    if plan.deleted:
        subject = f'Delete "{plan.page_title}" from Confluence'
    else:
        subject = f'Sync "{plan.page_title}" to Confluence (v{plan.version})'
    return (
        f"{subject}\n\n"
        f"Page ID: {plan.page_id}\n"
        f"URL: {plan.url}\n\n"
        f"Confluence-Page-ID: {plan.page_id}\n"
        f"Confluence-Version: {plan.version}\n"
        f"Confluence-Space-Key: {plan.space_key}\n"
        f"Confluence-URL: {plan.url}\n"
    )


def _in_scope(scope: str, path: str) -> bool:
    return scope in ("", ".") or path == scope or path.startswith(scope + "/")


def repo_path(scope: str, rel_path: str) -> str:
    """Repository-relative path of a space-relative path."""
    if scope in ("", "."):
        return rel_path
    return f"{scope}/{rel_path}"


def collect_changes(git: GitWorkspace, scope: str, baseline: str) -> List[PushChange]:
    """Markdown changes under scope since baseline, untracked files counted as adds."""
    prefix = "" if scope in ("", ".") else scope.rstrip("/") + "/"

    def strip(path: str) -> Optional[str]:
        if not prefix:
            return path
        return path[len(prefix):] if path.startswith(prefix) else None

    changes: List[PushChange] = []
    for status, path in git.diff_name_status(baseline, scope=scope):
        change_type = _STATUS_TO_CHANGE.get(status)
        rel = strip(path)
        if change_type is None or rel is None:
            continue
        changes.append(PushChange(type=change_type, path=rel))

    for path in git.untracked_files(scope):
        rel = strip(path)
        if rel is not None:
            changes.append(PushChange(type=ChangeType.ADD, path=rel))
    return normalize_changes(changes)


class PushCommand:
    """Pushes local changes of one space and records each write in git.

    Example:
        >>> output = OutputHandler(verbosity=1)
        >>> exit_code = PushCommand(output_handler=output).run("docs/TEAM", "TEAM")
    """

    def __init__(
        self,
        output_handler: Optional[OutputHandler] = None,
        remote: Optional[RemoteService] = None,
        authenticator: Optional[Authenticator] = None,
        domain: Optional[str] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize push command with dependencies.

        Args:
            output_handler: OutputHandler for terminal output (optional)
            remote: Remote service (defaults to an APIWrapper)
            authenticator: Authenticator for the default APIWrapper (optional)
            domain: Site domain used for links and dry-run output
                (defaults to the authenticated site)
            clock: Returns the current UTC time (optional)
        """
        self.output_handler = output_handler or OutputHandler()
        self.remote = remote
        self.authenticator = authenticator
        self.domain = domain
        self.clock = clock or utc_now

    def _get_remote(self) -> RemoteService:
        if self.remote is None:
            authenticator = self.authenticator or Authenticator()
            if self.domain is None:
                self.domain = authenticator.get_credentials().domain
            self.remote = APIWrapper(authenticator)
        return self.remote

    def run(
        self,
        space_dir: str,
        space_key: str,
        on_conflict: str = "cancel",
        hard_delete: bool = False,
        dry_run: bool = False,
    ) -> ExitCode:
        """Execute a push and translate failures to exit codes.

        Returns:
            ExitCode indicating success or specific failure type
        """
        try:
            summary = self.push(
                space_dir, space_key,
                on_conflict=on_conflict,
                hard_delete=hard_delete,
                dry_run=dry_run,
            )

        except PullMergeRequiredError as e:
            logger.warning(str(e))
            self.output_handler.warning(str(e))
            return self._pull_for_merge(space_dir, space_key)

        except PushConflictError as e:
            logger.error(f"Push cancelled: {e}")
            self.output_handler.error(f"Push cancelled: {e}")
            self.output_handler.info(
                "Pull first, or re-run with --on-conflict=force to overwrite the remote page"
            )
            return ExitCode.CONFLICTS

        except ValidationFailedError as e:
            logger.error(str(e))
            self.output_handler.error(f"Push aborted, {e}")
            self.output_handler.print_validation_issues(e.issues)
            return ExitCode.GENERAL_ERROR

        except PushTransactionError as e:
            logger.error(f"Push failed: {e}")
            self.output_handler.error(f"Push failed: {e}")
            if e.sync_branch:
                self.output_handler.info(
                    f"Commits made before the failure are on {e.sync_branch}; "
                    f"your pre-push working state is saved at {e.snapshot_ref}"
                )
            return self._exit_code_for(e.cause)

        except InvalidCredentialsError as e:
            logger.error(f"Authentication failed: {e}")
            self.output_handler.error(f"Authentication failed: {e}")
            self.output_handler.info(
                "Check CONFLUENCE_USER and CONFLUENCE_API_TOKEN environment variables"
            )
            return ExitCode.AUTH_ERROR

        except (APIUnreachableError, APIAccessError) as e:
            logger.error(f"API error: {e}")
            self.output_handler.error(f"API error: {e}")
            self.output_handler.info("Check your internet connection and try again")
            return ExitCode.NETWORK_ERROR

        except GitRepositoryError as e:
            logger.error(f"Git error: {e}")
            self.output_handler.error(f"Git error: {e}")
            if e.git_output:
                self.output_handler.info(e.git_output)
            return ExitCode.GENERAL_ERROR

        except SyncError as e:
            logger.error(f"Push failed: {e}")
            self.output_handler.error(f"Push failed: {e}")
            return ExitCode.GENERAL_ERROR

        except Exception as e:
            logger.exception("Unexpected error during push")
            self.output_handler.error(f"Unexpected error: {e}")
            return ExitCode.GENERAL_ERROR

        self.output_handler.print_push_summary(summary)
        return ExitCode.SUCCESS

    @staticmethod
    def _exit_code_for(cause: Optional[BaseException]) -> ExitCode:
        if isinstance(cause, PushConflictError):
            return ExitCode.CONFLICTS
        if isinstance(cause, InvalidCredentialsError):
            return ExitCode.AUTH_ERROR
        if isinstance(cause, (APIUnreachableError, APIAccessError)):
            return ExitCode.NETWORK_ERROR
        return ExitCode.GENERAL_ERROR

    def _pull_for_merge(self, space_dir: str, space_key: str) -> ExitCode:
        self.output_handler.info("Pulling remote changes before the next push")
        pull_command = PullCommand(
            output_handler=self.output_handler,
            remote=self._get_remote(),
            clock=self.clock,
        )
        exit_code = pull_command.run(space_dir, space_key)
        if exit_code == ExitCode.SUCCESS:
            self.output_handler.warning(
                "Remote changes were pulled. Review the result, then run push again."
            )
            return ExitCode.CONFLICTS
        return exit_code

    def push(
        self,
        space_dir: str,
        space_key: str,
        on_conflict: str = "cancel",
        hard_delete: bool = False,
        dry_run: bool = False,
    ) -> PushSummary:
        """Push local changes of a space.

        Args:
            space_dir: Space directory inside a git repository
            space_key: Space key
            on_conflict: Conflict policy name (cancel, pull-merge, force)
            hard_delete: Delete removed pages instead of archiving them
            dry_run: Report remote writes without performing them

        Returns:
            PushSummary of the applied changes

        Raises:
            CLIError: If the space directory or repository is unusable
            PushConflictError: If the push was cancelled by a conflict
            ValidationFailedError: If local files are invalid
            PushTransactionError: If the push failed after writing
        """
        space_dir = os.path.abspath(space_dir)
        if not os.path.isdir(space_dir):
            raise CLIError(f"Space directory not found: {space_dir}")

        git = GitWorkspace.discover(space_dir)
        if git.rev_parse("HEAD") is None:
            raise CLIError("Repository has no commits; run pull first")
        scope = git.scope_of(space_dir)

        baseline = baseline_ref(git, space_key)
        changes = collect_changes(git, scope, baseline)
        logger.info(f"Found {len(changes)} change(s) under {scope} since {baseline}")

        options = PushOptions(
            space_key=space_key,
            space_dir=space_dir,
            state=StateManager.load(space_dir),
            changes=changes,
            conflict_policy=normalize_policy(on_conflict),
            hard_delete=hard_delete,
            dry_run=dry_run,
        )

        if not changes:
            return PushSummary(space_key=space_key, dry_run=dry_run)
        if dry_run:
            return self._preview(options)
        return self._push_transaction(git, scope, options)

    def _preview(self, options: PushOptions) -> PushSummary:
        remote = DryRunRemote(self._get_remote(), self.domain or "", printer=self.output_handler.print)
        options.domain = self.domain or ""

        with tempfile.TemporaryDirectory(prefix="confluence-push-") as tmp:
            preview_dir = os.path.join(tmp, os.path.basename(options.space_dir))
            shutil.copytree(options.space_dir, preview_dir)
            options.space_dir = preview_dir
            result = run_push(remote, options)

        return self._summary(options.space_key, result, dry_run=True)

    def _push_transaction(self, git: GitWorkspace, scope: str, options: PushOptions) -> PushSummary:
        space_key = options.space_key
        started_at = self.clock()
        timestamp = sync_timestamp(started_at)
        ref = snapshot_ref(space_key, timestamp)
        branch = sync_branch(space_key, timestamp)
        worktree = worktree_path(git.repo_path, space_key, timestamp)

        head = git.head()
        stash = git.stash_push(scope, f"Auto-stash {space_key} {format_rfc3339(started_at)}")
        try:
            git.update_ref(ref, stash or head)
            git.create_branch(branch, head)
            git.add_worktree(worktree, branch)
            if stash:
                git.stash_apply(stash, cwd=worktree)
        except GitRepositoryError:
            self._remove_worktree(git, worktree)
            if stash:
                git.stash_pop(stash)
            raise

        worktree_space_dir = worktree if scope in ("", ".") else os.path.join(worktree, *scope.split("/"))
        options.space_dir = worktree_space_dir
        options.state = StateManager.load(worktree_space_dir)
        options.domain = self.domain or ""
        committed: Set[str] = set()

        def commit_change(plan: PushCommitPlan, state: SpaceState) -> None:
            StateManager.save(worktree_space_dir, state)
            candidates = [repo_path(scope, p) for p in plan.staged_paths]
            candidates.append(repo_path(scope, StateManager.STATE_FILE))
            paths = [
                p for p in dict.fromkeys(candidates)
                if os.path.exists(os.path.join(worktree, p)) or git.is_tracked(p, cwd=worktree)
            ]
            git.add(paths, cwd=worktree)
            if not git.has_staged_changes(cwd=worktree):
                return
            sha = git.commit(format_commit_message(plan), cwd=worktree, paths=paths)
            committed.update(paths)
            logger.info(f"Committed {plan.path} as {sha[:12]}")

        try:
            with self.output_handler.spinner(f"Pushing {len(options.changes)} change(s)..."):
                result = run_push(self._get_remote(), options, on_applied=commit_change)
        except KeyboardInterrupt:
            # Branch and snapshot ref stay for recovery
            self._remove_worktree(git, worktree)
            if stash:
                self._pop_stash(git, stash)
            self.output_handler.warning(f"Push interrupted; sync branch {branch} and {ref} were kept")
            raise
        except Exception as e:
            self._remove_worktree(git, worktree)
            if stash:
                self._pop_stash(git, stash)
            if not committed and isinstance(e, (PushConflictError, ValidationFailedError)):
                self._cleanup(git, branch, ref)
                raise
            raise PushTransactionError(f"Push of {space_key} failed: {e}", ref, branch, cause=e) from e

        self._remove_worktree(git, worktree)
        summary = self._summary(space_key, result)
        if committed:
            try:
                git.merge_no_ff(branch, f"Merge Confluence push for {space_key} at {timestamp}")
            except GitRepositoryError as e:
                if stash:
                    self._pop_stash(git, stash)
                raise PushTransactionError(
                    f"Merging the pushed changes of {space_key} failed: {e.git_output or e}",
                    ref, branch, cause=e,
                ) from e
            summary.tag = push_tag(space_key, timestamp)
            try:
                git.create_tag(summary.tag, f"Confluence push sync for {space_key} at {timestamp}")
            except GitRepositoryError as e:
                logger.warning(f"Could not create tag {summary.tag}: {e.git_output}")
                self.output_handler.warning(f"Could not create tag {summary.tag}")
                summary.tag = ""

        if stash:
            self._restore_uncommitted(git, stash, scope, committed)
        self._cleanup(git, branch, ref)
        return summary

    def _restore_uncommitted(self, git: GitWorkspace, stash: str, scope: str, committed: Set[str]) -> None:
        """Bring back stashed in-scope edits and staging that no push commit took over."""
        modified, deleted, untracked = git.stash_paths(stash)
        for path in modified:
            if _in_scope(scope, path) and path not in committed:
                git.restore_path(stash, path)
        for path in deleted:
            absolute = os.path.join(git.repo_path, *path.split("/"))
            if _in_scope(scope, path) and path not in committed and os.path.exists(absolute):
                os.remove(absolute)
        for path in untracked:
            if _in_scope(scope, path) and path not in committed:
                git.restore_path(f"{stash}^3", path)
        for status, path in git.stash_staged_paths(stash):
            if not _in_scope(scope, path) or path in committed:
                continue
            if status != "D":
                git.restore_staged(stash, path)
            elif git.is_tracked(path):
                git.stage_removal(path)
        git.stash_drop(stash)

    def _remove_worktree(self, git: GitWorkspace, worktree: str) -> None:
        try:
            git.remove_worktree(worktree)
        except GitRepositoryError as e:
            logger.warning(f"Could not remove worktree {worktree}: {e.git_output}")

    def _pop_stash(self, git: GitWorkspace, stash: str) -> None:
        try:
            git.stash_pop(stash)
        except GitRepositoryError as e:
            logger.warning(f"Could not restore stash {stash[:12]}: {e.git_output}")
            self.output_handler.warning(
                f"Local changes are still in the stash entry for {stash[:12]}"
            )

    def _cleanup(self, git: GitWorkspace, branch: str, ref: str) -> None:
        for remove, name in ((git.delete_branch, branch), (git.delete_ref, ref)):
            try:
                remove(name)
            except GitRepositoryError as e:
                logger.warning(f"Could not remove {name}: {e.git_output}")

    @staticmethod
    def _summary(space_key: str, result: PushResult, dry_run: bool = False) -> PushSummary:
        return PushSummary(
            space_key=space_key,
            pushed=[plan.path for plan in result.commits if not plan.deleted],
            deleted=[plan.path for plan in result.commits if plan.deleted],
            dry_run=dry_run,
        )
