"""Pull command orchestration for CLI.

This module provides the PullCommand class that wraps the pull reconciler
in the git workflow: stash in-scope local edits, pull, save state, commit
and tag the result, then restore the stashed edits on top.
"""

import logging
import os
from datetime import datetime
from typing import Callable, Optional

from src.cli.config import StateManager
from src.cli.errors import CLIError
from src.cli.models import ExitCode, PullSummary
from src.cli.output import OutputHandler
from src.cli.sync_refs import pull_tag, sync_timestamp
from src.confluence_client.api_wrapper import APIWrapper
from src.confluence_client.auth import Authenticator
from src.confluence_client.errors import (
    APIAccessError,
    APIUnreachableError,
    InvalidCredentialsError,
    SyncError,
)
from src.file_mapper.timestamps import format_rfc3339, utc_now
from src.git_integration.errors import GitRepositoryError
from src.git_integration.workspace import GitWorkspace
from src.sync_engine.models import PullOptions, RemoteService
from src.sync_engine.pull import pull as run_pull

logger = logging.getLogger(__name__)


class PullCommand:
    """Pulls one space into its directory and records the result in git.

    Example:
        >>> output = OutputHandler(verbosity=1)
        >>> exit_code = PullCommand(output_handler=output).run("docs/TEAM", "TEAM")
    """

    def __init__(
        self,
        output_handler: Optional[OutputHandler] = None,
        remote: Optional[RemoteService] = None,
        authenticator: Optional[Authenticator] = None,
        clock: Optional[Callable[[], datetime]] = None,
        on_download_error: Optional[Callable[[str, str, Exception], bool]] = None,
    ):
        """Initialize pull command with dependencies.

        Args:
            output_handler: OutputHandler for terminal output (optional)
            remote: Remote service (defaults to an APIWrapper)
            authenticator: Authenticator for the default APIWrapper (optional)
            clock: Returns the current UTC time (optional)
            on_download_error: Decides whether a failed attachment download
                may be skipped (optional)
        """
        self.output_handler = output_handler or OutputHandler()
        self.remote = remote
        self.authenticator = authenticator
        self.clock = clock or utc_now
        self.on_download_error = on_download_error

    def _get_remote(self) -> RemoteService:
        if self.remote is None:
            self.remote = APIWrapper(self.authenticator or Authenticator())
        return self.remote

    def run(
        self,
        space_dir: str,
        space_key: str,
        target_page_id: str = "",
        force: bool = False,
        skip_missing_assets: bool = False,
        discard_local: bool = False,
    ) -> ExitCode:
        """Execute a pull and translate failures to exit codes.

        Returns:
            ExitCode indicating success or specific failure type
        """
        try:
            summary = self.pull(
                space_dir, space_key,
                target_page_id=target_page_id,
                force=force,
                skip_missing_assets=skip_missing_assets,
                discard_local=discard_local,
            )

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
            logger.error(f"Pull failed: {e}")
            self.output_handler.error(f"Pull failed: {e}")
            return ExitCode.GENERAL_ERROR

        except Exception as e:
            logger.exception("Unexpected error during pull")
            self.output_handler.error(f"Unexpected error: {e}")
            return ExitCode.GENERAL_ERROR

        self.output_handler.print_pull_summary(summary)
        return ExitCode.SUCCESS

    def pull(
        self,
        space_dir: str,
        space_key: str,
        target_page_id: str = "",
        force: bool = False,
        skip_missing_assets: bool = False,
        discard_local: bool = False,
    ) -> PullSummary:
        """Pull a space, commit the changes and tag the commit.

        Args:
            space_dir: Space directory (created when missing)
            space_key: Space key
            target_page_id: Only pull this page
            force: Pull every page regardless of the watermark
            skip_missing_assets: Skip attachments missing on the remote
            discard_local: Drop stashed local edits instead of restoring them

        Returns:
            PullSummary (commit is None when nothing changed)

        Raises:
            CLIError: On invalid arguments
            GitRepositoryError: On git failures
            SyncError: On remote, state or local file failures
        """
        if force and target_page_id.strip():
            raise CLIError("--force is only supported for whole-space pulls")

        space_dir = os.path.abspath(space_dir)
        existed = os.path.isdir(space_dir)
        os.makedirs(space_dir, exist_ok=True)

        git = GitWorkspace.discover(space_dir)
        scope = git.scope_of(space_dir)
        started_at = self.clock()
        timestamp = sync_timestamp(started_at)
        state = StateManager.load(space_dir)

        stash = None
        if existed and git.rev_parse("HEAD"):
            stash = git.stash_push(scope, f"Auto-stash {space_key} {format_rfc3339(started_at)}")
            if stash:
                logger.info(f"Stashed local changes under {scope} as {stash[:12]}")

        try:
            result = run_pull(self._get_remote(), PullOptions(
                space_key=space_key,
                space_dir=space_dir,
                state=state,
                target_page_id=target_page_id,
                force_full=force,
                skip_missing_assets=skip_missing_assets,
                on_download_error=self.on_download_error,
                started_at=started_at,
            ))
            StateManager.save(space_dir, result.state)
            self.output_handler.print_diagnostics(result.diagnostics)

            summary = PullSummary(
                space_key=space_key,
                updated=result.updated_markdown,
                deleted=result.deleted_markdown,
                downloaded_assets=result.downloaded_assets,
                deleted_assets=result.deleted_assets,
            )

            git.add([scope])
            if not git.has_staged_changes(scope):
                logger.info(f"Pull of {space_key} produced no changes")
                return summary

            summary.commit = git.commit(
                f"Sync from Confluence: [{space_key}] (v{result.max_version})", paths=[scope]
            )
            summary.tag = pull_tag(space_key, timestamp)
            git.create_tag(summary.tag, f"Confluence pull sync for {space_key} at {timestamp}")
            logger.info(f"Committed pull as {summary.commit[:12]}, tagged {summary.tag}")
            return summary

        finally:
            if stash:
                self._restore_local(git, stash, discard_local)

    def _restore_local(self, git: GitWorkspace, stash: str, discard_local: bool) -> None:
        if discard_local:
            git.stash_drop(stash)
            self.output_handler.warning(f"Discarded local changes (dropped stash {stash[:12]})")
            return
        try:
            git.stash_pop(stash)
        except GitRepositoryError as e:
            # Conflict markers are left in place for the user to resolve
            logger.warning(f"Restoring local changes had conflicts: {e.git_output}")
            self.output_handler.warning(
                "Local changes conflict with pulled content. Resolve the conflicts, "
                f"then drop the stash entry for {stash[:12]}."
            )
