"""Diff command: compare local Markdown with the current remote space.

Remote pages are rendered the way pull would write them into a temporary
snapshot, and the snapshot is compared with a copy of the local Markdown
files using git diff --no-index. Neither the space directory, its state
file nor the repository is modified.
"""

import logging
import os
import shutil
import tempfile
from typing import Dict, List, Optional

from src.cli.config import StateManager
from src.cli.errors import CLIError
from src.cli.models import DiffSummary, ExitCode
from src.cli.output import OutputHandler
from src.confluence_client.api_wrapper import APIWrapper
from src.confluence_client.auth import Authenticator
from src.confluence_client.errors import (
    APIAccessError,
    APIUnreachableError,
    InvalidCredentialsError,
    RemoteNotFoundError,
    SyncError,
)
from src.file_mapper.frontmatter_handler import FrontmatterHandler
from src.file_mapper.page_index import iter_markdown_files
from src.git_integration.workspace import GitWorkspace
from src.sync_engine.errors import InvariantViolationError
from src.sync_engine.models import PullDiagnostic, RemoteService, list_all_pages
from src.sync_engine.path_planner import PathPlanner
from src.sync_engine.pull import existing_extra_keys, render_page, resolve_folders

logger = logging.getLogger(__name__)


class DiffCommand:
    """Shows how a space directory differs from its remote space.

    Example:
        >>> output = OutputHandler(verbosity=1)
        >>> exit_code = DiffCommand(output_handler=output).run("docs/TEAM", "TEAM")
    """

    def __init__(
        self,
        output_handler: Optional[OutputHandler] = None,
        remote: Optional[RemoteService] = None,
        authenticator: Optional[Authenticator] = None,
    ):
        self.output_handler = output_handler or OutputHandler()
        self.remote = remote
        self.authenticator = authenticator

    def _get_remote(self) -> RemoteService:
        if self.remote is None:
            self.remote = APIWrapper(self.authenticator or Authenticator())
        return self.remote

    def run(self, space_dir: str, space_key: str, page_id: str = "") -> ExitCode:
        """Print the diff and translate failures to exit codes.

        Differences alone are not a failure, so a successful diff exits 0
        whether or not anything changed.
        """
        try:
            summary = self.diff(space_dir, space_key, page_id=page_id)

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
            return ExitCode.NETWORK_ERROR

        except SyncError as e:
            logger.error(f"Diff failed: {e}")
            self.output_handler.error(f"Diff failed: {e}")
            return ExitCode.GENERAL_ERROR

        except Exception as e:
            logger.exception("Unexpected error during diff")
            self.output_handler.error(f"Unexpected error: {e}")
            return ExitCode.GENERAL_ERROR

        self.output_handler.print_diff(summary)
        return ExitCode.SUCCESS

    def diff(self, space_dir: str, space_key: str, page_id: str = "") -> DiffSummary:
        """Render the remote space and diff it against the local files.

        Args:
            space_dir: Space directory inside a git repository
            space_key: Space key
            page_id: Only compare this page

        Returns:
            DiffSummary with the diff text (local on the left, remote on the
            right) and the rendering diagnostics

        Raises:
            CLIError: If the space directory or page is unknown
            GitRepositoryError: If git cannot produce the diff
            ConfluenceError: On remote failures
        """
        space_dir = os.path.abspath(space_dir)
        if not os.path.isdir(space_dir):
            raise CLIError(f"Space directory not found: {space_dir}")

        git = GitWorkspace.discover(space_dir)
        state = StateManager.load(space_dir)
        remote = self._get_remote()

        space = remote.get_space(space_key)
        pages = list_all_pages(remote, space.space_id)
        folders, diagnostics = resolve_folders(remote, pages)
        path_by_id = PathPlanner(pages, folders).plan(state.page_path_index)

        attachment_path_by_id: Dict[str, str] = {}
        for path, attachment_id in sorted(state.attachment_index.items()):
            attachment_path_by_id.setdefault(attachment_id, path)

        page_id = page_id.strip()
        if page_id:
            local_paths = self._page_paths(page_id, path_by_id, state.page_path_index)
            if not local_paths:
                raise CLIError(f"Page {page_id} is neither in space {space_key} nor in {space_dir}")
            page_ids = [page_id]
        else:
            local_paths = list(iter_markdown_files(space_dir))
            page_ids = sorted(path_by_id)
        logger.info(f"Comparing {len(page_ids)} remote page(s) with {len(local_paths)} local file(s)")

        with tempfile.TemporaryDirectory(prefix="confluence-diff-") as tmp:
            local_dir = os.path.join(tmp, "local")
            remote_dir = os.path.join(tmp, "remote")
            os.makedirs(local_dir)
            os.makedirs(remote_dir)

            for rel_path in local_paths:
                source = os.path.join(space_dir, *rel_path.split("/"))
                if os.path.isfile(source):
                    target = os.path.join(local_dir, *rel_path.split("/"))
                    os.makedirs(os.path.dirname(target), exist_ok=True)
                    shutil.copyfile(source, target)

            for current_id in page_ids:
                try:
                    page = remote.get_page(current_id)
                except RemoteNotFoundError:
                    if page_id:
                        diagnostics.append(PullDiagnostic(
                            local_paths[0], "MISSING_REMOTE_PAGE", f"remote page {current_id} not found",
                        ))
                    logger.debug(f"Page {current_id} disappeared before fetch")
                    continue

                rel_path = path_by_id.get(current_id)
                if not rel_path:
                    raise InvariantViolationError(f"planned path missing for page {current_id}")
                document, page_diagnostics = render_page(
                    page, rel_path, space_key, path_by_id, attachment_path_by_id
                )
                diagnostics.extend(page_diagnostics)
                document.frontmatter.extra = existing_extra_keys(space_dir, current_id, rel_path, state)
                FrontmatterHandler.write_document(os.path.join(remote_dir, *rel_path.split("/")), document)

            output = git.diff_no_index("local", "remote", cwd=tmp)

        return DiffSummary(space_key=space_key, diff=output, diagnostics=diagnostics)

    @staticmethod
    def _page_paths(page_id: str, path_by_id: Dict[str, str], page_path_index: Dict[str, str]) -> List[str]:
        """Planned and recorded paths of one page, planned path first."""
        paths = [path_by_id[page_id]] if page_id in path_by_id else []
        for path, indexed_id in sorted(page_path_index.items()):
            if indexed_id == page_id and path not in paths:
                paths.append(path)
        return paths
