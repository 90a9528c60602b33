"""Pull reconciliation: bring the local tree in line with the remote space.

Order of operations for one pull:

1. Resolve the space and list every current page (cursor-paginated).
2. Resolve folder ancestors so the planner can build directories.
3. Plan paths, select changed pages and add moved pages.
4. Fetch changed pages and reconcile their attachments.
5. Download attachments, write Markdown, delete stale files.
6. Rebuild the page index and advance the watermark.

Local writes are not rolled back on failure; every step is idempotent, so
re-running the pull converges.
"""

import logging
import os
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from src.confluence_client.errors import APIAccessError, RemoteNotFoundError
from src.content_converter.adf_to_markdown import AdfToMarkdownConverter
from src.file_mapper.errors import FileMapperError
from src.file_mapper.frontmatter_handler import FrontmatterHandler
from src.file_mapper.models import Frontmatter, LocalDocument, SpaceState
from src.file_mapper.timestamps import format_rfc3339, utc_now
from src.models.remote import RemoteFolder, RemotePage

from .attachments import AttachmentReconciler, remove_empty_parent_dirs
from .change_selector import SelectionScope, select_changed_page_ids
from .errors import InvariantViolationError, SyncEngineError
from .hooks import ForwardResolver
from .models import PullDiagnostic, PullOptions, PullResult, RemoteService, list_all_pages
from .path_planner import PathPlanner, deleted_page_ids, keep_recorded_paths, moved_page_ids

logger = logging.getLogger(__name__)


def resolve_folders(remote: RemoteService, pages: List[RemotePage]) -> Tuple[Dict[str, RemoteFolder], List[PullDiagnostic]]:
    """Fetch every folder reachable from the pages' parent chains.

    Unavailable folders are reported as diagnostics; the planner then falls
    back to a flat path for the pages below them.
    """
    folders: Dict[str, RemoteFolder] = {}
    diagnostics: List[PullDiagnostic] = []

    queue = []
    for page in pages:
        if page.parent_type.strip().lower() == "folder" and page.parent_id.strip():
            if page.parent_id not in queue:
                queue.append(page.parent_id.strip())

    visited = set()
    while queue:
        folder_id = queue.pop(0)
        if folder_id in visited:
            continue
        visited.add(folder_id)

        try:
            folder = remote.get_folder(folder_id)
        except (RemoteNotFoundError, APIAccessError) as e:
            logger.warning(f"Folder {folder_id} unavailable: {e}")
            diagnostics.append(PullDiagnostic(
                folder_id,
                "FOLDER_LOOKUP_UNAVAILABLE",
                f"folder {folder_id} unavailable, falling back to page-only hierarchy: {e}",
            ))
            continue

        folders[folder.folder_id] = folder
        parent_id = folder.parent_id.strip()
        if folder.parent_type.strip().lower() == "folder" and parent_id and parent_id not in visited:
            queue.append(parent_id)

    return folders, diagnostics


def pull(remote: RemoteService, options: PullOptions) -> PullResult:
    """Run one pull.

    Args:
        remote: Remote service (APIWrapper or a fake)
        options: Pull options, including the previous SpaceState

    Returns:
        PullResult with the new state and what changed on disk

    Raises:
        SyncEngineError: On invalid options or watermark
        InvariantViolationError: If a planned path is missing for a fetched page
        ConfluenceError: Transport and attachment download failures
        FileMapperError: Local write failures
    """
    if not options.space_key.strip():
        raise SyncEngineError("space key is required")
    if not options.space_dir.strip():
        raise SyncEngineError("space directory is required")

    space_dir = os.path.abspath(options.space_dir)
    previous = options.state
    started_at = options.started_at or utc_now()
    diagnostics: List[PullDiagnostic] = []

    space = remote.get_space(options.space_key)
    pages = list_all_pages(remote, space.space_id)
    logger.info(f"Space {options.space_key} has {len(pages)} page(s)")

    folders, folder_diagnostics = resolve_folders(remote, pages)
    diagnostics.extend(folder_diagnostics)

    page_by_id = {page.page_id: page for page in pages}
    max_version = max((p.version for p in pages), default=0)
    max_modified: Optional[datetime] = max(
        (p.last_modified for p in pages if p.last_modified is not None), default=None
    )

    path_by_id = PathPlanner(pages, folders).plan(previous.page_path_index)

    scope, changed_ids = select_changed_page_ids(remote, options, page_by_id)
    moved = moved_page_ids(previous.page_path_index, path_by_id)
    if moved:
        logger.info(f"{len(moved)} page(s) moved")
    if scope is SelectionScope.TARGET:
        deferred = [page_id for page_id in moved if page_id not in changed_ids]
        pinned = keep_recorded_paths(previous.page_path_index, path_by_id, deferred)
        if pinned is None:
            # A recorded path now belongs to another page, so move everything now
            changed_ids = sorted(set(changed_ids) | set(moved))
        else:
            path_by_id = pinned
            if deferred:
                logger.info(f"{len(deferred)} moved page(s) stay at their recorded path")
    else:
        changed_ids = sorted(set(changed_ids) | set(moved))
    logger.info(f"Fetching {len(changed_ids)} page(s) ({scope.value} scope)")

    fetched: Dict[str, RemotePage] = {}
    for page_id in changed_ids:
        try:
            page = remote.get_page(page_id)
        except RemoteNotFoundError:
            logger.debug(f"Page {page_id} disappeared before fetch")
            continue
        fetched[page_id] = page
        max_version = max(max_version, page.version)
        if page.last_modified is not None and (max_modified is None or page.last_modified > max_modified):
            max_modified = page.last_modified

    reconciler = AttachmentReconciler(space_dir, previous.attachment_index)
    for page_id in deleted_page_ids(previous.page_path_index, page_by_id):
        logger.info(f"Page {page_id} was deleted remotely")
        reconciler.forget_page(page_id)
    for page_id in sorted(fetched):
        reconciler.reconcile_page(page_id, fetched[page_id].body_adf)

    downloaded = _download_attachments(remote, reconciler, options, diagnostics)

    updated: List[str] = []
    for page_id in sorted(fetched):
        page = fetched[page_id]
        rel_path = path_by_id.get(page_id)
        if not rel_path:
            raise InvariantViolationError(f"planned path missing for page {page_id}")
        if _write_page(page, rel_path, space_dir, options, path_by_id, reconciler, previous, diagnostics):
            updated.append(rel_path)

    deleted_markdown = _delete_stale_markdown(previous.page_path_index, path_by_id, space_dir)
    deleted_assets = reconciler.delete_stale()

    page_index = {
        path: page_id
        for page_id, path in path_by_id.items()
        if os.path.isfile(os.path.join(space_dir, *path.split("/")))
    }

    watermark = started_at
    if max_modified is not None and max_modified > watermark:
        watermark = max_modified
    watermark_text = format_rfc3339(watermark)

    # A pull that changed nothing on disk keeps the previous watermark
    unchanged = (
        not updated and not deleted_markdown and not downloaded and not deleted_assets
        and page_index == previous.page_path_index
        and reconciler.index == previous.attachment_index
    )
    if unchanged and previous.last_pull_high_watermark.strip():
        watermark_text = previous.last_pull_high_watermark.strip()

    state = SpaceState(
        last_pull_high_watermark=watermark_text,
        page_path_index=page_index,
        attachment_index=dict(reconciler.index),
    )
    logger.info(
        f"Pull of {options.space_key} complete: {len(updated)} written, "
        f"{len(deleted_markdown)} deleted, {len(downloaded)} asset(s) downloaded"
    )
    return PullResult(
        state=state,
        max_version=max_version,
        diagnostics=diagnostics,
        updated_markdown=updated,
        deleted_markdown=deleted_markdown,
        downloaded_assets=downloaded,
        deleted_assets=deleted_assets,
    )


def _download_attachments(remote: RemoteService, reconciler: AttachmentReconciler,
                          options: PullOptions, diagnostics: List[PullDiagnostic]) -> List[str]:
    downloaded: List[str] = []
    for download in sorted(reconciler.downloads, key=lambda d: d.path):
        try:
            data = remote.download_attachment(download.attachment_id)
        except RemoteNotFoundError as e:
            if not (options.skip_missing_assets or _approve_skip(options, download, e)):
                raise
            _skipped(diagnostics, download, e)
            continue
        except APIAccessError as e:
            if not _approve_skip(options, download, e):
                raise
            _skipped(diagnostics, download, e)
            continue
        reconciler.write(download, data)
        downloaded.append(download.path)
        logger.debug(f"Downloaded attachment {download.attachment_id} to {download.path}")
    return downloaded


def _approve_skip(options: PullOptions, download, error: Exception) -> bool:
    if options.on_download_error is None:
        return False
    return bool(options.on_download_error(download.attachment_id, download.page_id, error))


def _skipped(diagnostics: List[PullDiagnostic], download, error: Exception) -> None:
    message = (
        f"download attachment {download.attachment_id} (page {download.page_id}) "
        f"failed, skipping: {error}"
    )
    logger.warning(message)
    diagnostics.append(PullDiagnostic(download.attachment_id, "ATTACHMENT_DOWNLOAD_SKIPPED", message))


def render_page(page: RemotePage, rel_path: str, space_key: str, path_by_id: Dict[str, str],
                attachment_path_by_id: Dict[str, str]) -> Tuple[LocalDocument, List[PullDiagnostic]]:
    """Render a page the way pull writes it at rel_path.

    Conversion is best-effort, so unresolved links and media come back as
    diagnostics instead of errors. The frontmatter carries no user-defined
    keys.
    """
    resolver = ForwardResolver(rel_path, path_by_id, attachment_path_by_id, space_key)
    converter = AdfToMarkdownConverter(resolver=resolver, strict=False)
    result = converter.convert(page.body_adf, rel_path)
    diagnostics = [PullDiagnostic(rel_path, warning.code, warning.message) for warning in result.warnings]

    frontmatter = Frontmatter(
        title=page.title,
        page_id=page.page_id,
        space_key=space_key,
        version=page.version,
        last_modified=format_rfc3339(page.last_modified) if page.last_modified else "",
        parent_page_id=page.parent_id,
    )
    return LocalDocument(frontmatter, result.markdown), diagnostics


def _write_page(page: RemotePage, rel_path: str, space_dir: str, options: PullOptions,
                path_by_id: Dict[str, str], reconciler: AttachmentReconciler,
                previous: SpaceState, diagnostics: List[PullDiagnostic]) -> bool:
    """Render one page to its planned path; False when the file was already current."""
    document, page_diagnostics = render_page(
        page, rel_path, options.space_key, path_by_id, reconciler.path_by_id
    )
    diagnostics.extend(page_diagnostics)
    document.frontmatter.extra = existing_extra_keys(space_dir, page.page_id, rel_path, previous)
    output = os.path.join(space_dir, *rel_path.split("/"))
    if _read_text(output) == FrontmatterHandler.generate(document):
        logger.debug(f"Page {page.page_id} already current at {rel_path}")
        return False
    FrontmatterHandler.write_document(output, document)
    logger.debug(f"Wrote page {page.page_id} (v{page.version}) to {rel_path}")
    return True


def _read_text(path: str) -> Optional[str]:
    try:
        with open(path, "r", encoding="utf-8", newline="") as f:
            return f.read()
    except (FileNotFoundError, UnicodeDecodeError):
        return None


def existing_extra_keys(space_dir: str, page_id: str, rel_path: str, previous: SpaceState) -> dict:
    # User-defined frontmatter keys survive a re-pull, including across moves
    candidates = [rel_path] + [p for p, pid in sorted(previous.page_path_index.items()) if pid == page_id]
    for candidate in candidates:
        path = os.path.join(space_dir, *candidate.split("/"))
        if not os.path.isfile(path):
            continue
        try:
            existing = FrontmatterHandler.read_frontmatter(path)
        except FileMapperError as e:
            logger.debug(f"Ignoring unreadable frontmatter in {candidate}: {e}")
            continue
        if existing.page_id == page_id:
            return dict(existing.extra)
    return {}


def _delete_stale_markdown(previous_index: Dict[str, str], path_by_id: Dict[str, str],
                           space_dir: str) -> List[str]:
    planned = set(path_by_id.values())
    stale = sorted({
        path for path, page_id in previous_index.items()
        if path_by_id.get(page_id) != path and path not in planned
    })
    for rel_path in stale:
        absolute = os.path.join(space_dir, *rel_path.split("/"))
        try:
            os.remove(absolute)
        except FileNotFoundError:
            pass
        remove_empty_parent_dirs(os.path.dirname(absolute), space_dir, remove_stop=False)
        logger.info(f"Removed {rel_path}")
    return stale
