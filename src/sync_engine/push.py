"""Push engine: apply local Markdown changes to the remote space.

One push runs these phases in order:

1. Validate every added or modified file. Nothing is written remotely
   unless all of them pass.
2. Check every modified page against its remote version. A conflict under
   the cancel or pull-merge policy stops the push before any remote write.
3. Create placeholder pages for new files, parents first, so links between
   new files resolve to real page IDs.
4. Apply each change in (path, type) order: upload new assets, delete
   unreferenced ones, convert strictly and write the page, then update the
   local frontmatter. After each change the on_applied callback receives
   the commit plan so the caller can commit it.

Remote writes are not compensated on failure. Pages created in phase 3
stay in the space and their IDs are already in the local frontmatter, so a
retried push updates them instead of creating duplicates.
"""

import json
import logging
import mimetypes
import os
import posixpath
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Set

from src.confluence_client.errors import RemoteNotFoundError
from src.content_converter.markdown_to_adf import MarkdownToAdfConverter
from src.file_mapper.frontmatter_handler import FrontmatterHandler
from src.file_mapper.models import LocalDocument, SpaceState
from src.file_mapper.page_index import ASSETS_DIR, build_page_index, is_markdown_path, normalize_rel_path
from src.file_mapper.timestamps import format_rfc3339, utc_now
from src.models.remote import AttachmentUploadInput, PageUpsertInput, RemotePage

from .attachments import page_attachment_paths, remove_empty_parent_dirs
from .conflict_policy import resolve_write_version
from .errors import InvariantViolationError, SyncEngineError, ValidationFailedError
from .hooks import (
    PLACEHOLDER_ATTACHMENT_ID,
    PLACEHOLDER_PAGE_HOST,
    ReverseResolver,
    is_external_destination,
)
from .models import ChangeType, PushChange, PushCommitPlan, PushOptions, PushResult, RemoteService, list_all_pages
from .validation import validate_files

logger = logging.getLogger(__name__)

PLACEHOLDER_BODY = {
    "version": 1,
    "type": "doc",
    "content": [
        {"type": "paragraph", "content": [{"type": "text", "text": "Initial sync..."}]},
    ],
}

_IMAGE_PATTERN = re.compile(r'!\[[^\]]*\]\(([^)]+)\)')
_MEDIA_NODE_TYPES = ("media", "mediaInline")

CommitCallback = Callable[[PushCommitPlan, SpaceState], None]


@dataclass
class _PushContext:
    remote: RemoteService
    options: PushOptions
    space_dir: str
    space_id: str
    state: SpaceState
    page_index: Dict[str, str]
    remote_pages: Dict[str, RemotePage] = field(default_factory=dict)
    created: Dict[str, RemotePage] = field(default_factory=dict)


def normalize_changes(changes: List[PushChange]) -> List[PushChange]:
    """Deduplicate Markdown changes and sort them by (path, type).

    Non-Markdown paths and paths under assets/ are dropped.
    """
    seen = set()
    normalized: List[PushChange] = []
    for change in changes:
        path = normalize_rel_path(change.path)
        change_type = ChangeType(change.type)
        if not is_markdown_path(path) or (path, change_type) in seen:
            continue
        seen.add((path, change_type))
        normalized.append(PushChange(change_type, path))

    order = {ChangeType.ADD: 0, ChangeType.MODIFY: 1, ChangeType.DELETE: 2}
    normalized.sort(key=lambda c: (c.path, order[c.type]))
    return normalized


def resolve_local_title(document: LocalDocument, rel_path: str) -> str:
    """Page title: frontmatter title, else first level-one heading, else file stem."""
    title = document.frontmatter.title.strip()
    if title:
        return title
    for line in document.body.splitlines():
        stripped = line.strip()
        if stripped.startswith("# "):
            heading = stripped[2:].strip().rstrip("#").strip()
            if heading:
                return heading
    return posixpath.splitext(posixpath.basename(rel_path))[0]


def resolve_parent_id(rel_path: str, page_id: str, page_index: Dict[str, str], fallback: str) -> str:
    """Find the parent page from the directory layout.

    Walking up from the file's directory, each directory is checked for an
    index page (``dir/<dir>.md``) and then for a sibling page (``<dir>.md``).
    The first one with a page ID other than page_id wins.

    Example:
        >>> index = {"Guides.md": "1", "Guides/Setup/Setup.md": "2"}
        >>> resolve_parent_id("Guides/Setup/Linux.md", "3", index, "")
        '2'
    """
    directory = posixpath.dirname(normalize_rel_path(rel_path))
    while directory:
        name = posixpath.basename(directory)
        for candidate in (posixpath.join(directory, f"{name}.md"), f"{directory}.md"):
            candidate_id = page_index.get(candidate, "")
            if candidate_id and candidate_id != page_id:
                return candidate_id
        directory = posixpath.dirname(directory)
    return fallback


def referenced_asset_paths(body: str, source_abs_path: str, space_dir: str) -> List[str]:
    """Space-relative paths of local assets referenced by Markdown images.

    External images, references leaving the space, missing files and files
    outside assets/ are ignored.
    """
    space_dir = os.path.abspath(space_dir)
    source_dir = os.path.dirname(os.path.abspath(source_abs_path))
    found: Set[str] = set()
    for match in _IMAGE_PATTERN.finditer(body or ""):
        destination = match.group(1).strip()
        # Drop an optional "title"
        if " " in destination and not destination.startswith("<"):
            destination = destination.split(" ", 1)[0]
        destination = destination.strip("<>")
        if is_external_destination(destination):
            continue
        destination = destination.split("#", 1)[0].split("?", 1)[0]
        if not destination:
            continue

        absolute = os.path.normpath(os.path.join(source_dir, destination))
        rel = os.path.relpath(absolute, space_dir)
        if rel == os.pardir or rel.startswith(os.pardir + os.sep):
            continue
        rel = normalize_rel_path(rel.replace(os.sep, "/"))
        if not rel.startswith(f"{ASSETS_DIR}/") or not os.path.isfile(absolute):
            continue
        found.add(rel)
    return sorted(found)


def ensure_media_collection(adf: Dict[str, Any], page_id: str) -> None:
    """Give media nodes with an ID but no collection the page's collection."""
    collection = f"contentId-{page_id}"

    def _visit(node: Any) -> None:
        if isinstance(node, dict):
            if node.get("type") in _MEDIA_NODE_TYPES:
                attrs = node.get("attrs")
                if isinstance(attrs, dict) and attrs.get("id") and not attrs.get("collection"):
                    attrs["collection"] = collection
            for value in node.values():
                _visit(value)
        elif isinstance(node, list):
            for item in node:
                _visit(item)

    _visit(adf)


def _check_no_placeholders(adf: Dict[str, Any], rel_path: str) -> None:
    payload = json.dumps(adf)
    if PLACEHOLDER_PAGE_HOST in payload or PLACEHOLDER_ATTACHMENT_ID in payload:
        raise InvariantViolationError(f"placeholder reference left in content for {rel_path}")


def push(remote: RemoteService, options: PushOptions,
         on_applied: Optional[CommitCallback] = None) -> PushResult:
    """Run one push.

    Args:
        remote: Remote service (APIWrapper, DryRunRemote or a fake)
        options: Push options
        on_applied: Called after each change with its commit plan and the
            updated state; an exception from it stops the push

    Returns:
        PushResult with the updated state and one commit plan per change

    Raises:
        ValidationFailedError: If any added or modified file is invalid
        PushConflictError: If a page is behind the remote under cancel
        PullMergeRequiredError: If a page is behind the remote under pull-merge
        InvariantViolationError: If a placeholder would reach the remote
        SyncEngineError: On invalid options or a missing remote page
    """
    if not options.space_key.strip():
        raise SyncEngineError("space key is required")
    if not options.space_dir.strip():
        raise SyncEngineError("space directory is required")

    state = SpaceState(
        last_pull_high_watermark=options.state.last_pull_high_watermark,
        page_path_index=dict(options.state.page_path_index),
        attachment_index=dict(options.state.attachment_index),
    )
    changes = normalize_changes(options.changes)
    if not changes:
        logger.info("No changes to push")
        return PushResult(state=state)

    space_dir = os.path.abspath(options.space_dir)
    page_index = build_page_index(space_dir)

    upserts = [c.path for c in changes if c.type is not ChangeType.DELETE]
    issues = validate_files(space_dir, upserts, options.space_key, state, options.domain, page_index)
    if issues:
        raise ValidationFailedError(issues)

    space = remote.get_space(options.space_key)
    ctx = _PushContext(
        remote=remote,
        options=options,
        space_dir=space_dir,
        space_id=space.space_id,
        state=state,
        page_index=page_index,
        remote_pages={p.page_id: p for p in list_all_pages(remote, space.space_id)},
    )
    logger.info(f"Pushing {len(changes)} change(s) to {options.space_key}")

    _check_conflicts(ctx, upserts)
    _create_placeholders(ctx, upserts)

    commits: List[PushCommitPlan] = []
    for change in changes:
        if change.type is ChangeType.DELETE:
            plan = _push_delete(ctx, change.path)
        else:
            plan = _push_upsert(ctx, change.path)
        if plan is None:
            continue
        commits.append(plan)
        if on_applied is not None:
            on_applied(plan, state)

    mode = " (dry run)" if options.dry_run else ""
    logger.info(f"Push to {options.space_key} complete{mode}: {len(commits)} change(s) applied")
    return PushResult(state=state, commits=commits)


def _read(ctx: _PushContext, rel_path: str) -> LocalDocument:
    return FrontmatterHandler.read_document(os.path.join(ctx.space_dir, *rel_path.split("/")))


def _fetch_page(ctx: _PushContext, page_id: str, rel_path: str) -> RemotePage:
    try:
        return ctx.remote.get_page(page_id)
    except RemoteNotFoundError:
        raise SyncEngineError(f"remote page {page_id} for {rel_path} was not found")


def _check_conflicts(ctx: _PushContext, rel_paths: List[str]) -> None:
    for rel_path in rel_paths:
        frontmatter = _read(ctx, rel_path).frontmatter
        if frontmatter.is_new:
            continue
        remote_page = _fetch_page(ctx, frontmatter.page_id, rel_path)
        resolve_write_version(
            rel_path, frontmatter.page_id, frontmatter.version,
            remote_page.version, ctx.options.conflict_policy,
        )


def _create_placeholders(ctx: _PushContext, rel_paths: List[str]) -> None:
    new_paths = [p for p in rel_paths if _read(ctx, p).frontmatter.is_new]
    new_paths.sort(key=lambda p: (p.count("/"), p))

    for rel_path in new_paths:
        document = _read(ctx, rel_path)
        title = resolve_local_title(document, rel_path)
        parent_id = resolve_parent_id(rel_path, "", ctx.page_index, document.frontmatter.parent_page_id)
        created = ctx.remote.create_page(PageUpsertInput(
            space_id=ctx.space_id,
            title=title,
            parent_page_id=parent_id,
            body_adf=PLACEHOLDER_BODY,
        ))
        logger.info(f"Created page {created.page_id} for {rel_path}")

        ctx.created[rel_path] = created
        ctx.page_index[rel_path] = created.page_id
        ctx.state.page_path_index[rel_path] = created.page_id

        # Record the ID at once so a failed push is retried as an update
        frontmatter = document.frontmatter
        frontmatter.page_id = created.page_id
        frontmatter.space_key = ctx.options.space_key
        frontmatter.version = created.version
        if created.last_modified is not None:
            frontmatter.last_modified = format_rfc3339(created.last_modified)
        FrontmatterHandler.write_document(
            os.path.join(ctx.space_dir, *rel_path.split("/")), document
        )


def _push_delete(ctx: _PushContext, rel_path: str) -> Optional[PushCommitPlan]:
    page_id = ctx.state.page_path_index.get(rel_path, "")
    if not page_id:
        logger.info(f"Skipping delete of {rel_path}: no page ID recorded")
        return None

    if page_id in ctx.page_index.values():
        # Renamed locally: the upsert of the new path takes over this entry
        logger.info(f"Page {page_id} moved away from {rel_path}")
        return None

    remote_page = ctx.remote_pages.get(page_id)
    title = remote_page.title if remote_page else posixpath.splitext(posixpath.basename(rel_path))[0]

    try:
        if ctx.options.hard_delete:
            ctx.remote.delete_page(page_id, hard_delete=True)
        else:
            ctx.remote.archive_pages([page_id])
    except RemoteNotFoundError:
        logger.info(f"Page {page_id} for {rel_path} is already gone")

    stale_assets = page_attachment_paths(ctx.state.attachment_index, page_id)
    for asset_path in stale_assets:
        _delete_asset(ctx, asset_path)

    del ctx.state.page_path_index[rel_path]
    ctx.page_index.pop(rel_path, None)
    action = "Deleted" if ctx.options.hard_delete else "Archived"
    logger.info(f"{action} page {page_id} ({rel_path})")

    return PushCommitPlan(
        path=rel_path,
        deleted=True,
        page_id=page_id,
        page_title=title,
        version=remote_page.version if remote_page else 0,
        space_key=ctx.options.space_key,
        url=remote_page.web_url if remote_page else "",
        staged_paths=sorted(set([rel_path] + stale_assets)),
    )


def _push_upsert(ctx: _PushContext, rel_path: str) -> PushCommitPlan:
    absolute = os.path.join(ctx.space_dir, *rel_path.split("/"))
    document = _read(ctx, rel_path)
    frontmatter = document.frontmatter
    space_key = ctx.options.space_key

    if frontmatter.space_key.strip() and frontmatter.space_key.strip().lower() != space_key.lower():
        raise SyncEngineError(
            f"{rel_path} belongs to space {frontmatter.space_key}, not {space_key}"
        )
    page_id = frontmatter.page_id.strip()
    if not page_id:
        raise InvariantViolationError(f"no page ID for {rel_path} after placeholder creation")

    remote_page = _fetch_page(ctx, page_id, rel_path)
    local_version = frontmatter.version
    if rel_path in ctx.created:
        local_version = max(local_version, ctx.created[rel_path].version)
    next_version = resolve_write_version(
        rel_path, page_id, local_version, remote_page.version, ctx.options.conflict_policy,
    )

    title = resolve_local_title(document, rel_path)
    parent_id = resolve_parent_id(rel_path, page_id, ctx.page_index, remote_page.parent_id)

    referenced = referenced_asset_paths(document.body, absolute, ctx.space_dir)
    uploaded = _upload_assets(ctx, page_id, referenced)
    stale = [
        p for p in page_attachment_paths(ctx.state.attachment_index, page_id)
        if p not in referenced
    ]
    for asset_path in stale:
        _delete_asset(ctx, asset_path)

    resolver = ReverseResolver(ctx.space_dir, ctx.page_index, ctx.state.attachment_index, ctx.options.domain)
    adf = MarkdownToAdfConverter(resolver=resolver, strict=True).convert(document.body, absolute).adf
    ensure_media_collection(adf, page_id)
    _check_no_placeholders(adf, rel_path)

    updated = ctx.remote.update_page(page_id, PageUpsertInput(
        space_id=ctx.space_id,
        title=title,
        parent_page_id=parent_id,
        version=next_version,
        body_adf=adf,
    ))
    version = updated.version or next_version
    logger.info(f"Updated page {page_id} ({rel_path}) to v{version}")

    frontmatter.page_id = page_id
    frontmatter.space_key = space_key
    frontmatter.version = version
    frontmatter.last_modified = format_rfc3339(updated.last_modified or utc_now())
    frontmatter.parent_page_id = parent_id
    FrontmatterHandler.write_document(absolute, document)

    moved_from = sorted(
        p for p, pid in ctx.state.page_path_index.items()
        if pid == page_id and p != rel_path
        and not os.path.exists(os.path.join(ctx.space_dir, *p.split("/")))
    )
    for old_path in moved_from:
        del ctx.state.page_path_index[old_path]
        ctx.page_index.pop(old_path, None)
    ctx.state.page_path_index[rel_path] = page_id
    ctx.page_index[rel_path] = page_id

    return PushCommitPlan(
        path=rel_path,
        deleted=False,
        page_id=page_id,
        page_title=title,
        version=version,
        space_key=space_key,
        url=updated.web_url or remote_page.web_url,
        staged_paths=sorted(set([rel_path] + moved_from + uploaded + stale)),
    )


def _upload_assets(ctx: _PushContext, page_id: str, asset_paths: List[str]) -> List[str]:
    uploaded: List[str] = []
    for asset_path in asset_paths:
        if ctx.state.attachment_index.get(asset_path):
            continue
        absolute = os.path.join(ctx.space_dir, *asset_path.split("/"))
        with open(absolute, "rb") as f:
            data = f.read()
        filename = posixpath.basename(asset_path)
        content_type = mimetypes.guess_type(filename)[0] or "application/octet-stream"

        attachment = ctx.remote.upload_attachment(AttachmentUploadInput(
            page_id=page_id,
            filename=filename,
            data=data,
            content_type=content_type,
        ))
        ctx.state.attachment_index[asset_path] = attachment.attachment_id
        uploaded.append(asset_path)
        logger.info(f"Uploaded {asset_path} as attachment {attachment.attachment_id}")
    return uploaded


def _delete_asset(ctx: _PushContext, asset_path: str) -> None:
    attachment_id = ctx.state.attachment_index.pop(asset_path, "")
    if attachment_id:
        try:
            ctx.remote.delete_attachment(attachment_id)
        except RemoteNotFoundError:
            logger.debug(f"Attachment {attachment_id} is already gone")

    absolute = os.path.join(ctx.space_dir, *asset_path.split("/"))
    try:
        os.remove(absolute)
    except FileNotFoundError:
        pass
    remove_empty_parent_dirs(os.path.dirname(absolute), os.path.join(ctx.space_dir, ASSETS_DIR))
    logger.info(f"Removed attachment {attachment_id or '?'} ({asset_path})")
