"""Identifier resolution between remote IDs and local relative paths.

ForwardResolver is used while rendering remote content for one local file:
page and attachment IDs become paths relative to that file. ReverseResolver
is used while building remote content from a local file: relative paths
become page URLs and attachment IDs.

A page that exists locally but has never been pushed resolves to a
placeholder URL, and a new asset resolves to a placeholder attachment ID.
Both pass validation; push must replace them before writing.
"""

import logging
import os
import posixpath
from typing import Dict, Optional
from urllib.parse import quote

from src.content_converter.resolution import LinkTarget, MediaTarget, ResolutionResult
from src.file_mapper.page_index import normalize_rel_path

logger = logging.getLogger(__name__)

PLACEHOLDER_PAGE_HOST = "placeholder.invalid"
PLACEHOLDER_PAGE_PREFIX = f"https://{PLACEHOLDER_PAGE_HOST}/page/"
PLACEHOLDER_ATTACHMENT_ID = "new-attachment-placeholder"

_EXTERNAL_PREFIXES = ("http://", "https://", "mailto:", "tel:", "data:", "//")


def is_external_destination(destination: str) -> bool:
    """True for absolute URLs, anchors and empty destinations."""
    lower = destination.strip().lower()
    if not lower or lower.startswith("#"):
        return True
    return lower.startswith(_EXTERNAL_PREFIXES)


def relative_link(source_rel_path: str, target_rel_path: str) -> str:
    """Path of target relative to the directory of source (both space-relative).

    Example:
        >>> relative_link("guides/setup.md", "reference/api.md")
        '../reference/api.md'
    """
    source_dir = posixpath.dirname(normalize_rel_path(source_rel_path)) or "."
    return posixpath.relpath(normalize_rel_path(target_rel_path), source_dir)


def split_anchor(destination: str):
    if "#" in destination:
        path, anchor = destination.split("#", 1)
        return path.strip(), anchor
    return destination.strip(), ""


class ForwardResolver:
    """Resolves remote page links and media for one generated file.

    Args:
        source_path: Space-relative path of the file being written
        page_path_by_id: Page ID -> planned space-relative path
        attachment_path_by_id: Attachment ID -> space-relative asset path
        space_key: Key of the space being pulled
    """

    def __init__(self, source_path: str, page_path_by_id: Dict[str, str],
                 attachment_path_by_id: Dict[str, str], space_key: str):
        self.source_path = normalize_rel_path(source_path)
        self.page_path_by_id = page_path_by_id
        self.attachment_path_by_id = attachment_path_by_id
        self.space_key = space_key

    def resolve_link(self, target: LinkTarget) -> ResolutionResult:
        page_id = target.page_id.strip()
        if not page_id:
            return ResolutionResult.unhandled()

        target_path = self.page_path_by_id.get(page_id)
        if target_path:
            href = relative_link(self.source_path, target_path)
            if target.anchor:
                href += f"#{target.anchor}"
            return ResolutionResult.handled(href)

        # Links into other spaces stay absolute
        if target.space_key and target.space_key.lower() != self.space_key.lower():
            return ResolutionResult.unhandled()
        return ResolutionResult.unresolved(f"page {page_id} is not part of space {self.space_key}")

    def resolve_media(self, target: MediaTarget) -> ResolutionResult:
        media_id = target.attachment_id or target.node_id
        if not media_id:
            return ResolutionResult.unhandled()

        asset_path = self.attachment_path_by_id.get(media_id)
        if not asset_path:
            return ResolutionResult.unresolved(f"attachment {media_id} has no local asset")

        rel = relative_link(self.source_path, asset_path)
        return ResolutionResult.handled(f"![{target.alt}]({rel})")


class ReverseResolver:
    """Resolves local relative links and images to remote identities.

    Args:
        space_dir: Absolute path of the space directory
        page_index: Space-relative Markdown path -> page ID
        attachment_index: Space-relative asset path -> attachment ID
        domain: Site domain (e.g. https://example.atlassian.net)
    """

    def __init__(self, space_dir: str, page_index: Dict[str, str],
                 attachment_index: Dict[str, str], domain: str = ""):
        self.space_dir = os.path.abspath(space_dir)
        self.page_index = page_index
        self.attachment_index = attachment_index
        self.domain = domain.rstrip("/")

    def _space_relative(self, destination: str, source_path: str) -> Optional[str]:
        """Resolve a destination against the source file; None if outside the space."""
        absolute = os.path.normpath(
            os.path.join(os.path.dirname(os.path.abspath(source_path)), destination)
        )
        rel = os.path.relpath(absolute, self.space_dir)
        if rel == os.pardir or rel.startswith(os.pardir + os.sep):
            return None
        return normalize_rel_path(rel.replace(os.sep, "/"))

    def resolve_link(self, destination: str, source_path: str) -> ResolutionResult:
        if is_external_destination(destination):
            return ResolutionResult.unhandled()

        path, anchor = split_anchor(destination)
        if not path:
            return ResolutionResult.unhandled()

        rel = self._space_relative(path, source_path)
        if rel is None:
            return ResolutionResult.unresolved(f"{destination} points outside the space directory")

        page_id = self.page_index.get(rel)
        if page_id:
            href = f"{self.domain}/wiki/pages/viewpage.action?pageId={page_id}"
            if anchor.strip():
                href += f"#{anchor}"
            return ResolutionResult.handled(href)

        if os.path.isfile(os.path.join(self.space_dir, *rel.split("/"))):
            return ResolutionResult.handled(PLACEHOLDER_PAGE_PREFIX + quote(rel))

        return ResolutionResult.unresolved(f"{rel} does not exist")

    def resolve_media(self, destination: str, alt: str, source_path: str) -> ResolutionResult:
        if is_external_destination(destination):
            return ResolutionResult.unhandled()

        path = destination.split("#", 1)[0].split("?", 1)[0].strip()
        rel = self._space_relative(path, source_path) if path else None
        if rel is None:
            return ResolutionResult.unresolved(f"{destination} points outside the space directory")

        if not os.path.isfile(os.path.join(self.space_dir, *rel.split("/"))):
            return ResolutionResult.unresolved(f"asset {rel} not found")

        attachment_id = self.attachment_index.get(rel) or PLACEHOLDER_ATTACHMENT_ID
        if attachment_id == PLACEHOLDER_ATTACHMENT_ID:
            logger.debug(f"Asset {rel} has no attachment ID yet")
        return ResolutionResult.handled(media_id=attachment_id, media_type="image")
