"""Attachment lifecycle reconciliation.

Attachments live at content-addressed paths:

    assets/<pageId>/<attachmentId>-<filename>

so identical filenames on different pages never collide and a stale file is
recognisable from its path alone.
"""

import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Set

from src.content_converter.adf_models import ATTACHMENT_NODE_TYPES
from src.file_mapper.filesafe_converter import FilesafeConverter
from src.file_mapper.page_index import ASSETS_DIR, normalize_rel_path

logger = logging.getLogger(__name__)

_ID_KEYS = ("attachmentId", "attachmentID", "mediaId", "fileId", "fileID", "id")
_PAGE_KEYS = ("pageId", "pageID", "contentId")
_FILENAME_KEYS = ("filename", "fileName", "name")


@dataclass(frozen=True)
class AttachmentRef:
    """An attachment referenced from a page body."""
    page_id: str
    attachment_id: str
    filename: str

    @property
    def path(self) -> str:
        return build_attachment_path(self)


def _first_string(attrs: Dict[str, Any], keys) -> str:
    for key in keys:
        value = attrs.get(key)
        if value is None:
            continue
        text = str(value).strip()
        if text:
            return text
    return ""


def _walk(node: Any) -> Iterator[Dict[str, Any]]:
    if isinstance(node, dict):
        yield node
        for value in node.values():
            yield from _walk(value)
    elif isinstance(node, list):
        for item in node:
            yield from _walk(item)


def collect_attachment_refs(adf: Optional[Dict[str, Any]], default_page_id: str) -> Dict[str, AttachmentRef]:
    """Collect attachment references from an ADF body, keyed by attachment ID.

    Media nodes without any usable ID are ignored.
    """
    refs: Dict[str, AttachmentRef] = {}
    for node in _walk(adf or {}):
        if node.get("type") not in ATTACHMENT_NODE_TYPES:
            continue
        attrs = node.get("attrs")
        if not isinstance(attrs, dict):
            continue
        attachment_id = _first_string(attrs, _ID_KEYS)
        if not attachment_id:
            continue
        refs[attachment_id] = AttachmentRef(
            page_id=_first_string(attrs, _PAGE_KEYS) or default_page_id,
            attachment_id=attachment_id,
            filename=_first_string(attrs, _FILENAME_KEYS) or "attachment",
        )
    return refs


def build_attachment_path(ref: AttachmentRef) -> str:
    """Space-relative asset path for an attachment.

    Example:
        >>> build_attachment_path(AttachmentRef("123", "att9", "My Diagram.png"))
        'assets/123/att9-My-Diagram.png'
    """
    page_segment = FilesafeConverter.sanitize_segment(ref.page_id or "unknown-page")
    name = os.path.basename(ref.filename.replace("\\", "/")) or "attachment"
    filename = (
        f"{FilesafeConverter.sanitize_segment(ref.attachment_id)}-"
        f"{FilesafeConverter.sanitize_segment(name)}"
    )
    return f"{ASSETS_DIR}/{page_segment}/{filename}"


def attachment_belongs_to_page(rel_path: str, page_id: str) -> bool:
    parts = normalize_rel_path(rel_path).split("/")
    return len(parts) >= 3 and parts[0] == ASSETS_DIR and parts[1] == page_id


def page_attachment_paths(index: Dict[str, str], page_id: str) -> List[str]:
    """Indexed asset paths owned by a page, sorted."""
    return sorted(normalize_rel_path(p) for p in index if attachment_belongs_to_page(p, page_id))


def remove_empty_parent_dirs(start_dir: str, stop_dir: str, remove_stop: bool = True) -> None:
    """Remove empty directories from start_dir upward, stopping at stop_dir.

    stop_dir itself is removed when empty unless remove_stop is False.
    Directories outside stop_dir are never touched.
    """
    start_dir = os.path.abspath(start_dir)
    stop_dir = os.path.abspath(stop_dir)

    while start_dir == stop_dir or start_dir.startswith(stop_dir + os.sep):
        if start_dir == stop_dir and not remove_stop:
            return
        try:
            if os.listdir(start_dir):
                return
            os.rmdir(start_dir)
        except FileNotFoundError:
            pass
        if start_dir == stop_dir:
            return
        start_dir = os.path.dirname(start_dir)


@dataclass
class PendingDownload:
    attachment_id: str
    page_id: str
    path: str


class AttachmentReconciler:
    """Tracks attachment index changes for one pull.

    Args:
        space_dir: Absolute space directory
        attachment_index: Previous asset path -> attachment ID (copied)
    """

    def __init__(self, space_dir: str, attachment_index: Dict[str, str]):
        self.space_dir = space_dir
        self.index: Dict[str, str] = dict(attachment_index)
        self.path_by_id: Dict[str, str] = {}
        self.stale: Set[str] = set()
        self.downloads: List[PendingDownload] = []

        for path, attachment_id in self.index.items():
            self.path_by_id.setdefault(attachment_id, path)

    def forget_page(self, page_id: str) -> List[str]:
        """Drop every indexed attachment of a deleted page."""
        removed = page_attachment_paths(self.index, page_id)
        for path in removed:
            attachment_id = self.index.pop(path)
            if self.path_by_id.get(attachment_id) == path:
                del self.path_by_id[attachment_id]
            self.stale.add(path)
        return removed

    def reconcile_page(self, page_id: str, adf: Optional[Dict[str, Any]]) -> None:
        """Match a page's indexed attachments to the references in its body.

        Unreferenced attachments become stale. New references, references
        whose path changed and indexed files missing on disk are scheduled
        for download.
        """
        refs = collect_attachment_refs(adf, page_id)

        for path in page_attachment_paths(self.index, page_id):
            if self.index[path] not in refs:
                attachment_id = self.index.pop(path)
                if self.path_by_id.get(attachment_id) == path:
                    del self.path_by_id[attachment_id]
                self.stale.add(path)

        for attachment_id in sorted(refs):
            ref = refs[attachment_id]
            path = ref.path

            for existing_path, existing_id in list(self.index.items()):
                if existing_id == attachment_id and existing_path != path:
                    del self.index[existing_path]
                    self.stale.add(existing_path)

            already_present = (
                self.index.get(path) == attachment_id
                and os.path.isfile(self._absolute(path))
            )
            self.index[path] = attachment_id
            self.path_by_id[attachment_id] = path
            self.stale.discard(path)
            if already_present:
                logger.debug(f"Attachment {attachment_id} already at {path}")
                continue
            self.downloads.append(PendingDownload(attachment_id, ref.page_id, path))

    def write(self, download: PendingDownload, data: bytes) -> None:
        absolute = self._absolute(download.path)
        os.makedirs(os.path.dirname(absolute), exist_ok=True)
        with open(absolute, "wb") as f:
            f.write(data)

    def delete_stale(self) -> List[str]:
        """Delete stale asset files no longer in the index.

        Returns:
            Sorted list of space-relative paths scheduled for deletion
        """
        assets_root = os.path.join(self.space_dir, ASSETS_DIR)
        deleted = sorted(p for p in self.stale if p not in self.index)
        for path in deleted:
            absolute = self._absolute(path)
            try:
                os.remove(absolute)
            except FileNotFoundError:
                pass
            remove_empty_parent_dirs(os.path.dirname(absolute), assets_root)
        return deleted

    def _absolute(self, rel_path: str) -> str:
        return os.path.join(self.space_dir, *rel_path.split("/"))
