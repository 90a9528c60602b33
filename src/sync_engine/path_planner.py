"""Deterministic assignment of local Markdown paths to remote pages.

Planning rules:

- A previously recorded path is kept while the page exists and would still
  live in the same parent directory.
- Other pages get ancestor directory segments plus a sanitized title.
  Folder ancestors always contribute a segment. Page ancestors contribute
  one unless they are the root of the tree. Below the top level a page
  with children moves into its own directory:

      Guides.md
      Guides/Setup/Setup.md
      Guides/Setup/Linux.md

- An ancestor chain that cannot be walked (missing or cyclic parent) falls
  back to a flat top-level path.
- Collisions get "-2", "-3", ... before the extension, assigned in
  (candidate path, page ID) order.
"""

import logging
import posixpath
from typing import Dict, Iterable, List, Optional, Set, Tuple

from src.file_mapper.filesafe_converter import FilesafeConverter
from src.file_mapper.page_index import normalize_rel_path
from src.models.remote import RemoteFolder, RemotePage

logger = logging.getLogger(__name__)

PARENT_PAGE = "page"
PARENT_FOLDER = "folder"


def _parent_type(value: str) -> str:
    value = (value or "").strip().lower()
    return value or PARENT_PAGE


class PathPlanner:
    """Plans page ID -> space-relative Markdown path for a remote tree.

    Args:
        pages: Current remote pages (the full listing)
        folders: Known folders by ID
    """

    def __init__(self, pages: Iterable[RemotePage], folders: Optional[Dict[str, RemoteFolder]] = None):
        self.page_by_id: Dict[str, RemotePage] = {p.page_id: p for p in pages}
        self.folder_by_id: Dict[str, RemoteFolder] = dict(folders or {})
        self.has_children: Set[str] = set()
        for page in self.page_by_id.values():
            parent_id = page.parent_id.strip()
            if parent_id and _parent_type(page.parent_type) == PARENT_PAGE:
                self.has_children.add(parent_id)
        for folder in self.folder_by_id.values():
            parent_id = folder.parent_id.strip()
            if parent_id and _parent_type(folder.parent_type) == PARENT_PAGE:
                self.has_children.add(parent_id)

    def plan(self, previous_index: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        """Plan paths for every page.

        Args:
            previous_index: Previously recorded path -> page ID

        Returns:
            Page ID -> space-relative path, a bijection
        """
        previous_path_by_id: Dict[str, str] = {}
        for path, page_id in sorted((previous_index or {}).items()):
            path = normalize_rel_path(path)
            if page_id in self.page_by_id and path and page_id not in previous_path_by_id:
                previous_path_by_id[page_id] = path

        candidates: List[Tuple[str, str]] = []
        for page_id in sorted(self.page_by_id):
            candidate = self.candidate_path(self.page_by_id[page_id])
            previous = previous_path_by_id.get(page_id)
            if previous and posixpath.dirname(previous) == posixpath.dirname(candidate):
                candidate = previous
            candidates.append((candidate, page_id))

        used: Set[str] = set()
        path_by_id: Dict[str, str] = {}
        for candidate, page_id in sorted(candidates):
            path = _unique_path(candidate or "untitled.md", used)
            used.add(path.lower())
            path_by_id[page_id] = path
            if path != candidate:
                logger.debug(f"Path collision for page {page_id}: {candidate} -> {path}")
        return path_by_id

    def candidate_path(self, page: RemotePage) -> str:
        """Candidate path for one page, ignoring any previous assignment."""
        title = page.title.strip() or f"page-{page.page_id}"
        filename = FilesafeConverter.title_to_filename(title)

        segments = self.ancestor_segments(page.parent_id, page.parent_type)
        if segments is None:
            logger.debug(f"Unresolvable ancestors for page {page.page_id}, using top level")
            return filename

        if segments and page.page_id in self.has_children:
            segments = segments + [FilesafeConverter.sanitize_segment(title)]
        return posixpath.join(*segments, filename) if segments else filename

    def ancestor_segments(self, parent_id: str, parent_type: str) -> Optional[List[str]]:
        """Directory segments contributed by the ancestors, root first.

        Returns:
            List of sanitized segments, or None when the chain is dangling or cyclic
        """
        segments: List[str] = []
        visited: Set[str] = set()
        current_id = (parent_id or "").strip()
        current_type = _parent_type(parent_type)

        while current_id:
            key = f"{current_type}:{current_id}"
            if key in visited:
                return None
            visited.add(key)

            if current_type == PARENT_FOLDER:
                folder = self.folder_by_id.get(current_id)
                if folder is None:
                    return None
                title = folder.title.strip() or f"folder-{current_id}"
                next_id = folder.parent_id.strip()
                next_type = (folder.parent_type or "").strip().lower() or PARENT_FOLDER
                segments.append(FilesafeConverter.sanitize_segment(title))
            else:
                page = self.page_by_id.get(current_id)
                if page is None:
                    return None
                title = page.title.strip() or f"page-{current_id}"
                next_id = page.parent_id.strip()
                next_type = _parent_type(page.parent_type)
                # The tree root page does not get its own directory
                if next_id:
                    segments.append(FilesafeConverter.sanitize_segment(title))

            current_id = next_id
            current_type = next_type

        segments.reverse()
        return segments


def plan_page_paths(pages: Iterable[RemotePage], previous_index: Optional[Dict[str, str]] = None,
                    folders: Optional[Dict[str, RemoteFolder]] = None) -> Dict[str, str]:
    """Convenience wrapper around PathPlanner.plan()."""
    return PathPlanner(pages, folders).plan(previous_index)


def deleted_page_ids(previous_index: Dict[str, str], remote_ids: Iterable[str]) -> List[str]:
    """IDs recorded in the previous index but absent from the remote listing."""
    remote = set(remote_ids)
    return sorted({pid for pid in previous_index.values() if pid and pid not in remote})


def moved_page_ids(previous_index: Dict[str, str], next_path_by_id: Dict[str, str]) -> List[str]:
    """IDs whose planned path differs from the previously recorded one."""
    moved = set()
    for path, page_id in previous_index.items():
        next_path = next_path_by_id.get(page_id)
        if next_path and normalize_rel_path(path) != next_path:
            moved.add(page_id)
    return sorted(moved)


def keep_recorded_paths(previous_index: Dict[str, str], path_by_id: Dict[str, str],
                        page_ids: List[str]) -> Optional[Dict[str, str]]:
    """Plan that leaves the given moved pages at their recorded paths.

    A pull that does not fetch every moved page leaves the others where they
    are, so the saved index still records them and a later pull moves them.

    Returns:
        The adjusted plan, or None when a recorded path is now planned for
        another page
    """
    recorded = {page_id: normalize_rel_path(path) for path, page_id in previous_index.items()}
    plan = dict(path_by_id)
    for page_id in page_ids:
        plan[page_id] = recorded[page_id]

    owners: Set[str] = set()
    for path in plan.values():
        if path.lower() in owners:
            return None
        owners.add(path.lower())
    return plan


def _unique_path(candidate: str, used: Set[str]) -> str:
    # Collisions are detected case-insensitively
    if candidate.lower() not in used:
        return candidate
    stem, ext = posixpath.splitext(candidate)
    index = 2
    while True:
        path = f"{stem}-{index}{ext}"
        if path.lower() not in used:
            return path
        index += 1
