"""Discovery of synced Markdown files in a space directory."""

import logging
import os
from typing import Dict, Iterator, List

from .errors import FileMapperError
from .frontmatter_handler import FrontmatterHandler

logger = logging.getLogger(__name__)

ASSETS_DIR = "assets"


def normalize_rel_path(path: str) -> str:
    """Normalize a relative path to forward slashes without a leading './'.

    Example:
        >>> normalize_rel_path(".\\\\docs\\\\a.md")
        'docs/a.md'
    """
    clean = path.replace("\\", "/").strip()
    while clean.startswith("./"):
        clean = clean[2:]
    return clean.strip("/")


def is_markdown_path(rel_path: str) -> bool:
    """True for a Markdown page path (not under assets/)."""
    rel_path = normalize_rel_path(rel_path)
    if not rel_path.lower().endswith(".md"):
        return False
    return not (rel_path == ASSETS_DIR or rel_path.startswith(f"{ASSETS_DIR}/"))


def iter_markdown_files(space_dir: str) -> Iterator[str]:
    """Yield space-relative paths of Markdown files, sorted.

    The assets directory and hidden directories are skipped.
    """
    found: List[str] = []
    for root, dirs, files in os.walk(space_dir):
        dirs[:] = sorted(
            d for d in dirs if d != ASSETS_DIR and not d.startswith(".")
        )
        for name in files:
            if name.lower().endswith(".md"):
                rel = os.path.relpath(os.path.join(root, name), space_dir)
                found.append(normalize_rel_path(rel))
    yield from sorted(found)


def build_page_index(space_dir: str) -> Dict[str, str]:
    """Map relative Markdown path -> page ID from on-disk frontmatter.

    Files with missing or malformed frontmatter, or without a page ID, are
    left out.
    """
    index: Dict[str, str] = {}
    for rel_path in iter_markdown_files(space_dir):
        full_path = os.path.join(space_dir, *rel_path.split("/"))
        try:
            frontmatter = FrontmatterHandler.read_frontmatter(full_path)
        except FileMapperError as e:
            logger.debug(f"Skipping {rel_path} in page index: {e}")
            continue
        if frontmatter.page_id:
            index[rel_path] = frontmatter.page_id
    return index
