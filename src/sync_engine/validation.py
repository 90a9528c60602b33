"""Local file validation run before any remote write.

Each Markdown file is checked for:

- frontmatter schema (required keys, formats)
- immutable keys: the page ID recorded for the path and the space key
- strict reverse conversion, so unresolved links and images fail here
  rather than halfway through a push
"""

import logging
import os
from typing import Dict, Iterable, List, Optional

from src.confluence_client.errors import ConversionError
from src.content_converter.markdown_to_adf import MarkdownToAdfConverter
from src.file_mapper.errors import FileMapperError
from src.file_mapper.frontmatter_handler import FrontmatterHandler, validate_immutable, validate_schema
from src.file_mapper.models import Frontmatter, SpaceState, ValidationIssue
from src.file_mapper.page_index import build_page_index, iter_markdown_files, normalize_rel_path

from .hooks import ReverseResolver

logger = logging.getLogger(__name__)


def validate_file(space_dir: str, rel_path: str, space_key: str, state: SpaceState,
                  resolver: ReverseResolver) -> List[ValidationIssue]:
    """Validate one Markdown file.

    Args:
        space_dir: Absolute space directory
        rel_path: Space-relative Markdown path
        space_key: Expected space key (empty skips the space key check)
        state: Current SpaceState, source of the recorded page IDs
        resolver: Reverse resolver for the strict conversion pass

    Returns:
        List of issues, empty when the file is valid
    """
    rel_path = normalize_rel_path(rel_path)
    absolute = os.path.join(space_dir, *rel_path.split("/"))

    try:
        document = FrontmatterHandler.read_document(absolute)
    except FileMapperError as e:
        return [ValidationIssue("frontmatter", "invalid", str(e))]

    current = document.frontmatter
    issues = validate_schema(current)

    recorded_id = state.page_path_index.get(rel_path, "")
    if recorded_id or space_key:
        recorded = Frontmatter(
            page_id=recorded_id or current.page_id,
            space_key=(space_key or current.space_key) if current.space_key.strip() else "",
        )
        issues.extend(validate_immutable(recorded, current))

    converter = MarkdownToAdfConverter(resolver=resolver, strict=True)
    try:
        converter.convert(document.body, absolute)
    except ConversionError as e:
        issues.append(ValidationIssue("", "conversion", str(e)))

    return issues


def validate_files(space_dir: str, rel_paths: Iterable[str], space_key: str, state: SpaceState,
                   domain: str = "", page_index: Optional[Dict[str, str]] = None) -> Dict[str, List[ValidationIssue]]:
    """Validate several files against one resolver.

    Args:
        space_dir: Space directory
        rel_paths: Space-relative Markdown paths
        space_key: Expected space key
        state: Current SpaceState
        domain: Site domain used for resolved page URLs
        page_index: Path -> page ID (defaults to the on-disk frontmatter index)

    Returns:
        Relative path -> issues, only for files with at least one issue
    """
    space_dir = os.path.abspath(space_dir)
    if page_index is None:
        page_index = build_page_index(space_dir)
    resolver = ReverseResolver(space_dir, page_index, state.attachment_index, domain)

    results: Dict[str, List[ValidationIssue]] = {}
    for rel_path in sorted({normalize_rel_path(p) for p in rel_paths}):
        issues = validate_file(space_dir, rel_path, space_key, state, resolver)
        if issues:
            logger.debug(f"{rel_path}: {len(issues)} validation issue(s)")
            results[rel_path] = issues
    return results


def validate_space(space_dir: str, space_key: str, state: SpaceState,
                   domain: str = "") -> Dict[str, List[ValidationIssue]]:
    """Validate every Markdown file in a space directory."""
    space_dir = os.path.abspath(space_dir)
    rel_paths = list(iter_markdown_files(space_dir))
    logger.info(f"Validating {len(rel_paths)} file(s) in {space_dir}")
    return validate_files(space_dir, rel_paths, space_key, state, domain)
