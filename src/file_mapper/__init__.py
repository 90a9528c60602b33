"""File mapper library for Confluence space sync.

This package handles the local side of a synced space: filesafe naming,
Markdown frontmatter, RFC3339 timestamps and discovery of synced files.
"""

from .models import Frontmatter, LocalDocument, ValidationIssue, SpaceState
from .errors import (
    FileMapperError,
    FilesystemError,
    FrontmatterError,
)
from .filesafe_converter import FilesafeConverter
from .frontmatter_handler import FrontmatterHandler, validate_immutable, validate_schema
from .page_index import build_page_index, iter_markdown_files, normalize_rel_path

__all__ = [
    'Frontmatter',
    'LocalDocument',
    'ValidationIssue',
    'SpaceState',
    'FileMapperError',
    'FilesystemError',
    'FrontmatterError',
    'FilesafeConverter',
    'FrontmatterHandler',
    'validate_immutable',
    'validate_schema',
    'build_page_index',
    'iter_markdown_files',
    'normalize_rel_path',
]
