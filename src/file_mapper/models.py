"""Data models for file mapper.

This module defines the local-side data models: the sync metadata stored in
Markdown frontmatter, the parsed document, validation issues, and the
persisted per-space state.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List


@dataclass
class Frontmatter:
    """Sync metadata stored at the top of every Markdown file.

    page_id and space_key are immutable once written. version,
    last_modified and parent_page_id are owned by the sync engine.

    Attributes:
        title: Page title override (optional)
        page_id: Confluence page ID (empty for a file never pushed)
        space_key: Confluence space key
        version: Remote version number the file was last synced at
        last_modified: RFC3339 time of that remote version
        parent_page_id: Remote parent page ID (optional)
        extra: User-defined keys, preserved in order

    Example:
        >>> fm = Frontmatter(title="Home", page_id="123", space_key="TEAM", version=3)
    """
    title: str = ""
    page_id: str = ""
    space_key: str = ""
    version: int = 0
    last_modified: str = ""
    parent_page_id: str = ""
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_new(self) -> bool:
        """True for a local file that has never been pushed."""
        return not self.page_id.strip()


@dataclass
class LocalDocument:
    """A Markdown file split into frontmatter and body."""
    frontmatter: Frontmatter
    body: str = ""


@dataclass
class ValidationIssue:
    """A schema or invariant violation found in a local file.

    Attributes:
        field: Offending frontmatter key (empty for body issues)
        code: Machine-readable code (required, invalid, immutable, conversion)
        message: Human-readable description
    """
    field: str
    code: str
    message: str


@dataclass
class SpaceState:
    """Persisted sync state for one space directory.

    Attributes:
        last_pull_high_watermark: RFC3339 time up to which remote changes are
            known to be pulled (empty if never pulled)
        page_path_index: Relative Markdown path -> page ID
        attachment_index: Relative asset path -> attachment ID

    Example:
        >>> state = SpaceState()
        >>> state.page_path_index["home.md"] = "123"
    """
    last_pull_high_watermark: str = ""
    page_path_index: Dict[str, str] = field(default_factory=dict)
    attachment_index: Dict[str, str] = field(default_factory=dict)

    def page_ids(self) -> List[str]:
        return sorted(set(self.page_path_index.values()))
