"""Remote content data models.

These dataclasses are the plain-data view of a Confluence space that the
sync engine works with. The API wrapper produces them from REST payloads and
the engines never touch raw JSON.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional


@dataclass
class RemoteSpace:
    """A Confluence space.

    Attributes:
        space_id: Numeric space identifier used by the v2 API
        key: Space key (e.g., "TEAM")
        name: Display name
    """
    space_id: str
    key: str
    name: str = ""


@dataclass
class RemotePage:
    """A Confluence page as seen by the sync engine.

    Attributes:
        page_id: Stable, globally unique page ID
        space_id: Owning space ID
        title: Page title
        version: Version number, bumped on every remote write
        last_modified: Time of the last remote write (None if unknown)
        parent_id: Parent node ID, empty for a space root page
        parent_type: "page" or "folder" (empty means page)
        status: Page status ("current", "archived", ...)
        web_url: Absolute browser URL of the page
        body_adf: ADF document, only populated by get_page()

    Example:
        >>> page = RemotePage(page_id="123", space_id="9", title="Home", version=4)
    """
    page_id: str
    space_id: str = ""
    title: str = ""
    version: int = 0
    last_modified: Optional[datetime] = None
    parent_id: str = ""
    parent_type: str = ""
    status: str = "current"
    web_url: str = ""
    body_adf: Optional[Dict[str, Any]] = None


@dataclass
class RemoteFolder:
    """A structural folder node. Contributes a path segment, never a file."""
    folder_id: str
    title: str = ""
    parent_id: str = ""
    parent_type: str = ""
    space_id: str = ""


@dataclass
class RemoteChange:
    """One entry from the remote change feed."""
    page_id: str
    space_key: str = ""
    title: str = ""
    version: int = 0
    last_modified: Optional[datetime] = None


@dataclass
class RemoteAttachment:
    """Attachment metadata returned by upload.

    Identity is the attachment ID. Filenames may repeat across pages.
    """
    attachment_id: str
    page_id: str
    filename: str = ""
    media_type: str = ""
    web_url: str = ""


@dataclass
class PageListResult:
    """One page of a cursor-paginated page listing."""
    pages: List[RemotePage] = field(default_factory=list)
    next_cursor: str = ""


@dataclass
class ChangeListResult:
    """One page of the offset-paginated change feed."""
    changes: List[RemoteChange] = field(default_factory=list)
    next_start: int = 0
    has_more: bool = False


@dataclass
class PageUpsertInput:
    """Payload for creating or updating a page.

    Attributes:
        space_id: Target space ID
        title: Page title (required)
        parent_page_id: Parent page ID, empty for space root
        version: New version number (0 omits the field on create)
        body_adf: ADF document to store
        status: Page status, defaults to "current"
    """
    space_id: str
    title: str
    parent_page_id: str = ""
    version: int = 0
    body_adf: Optional[Dict[str, Any]] = None
    status: str = "current"


@dataclass
class AttachmentUploadInput:
    """Payload for uploading an attachment to a page."""
    page_id: str
    filename: str
    data: bytes
    content_type: str = "application/octet-stream"


@dataclass
class ArchiveResult:
    """Result of a bulk archive request."""
    task_id: str = ""
