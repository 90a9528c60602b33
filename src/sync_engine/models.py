"""Data models for the sync engine.

Run-time switches are plain dataclasses passed into pull() and push();
nothing in the engine reads module-level flags. The RemoteService protocol
lists the remote operations the engines call, so tests can hand in an
in-memory fake instead of APIWrapper.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, List, Optional, Protocol

from src.file_mapper.models import SpaceState
from src.models.remote import (
    ArchiveResult,
    AttachmentUploadInput,
    ChangeListResult,
    PageListResult,
    PageUpsertInput,
    RemoteAttachment,
    RemoteFolder,
    RemotePage,
    RemoteSpace,
)

# Backward buffer applied to the watermark for incremental pulls
DEFAULT_OVERLAP_WINDOW = timedelta(minutes=2)
PAGE_BATCH_SIZE = 100
CHANGE_BATCH_SIZE = 100


class ConflictPolicy(str, Enum):
    """What push does when the remote version is ahead of the local one."""
    CANCEL = "cancel"
    PULL_MERGE = "pull-merge"
    FORCE = "force"


class ChangeType(str, Enum):
    """Git-derived change type for one Markdown path."""
    ADD = "A"
    MODIFY = "M"
    DELETE = "D"


@dataclass
class PushChange:
    """One changed Markdown path inside the space directory."""
    type: ChangeType
    path: str


@dataclass
class PushCommitPlan:
    """Local paths and remote metadata for one push commit.

    Attributes:
        path: Relative Markdown path
        deleted: True when the page was archived or deleted
        page_id: Remote page ID
        page_title: Page title (for the commit subject)
        version: Remote version after the write
        space_key: Space key
        url: Browser URL of the page
        staged_paths: Relative paths to stage for this commit
    """
    path: str
    deleted: bool
    page_id: str
    page_title: str
    version: int
    space_key: str
    url: str = ""
    staged_paths: List[str] = field(default_factory=list)


@dataclass
class PullDiagnostic:
    """Non-fatal problem reported by pull (path, CODE, message)."""
    path: str
    code: str
    message: str


@dataclass
class PullOptions:
    """Inputs for one pull run.

    Attributes:
        space_key: Space key to pull
        space_dir: Local directory holding the space
        state: Previously saved SpaceState
        target_page_id: Only fetch this page (empty = all changed pages)
        force_full: Fetch every page regardless of the watermark
        overlap_window: Backward buffer subtracted from the watermark
        skip_missing_assets: Skip attachments the remote reports as missing
        on_download_error: Called as (attachment_id, page_id, error); return
            True to skip the attachment and continue
        started_at: Pull start time (defaults to now, UTC)
    """
    space_key: str
    space_dir: str
    state: SpaceState = field(default_factory=SpaceState)
    target_page_id: str = ""
    force_full: bool = False
    overlap_window: timedelta = DEFAULT_OVERLAP_WINDOW
    skip_missing_assets: bool = False
    on_download_error: Optional[Callable[[str, str, Exception], bool]] = None
    started_at: Optional[datetime] = None


@dataclass
class PullResult:
    """Outputs of one pull run. Paths are space-relative."""
    state: SpaceState
    max_version: int = 0
    diagnostics: List[PullDiagnostic] = field(default_factory=list)
    updated_markdown: List[str] = field(default_factory=list)
    deleted_markdown: List[str] = field(default_factory=list)
    downloaded_assets: List[str] = field(default_factory=list)
    deleted_assets: List[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(
            self.updated_markdown or self.deleted_markdown
            or self.downloaded_assets or self.deleted_assets
        )


@dataclass
class PushOptions:
    """Inputs for one push run.

    Attributes:
        space_key: Space key to push to
        space_dir: Directory holding the Markdown files (the worktree copy)
        domain: Site domain, used to build page URLs in links
        state: Current SpaceState (mutated copy is returned)
        changes: Changed paths to push
        conflict_policy: Behaviour when the remote is ahead
        hard_delete: Purge deleted pages instead of archiving them
        dry_run: The remote is a DryRunRemote and space_dir a scratch copy
    """
    space_key: str
    space_dir: str
    domain: str = ""
    state: SpaceState = field(default_factory=SpaceState)
    changes: List[PushChange] = field(default_factory=list)
    conflict_policy: ConflictPolicy = ConflictPolicy.CANCEL
    hard_delete: bool = False
    dry_run: bool = False


@dataclass
class PushResult:
    """Outputs of one push run."""
    state: SpaceState
    commits: List[PushCommitPlan] = field(default_factory=list)


class RemoteService(Protocol):
    """Remote operations the pull and push engines depend on."""

    def get_space(self, space_key: str) -> RemoteSpace:
        ...

    def list_pages(self, space_id: str, status: str = "current",
                   limit: int = PAGE_BATCH_SIZE, cursor: str = "") -> PageListResult:
        ...

    def get_folder(self, folder_id: str) -> RemoteFolder:
        ...

    def get_page(self, page_id: str) -> RemotePage:
        ...

    def list_changes(self, space_key: str, since: Optional[datetime] = None,
                     limit: int = CHANGE_BATCH_SIZE, start: int = 0) -> ChangeListResult:
        ...

    def create_page(self, page_input: PageUpsertInput) -> RemotePage:
        ...

    def update_page(self, page_id: str, page_input: PageUpsertInput) -> RemotePage:
        ...

    def archive_pages(self, page_ids: List[str]) -> ArchiveResult:
        ...

    def delete_page(self, page_id: str, hard_delete: bool = False) -> None:
        ...

    def download_attachment(self, attachment_id: str) -> bytes:
        ...

    def upload_attachment(self, upload: AttachmentUploadInput) -> RemoteAttachment:
        ...

    def delete_attachment(self, attachment_id: str) -> None:
        ...


def list_all_pages(remote: RemoteService, space_id: str) -> List[RemotePage]:
    """Follow the page-listing cursor until exhausted."""
    pages: List[RemotePage] = []
    cursor = ""
    while True:
        result = remote.list_pages(space_id, status="current", limit=PAGE_BATCH_SIZE, cursor=cursor)
        pages.extend(result.pages)
        if not result.next_cursor.strip() or result.next_cursor == cursor:
            return pages
        cursor = result.next_cursor
