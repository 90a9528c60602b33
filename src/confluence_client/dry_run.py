"""Read-only remote wrapper for push previews.

Reads go to the wrapped service. Writes are reported through the printer
and answered with synthetic results, so the push engine runs end to end
without changing anything remotely.
"""

import json
import logging
from datetime import datetime
from typing import Callable, Dict, List, Optional

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

logger = logging.getLogger(__name__)


class DryRunRemote:
    """Wraps a remote service and turns every write into a reported no-op.

    Args:
        inner: The real remote service
        domain: Site domain, used in the printed request lines
        printer: Receives each report line (defaults to the module logger)

    Example:
        >>> remote = DryRunRemote(api, "https://example.atlassian.net")
        >>> push(remote, options)
    """

    def __init__(self, inner, domain: str = "", printer: Optional[Callable[[str], None]] = None):
        self.inner = inner
        self.domain = domain.rstrip("/")
        self.printer = printer or logger.info
        self._created: Dict[str, RemotePage] = {}
        self._counter = 0

    def _report(self, *lines: str) -> None:
        for line in lines:
            self.printer(line)

    # Reads

    def get_space(self, space_key: str) -> RemoteSpace:
        return self.inner.get_space(space_key)

    def list_pages(self, space_id: str, status: str = "current",
                   limit: int = 100, cursor: str = "") -> PageListResult:
        return self.inner.list_pages(space_id, status=status, limit=limit, cursor=cursor)

    def get_folder(self, folder_id: str) -> RemoteFolder:
        return self.inner.get_folder(folder_id)

    def get_page(self, page_id: str) -> RemotePage:
        # Pages "created" in this run only exist here
        if page_id in self._created:
            return self._created[page_id]
        return self.inner.get_page(page_id)

    def list_changes(self, space_key: str, since: Optional[datetime] = None,
                     limit: int = 100, start: int = 0) -> ChangeListResult:
        return self.inner.list_changes(space_key, since=since, limit=limit, start=start)

    def download_attachment(self, attachment_id: str) -> bytes:
        return self.inner.download_attachment(attachment_id)

    # Writes

    def create_page(self, page_input: PageUpsertInput) -> RemotePage:
        self._counter += 1
        page_id = f"dry-run-page-{self._counter}"
        self._report(
            f"[DRY-RUN] CREATE PAGE (POST {self.domain}/wiki/api/v2/pages)",
            f"  Title: {page_input.title}",
            f"  ParentPageID: {page_input.parent_page_id or '-'}",
        )
        page = RemotePage(
            page_id=page_id,
            space_id=page_input.space_id,
            title=page_input.title,
            version=1,
            parent_id=page_input.parent_page_id,
            status=page_input.status,
            body_adf=page_input.body_adf,
        )
        self._created[page_id] = page
        return page

    def update_page(self, page_id: str, page_input: PageUpsertInput) -> RemotePage:
        body = json.dumps(page_input.body_adf or {}, indent=2, sort_keys=True)
        self._report(
            f"[DRY-RUN] UPDATE PAGE (PUT {self.domain}/wiki/api/v2/pages/{page_id})",
            f"  Title: {page_input.title}",
            f"  ParentPageID: {page_input.parent_page_id or '-'}",
            f"  Version: {page_input.version}",
            f"  BodyADF: {body}",
        )
        return RemotePage(
            page_id=page_id,
            space_id=page_input.space_id,
            title=page_input.title,
            version=page_input.version,
            parent_id=page_input.parent_page_id,
            status=page_input.status,
            web_url=f"{self.domain}/wiki/spaces/{page_input.space_id}/pages/{page_id}",
            body_adf=page_input.body_adf,
        )

    def archive_pages(self, page_ids: List[str]) -> ArchiveResult:
        self._report(f"[DRY-RUN] ARCHIVE PAGES (POST {self.domain}/wiki/rest/api/content/archive)")
        self._report(*(f"  PageID: {page_id}" for page_id in page_ids))
        return ArchiveResult(task_id="dry-run-task-id")

    def delete_page(self, page_id: str, hard_delete: bool = False) -> None:
        purge = "?purge=true" if hard_delete else ""
        self._report(f"[DRY-RUN] DELETE PAGE (DELETE {self.domain}/wiki/api/v2/pages/{page_id}{purge})")

    def upload_attachment(self, upload: AttachmentUploadInput) -> RemoteAttachment:
        self._report(
            f"[DRY-RUN] UPLOAD ATTACHMENT (POST {self.domain}/wiki/rest/api/content/{upload.page_id}/child/attachment)",
            f"  Filename: {upload.filename}",
            f"  ContentType: {upload.content_type}",
            f"  Size: {len(upload.data)} bytes",
        )
        return RemoteAttachment(
            attachment_id=f"dry-run-attachment-{upload.filename}",
            page_id=upload.page_id,
            filename=upload.filename,
            media_type=upload.content_type,
        )

    def delete_attachment(self, attachment_id: str) -> None:
        self._report(f"[DRY-RUN] DELETE ATTACHMENT (DELETE {self.domain}/wiki/api/v2/attachments/{attachment_id})")
