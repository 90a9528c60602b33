"""In-memory stand-in for the Confluence API wrapper.

FakeRemote implements every RemoteService operation over plain dicts and
records each call, so engine and command tests can assert on the exact
remote writes without network access.
"""

import copy
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

from src.confluence_client.errors import PageNotFoundError, RemoteNotFoundError
from src.models.remote import (
    ArchiveResult,
    AttachmentUploadInput,
    ChangeListResult,
    PageListResult,
    PageUpsertInput,
    RemoteAttachment,
    RemoteChange,
    RemoteFolder,
    RemotePage,
    RemoteSpace,
)

SITE = "https://example.atlassian.net"


class TestClock:
    """Callable clock that moves forward one minute per reading."""

    __test__ = False

    def __init__(self, start: Optional[datetime] = None, step: timedelta = timedelta(minutes=1)):
        self.current = start or datetime(2024, 1, 15, 10, 0, tzinfo=timezone.utc)
        self.step = step

    def __call__(self) -> datetime:
        now = self.current
        self.current = self.current + self.step
        return now


class FakeRemote:
    """Remote space held in memory.

    Args:
        space_key: Key of the only space
        space_id: ID of that space
        clock: Source of last_modified times for remote writes
    """

    def __init__(self, space_key: str = "TEAM", space_id: str = "100",
                 clock: Optional[TestClock] = None):
        self.space = RemoteSpace(space_id=space_id, key=space_key, name=f"{space_key} space")
        self.clock = clock or TestClock()
        self.pages: Dict[str, RemotePage] = {}
        self.folders: Dict[str, RemoteFolder] = {}
        self.attachments: Dict[str, bytes] = {}
        self.missing_folders: List[str] = []
        self.fail_updates: Dict[str, BaseException] = {}
        self.calls: List[Tuple[str, Any]] = []
        self._next_page_id = 1000
        self._next_attachment_id = 1

    # Setup helpers

    def add_page(self, page_id: str, title: str, body: Optional[Dict[str, Any]] = None,
                 parent_id: str = "", parent_type: str = "", version: int = 1) -> RemotePage:
        page = RemotePage(
            page_id=page_id,
            space_id=self.space.space_id,
            title=title,
            version=version,
            last_modified=self.clock(),
            parent_id=parent_id,
            parent_type=parent_type or ("page" if parent_id else ""),
            web_url=f"{SITE}/wiki/spaces/{self.space.key}/pages/{page_id}",
            body_adf=body if body is not None else doc(paragraph(f"{title} content")),
        )
        self.pages[page_id] = page
        return page

    def add_folder(self, folder_id: str, title: str, parent_id: str = "", parent_type: str = "") -> RemoteFolder:
        folder = RemoteFolder(
            folder_id=folder_id,
            title=title,
            parent_id=parent_id,
            parent_type=parent_type,
            space_id=self.space.space_id,
        )
        self.folders[folder_id] = folder
        return folder

    def add_attachment(self, attachment_id: str, data: bytes) -> None:
        self.attachments[attachment_id] = data

    def edit_page(self, page_id: str, body: Optional[Dict[str, Any]] = None, title: Optional[str] = None) -> RemotePage:
        """Simulate an edit made in the Confluence editor."""
        page = self.pages[page_id]
        page.version += 1
        page.last_modified = self.clock()
        if body is not None:
            page.body_adf = body
        if title is not None:
            page.title = title
        return page

    def writes(self) -> List[Tuple[str, Any]]:
        return [c for c in self.calls if c[0] not in ("get_space", "list_pages", "get_page",
                                                      "get_folder", "list_changes", "download_attachment")]

    # Reads

    def get_space(self, space_key: str) -> RemoteSpace:
        self.calls.append(("get_space", space_key))
        if space_key.lower() != self.space.key.lower():
            raise RemoteNotFoundError("space", space_key)
        return self.space

    def list_pages(self, space_id: str, status: str = "current",
                   limit: int = 100, cursor: str = "") -> PageListResult:
        self.calls.append(("list_pages", cursor))
        ordered = [self._summary(self.pages[pid]) for pid in sorted(self.pages)]
        start = int(cursor or 0)
        end = start + limit
        return PageListResult(
            pages=ordered[start:end],
            next_cursor=str(end) if end < len(ordered) else "",
        )

    def get_folder(self, folder_id: str) -> RemoteFolder:
        self.calls.append(("get_folder", folder_id))
        if folder_id in self.missing_folders or folder_id not in self.folders:
            raise RemoteNotFoundError("folder", folder_id)
        return copy.deepcopy(self.folders[folder_id])

    def get_page(self, page_id: str) -> RemotePage:
        self.calls.append(("get_page", page_id))
        if page_id not in self.pages:
            raise PageNotFoundError(page_id)
        return copy.deepcopy(self.pages[page_id])

    def list_changes(self, space_key: str, since: Optional[datetime] = None,
                     limit: int = 100, start: int = 0) -> ChangeListResult:
        self.calls.append(("list_changes", since))
        matching = [
            RemoteChange(
                page_id=page.page_id,
                space_key=self.space.key,
                title=page.title,
                version=page.version,
                last_modified=page.last_modified,
            )
            for pid, page in sorted(self.pages.items())
            if since is None or (page.last_modified is not None and page.last_modified >= since)
        ]
        batch = matching[start:start + limit]
        has_more = start + limit < len(matching)
        return ChangeListResult(changes=batch, next_start=start + len(batch), has_more=has_more)

    def download_attachment(self, attachment_id: str) -> bytes:
        self.calls.append(("download_attachment", attachment_id))
        if attachment_id not in self.attachments:
            raise RemoteNotFoundError("attachment", attachment_id)
        return self.attachments[attachment_id]

    # Writes

    def create_page(self, page_input: PageUpsertInput) -> RemotePage:
        self.calls.append(("create_page", page_input.title))
        page_id = str(self._next_page_id)
        self._next_page_id += 1
        page = RemotePage(
            page_id=page_id,
            space_id=page_input.space_id,
            title=page_input.title,
            version=1,
            last_modified=self.clock(),
            parent_id=page_input.parent_page_id,
            parent_type="page" if page_input.parent_page_id else "",
            web_url=f"{SITE}/wiki/spaces/{self.space.key}/pages/{page_id}",
            body_adf=copy.deepcopy(page_input.body_adf),
        )
        self.pages[page_id] = page
        return copy.deepcopy(page)

    def update_page(self, page_id: str, page_input: PageUpsertInput) -> RemotePage:
        self.calls.append(("update_page", page_id))
        if page_id in self.fail_updates:
            raise self.fail_updates[page_id]
        if page_id not in self.pages:
            raise PageNotFoundError(page_id)
        page = self.pages[page_id]
        page.title = page_input.title
        page.version = page_input.version
        page.parent_id = page_input.parent_page_id
        page.parent_type = "page" if page_input.parent_page_id else ""
        page.body_adf = copy.deepcopy(page_input.body_adf)
        page.last_modified = self.clock()
        return copy.deepcopy(page)

    def archive_pages(self, page_ids: List[str]) -> ArchiveResult:
        self.calls.append(("archive_pages", list(page_ids)))
        for page_id in page_ids:
            if page_id not in self.pages:
                raise PageNotFoundError(page_id)
            del self.pages[page_id]
        return ArchiveResult(task_id="task-1")

    def delete_page(self, page_id: str, hard_delete: bool = False) -> None:
        self.calls.append(("delete_page", page_id, hard_delete))
        if page_id not in self.pages:
            raise PageNotFoundError(page_id)
        del self.pages[page_id]

    def upload_attachment(self, upload: AttachmentUploadInput) -> RemoteAttachment:
        self.calls.append(("upload_attachment", upload.page_id, upload.filename))
        attachment_id = f"att-{self._next_attachment_id}"
        self._next_attachment_id += 1
        self.attachments[attachment_id] = upload.data
        return RemoteAttachment(
            attachment_id=attachment_id,
            page_id=upload.page_id,
            filename=upload.filename,
            media_type=upload.content_type,
        )

    def delete_attachment(self, attachment_id: str) -> None:
        self.calls.append(("delete_attachment", attachment_id))
        if attachment_id not in self.attachments:
            raise RemoteNotFoundError("attachment", attachment_id)
        del self.attachments[attachment_id]

    @staticmethod
    def _summary(page: RemotePage) -> RemotePage:
        # Listings never carry the body
        summary = copy.deepcopy(page)
        summary.body_adf = None
        return summary


# ADF builders

def doc(*blocks: Dict[str, Any]) -> Dict[str, Any]:
    return {"type": "doc", "version": 1, "content": list(blocks)}


def text(value: str, *marks: Dict[str, Any]) -> Dict[str, Any]:
    node: Dict[str, Any] = {"type": "text", "text": value}
    if marks:
        node["marks"] = list(marks)
    return node


def paragraph(*content: Any) -> Dict[str, Any]:
    nodes = [text(c) if isinstance(c, str) else c for c in content]
    return {"type": "paragraph", "content": nodes}


def heading(value: str, level: int = 1) -> Dict[str, Any]:
    return {"type": "heading", "attrs": {"level": level}, "content": [text(value)]}


def page_link(label: str, page_id: str, space_key: str = "TEAM") -> Dict[str, Any]:
    href = f"{SITE}/wiki/spaces/{space_key}/pages/{page_id}"
    return text(label, {"type": "link", "attrs": {"href": href}})


def media(attachment_id: str, filename: str, page_id: str = "", alt: str = "") -> Dict[str, Any]:
    attrs = {"type": "file", "id": attachment_id, "filename": filename, "alt": alt or filename}
    if page_id:
        attrs["collection"] = f"contentId-{page_id}"
        attrs["pageId"] = page_id
    return {"type": "mediaSingle", "attrs": {"layout": "center"},
            "content": [{"type": "media", "attrs": attrs}]}
