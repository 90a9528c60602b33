"""Data models for remote Confluence content."""

from src.models.remote import (
    RemoteSpace,
    RemotePage,
    RemoteFolder,
    RemoteChange,
    RemoteAttachment,
    PageListResult,
    ChangeListResult,
    PageUpsertInput,
    AttachmentUploadInput,
    ArchiveResult,
)
from src.models.conversion_result import ConversionWarning, ForwardResult, ReverseResult

__all__ = [
    'RemoteSpace',
    'RemotePage',
    'RemoteFolder',
    'RemoteChange',
    'RemoteAttachment',
    'PageListResult',
    'ChangeListResult',
    'PageUpsertInput',
    'AttachmentUploadInput',
    'ArchiveResult',
    'ConversionWarning',
    'ForwardResult',
    'ReverseResult',
]
