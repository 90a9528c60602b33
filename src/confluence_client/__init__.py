"""Confluence client library for space sync.

This package wraps the Confluence Cloud REST API (v2 where available, v1 for
search, archive and attachment upload) behind typed dataclass results.
"""

from .errors import (
    SyncError,
    ConfluenceError,
    InvalidCredentialsError,
    RemoteNotFoundError,
    PageNotFoundError,
    APIUnreachableError,
    APIAccessError,
    ConversionError,
    UnresolvedReferenceError,
)
from .dry_run import DryRunRemote

__all__ = [
    "DryRunRemote",
    "SyncError",
    "ConfluenceError",
    "InvalidCredentialsError",
    "RemoteNotFoundError",
    "PageNotFoundError",
    "APIUnreachableError",
    "APIAccessError",
    "ConversionError",
    "UnresolvedReferenceError",
]
