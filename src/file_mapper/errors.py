"""Typed exception hierarchy for file mapper errors.

This module defines the exceptions raised while reading and writing the local
Markdown tree: filesystem failures and malformed frontmatter. All inherit
from FileMapperError.
"""

from typing import Optional

from src.confluence_client.errors import SyncError


class FileMapperError(SyncError):
    """Base exception for all file mapper errors."""
    pass


class FilesystemError(FileMapperError):
    """Raised when filesystem operations fail (read, write, permissions, etc)."""

    def __init__(self, file_path: str, operation: str, reason: Optional[str] = None):
        message = f"Filesystem operation '{operation}' failed for {file_path}"
        if reason:
            message += f": {reason}"
        super().__init__(message)
        self.file_path = file_path
        self.operation = operation
        self.reason = reason


class FrontmatterError(FileMapperError):
    """Raised when YAML frontmatter is missing or cannot be parsed."""

    def __init__(self, file_path: str, message: str):
        super().__init__(
            f"Frontmatter error in {file_path}: {message}"
        )
        self.file_path = file_path
        self.message = message
