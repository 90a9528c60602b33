"""Typed exception hierarchy for Confluence-related errors.

Every error raised by this tool derives from SyncError. Transport, auth and
content conversion failures derive from ConfluenceError so callers can map
them to exit codes without inspecting messages.
"""

from typing import Optional


class SyncError(Exception):
    """Base exception for all confluence-sync errors.

    Use this to catch any application-level error from the sync tool.
    """
    pass


class ConfluenceError(SyncError):
    """Base exception for all Confluence-related errors."""
    pass


class InvalidCredentialsError(ConfluenceError):
    """Raised when API credentials are invalid or authentication fails."""

    def __init__(self, user: str, endpoint: str):
        super().__init__(
            f"API key is invalid (user: {user}, endpoint: {endpoint})"
        )
        self.user = user
        self.endpoint = endpoint


class RemoteNotFoundError(ConfluenceError):
    """Raised when a remote resource (page, folder, attachment, space) does not exist."""

    def __init__(self, resource: str, resource_id: str):
        super().__init__(f"{resource.capitalize()} {resource_id} not found")
        self.resource = resource
        self.resource_id = resource_id


class PageNotFoundError(RemoteNotFoundError):
    """Raised when a requested page does not exist."""

    def __init__(self, page_id: str):
        super().__init__("page", page_id)
        self.page_id = page_id


class APIUnreachableError(ConfluenceError):
    """Raised when the Confluence API is not available or unreachable."""

    def __init__(self, endpoint: str):
        super().__init__(f"API is not available at {endpoint}")
        self.endpoint = endpoint


class APIAccessError(ConfluenceError):
    """Raised when API access fails after retries or due to access restrictions."""

    def __init__(self, message: str = "Confluence API failure (after 3 retries)"):
        super().__init__(message)


class ConversionError(ConfluenceError):
    """Raised when content conversion between formats fails."""

    def __init__(self, message: str):
        super().__init__(message)


class UnresolvedReferenceError(ConversionError):
    """Raised in strict conversion when a link or media reference cannot be resolved.

    Attributes:
        source_path: File being converted
        reference: The link destination, page ID or attachment ID
        kind: "link" or "media"
    """

    def __init__(self, source_path: str, reference: str, kind: str = "link",
                 detail: Optional[str] = None):
        message = f"Unresolved {kind} reference '{reference}' in {source_path}"
        if detail:
            message += f": {detail}"
        super().__init__(message)
        self.source_path = source_path
        self.reference = reference
        self.kind = kind
