"""Typed exception hierarchy for the sync engine.

Conflict errors always carry both version numbers. InvariantViolationError
marks a broken internal guarantee (a planned path or ID that must exist but
does not) and is never user-recoverable.
"""

from typing import Dict, List

from src.confluence_client.errors import SyncError
from src.file_mapper.models import ValidationIssue


class SyncEngineError(SyncError):
    """Base exception for all sync engine errors."""
    pass


class PushConflictError(SyncEngineError):
    """Raised when the remote version is ahead of the locally recorded one.

    Attributes:
        path: Relative path of the conflicting file
        page_id: Remote page ID
        local_version: Version recorded in the local frontmatter
        remote_version: Current remote version
        policy: Conflict policy in effect
    """

    def __init__(self, path: str, page_id: str, local_version: int,
                 remote_version: int, policy: str):
        super().__init__(
            f"remote version conflict for {path} (page {page_id}): "
            f"local={local_version} remote={remote_version} policy={policy}"
        )
        self.path = path
        self.page_id = page_id
        self.local_version = local_version
        self.remote_version = remote_version
        self.policy = policy


class PullMergeRequiredError(PushConflictError):
    """Raised under the pull-merge policy: pull must run before pushing again."""

    def __init__(self, path: str, page_id: str, local_version: int, remote_version: int):
        super().__init__(path, page_id, local_version, remote_version, "pull-merge")
        self.args = (
            f"{self.args[0]}; run pull to merge remote changes, then push again",
        )


class InvariantViolationError(SyncEngineError):
    """Raised when an internal consistency guarantee is broken."""

    def __init__(self, message: str):
        super().__init__(f"internal invariant violated: {message}")
        self.detail = message


class ValidationFailedError(SyncEngineError):
    """Raised when local files fail validation before any remote write.

    Attributes:
        issues: Relative path -> list of ValidationIssue
    """

    def __init__(self, issues: Dict[str, List[ValidationIssue]]):
        count = sum(len(v) for v in issues.values())
        super().__init__(
            f"validation failed: {count} issue(s) in {len(issues)} file(s)"
        )
        self.issues = issues
