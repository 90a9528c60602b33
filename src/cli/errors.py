"""Typed exception hierarchy for CLI-related errors.

All exceptions inherit from CLIError and carry enough context (paths,
ref names) for the operator to act on them.
"""

from typing import Optional

from src.confluence_client.errors import SyncError


class CLIError(SyncError):
    """Base exception for all CLI-related errors."""
    pass


class StateError(CLIError):
    """Raised when state file operations or validation fail."""

    def __init__(self, message: str, state_field: Optional[str] = None):
        if state_field:
            full_message = f"State error in field '{state_field}': {message}"
        else:
            full_message = f"State error: {message}"
        super().__init__(full_message)
        self.state_field = state_field
        self.original_message = message


class StateFilesystemError(CLIError):
    """Raised when state file filesystem operations fail."""

    def __init__(self, file_path: str, operation: str, reason: Optional[str] = None):
        message = f"State file operation '{operation}' failed for {file_path}"
        if reason:
            message += f": {reason}"
        super().__init__(message)
        self.file_path = file_path
        self.operation = operation
        self.reason = reason


class PushTransactionError(CLIError):
    """Raised when a push fails after its recovery state was created.

    The snapshot ref and sync branch are kept so the failed push can be
    inspected or resumed.

    Attributes:
        snapshot_ref: Ref holding the pre-push working state (may be empty)
        sync_branch: Branch holding the commits made before the failure
        cause: The underlying exception
    """

    def __init__(self, message: str, snapshot_ref: str = "", sync_branch: str = "",
                 cause: Optional[BaseException] = None):
        details = []
        if snapshot_ref:
            details.append(f"snapshot ref: {snapshot_ref}")
        if sync_branch:
            details.append(f"sync branch: {sync_branch}")
        full_message = message
        if details:
            full_message += f" ({'; '.join(details)})"
        super().__init__(full_message)
        self.snapshot_ref = snapshot_ref
        self.sync_branch = sync_branch
        self.cause = cause
