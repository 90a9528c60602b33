"""Data models for CLI operations."""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import List, Optional

from src.sync_engine.models import PullDiagnostic


class ExitCode(IntEnum):
    """Exit codes for CLI operations.

    - SUCCESS (0): Operation completed successfully
    - GENERAL_ERROR (1): General error (state issues, validation failures)
    - CONFLICTS (2): Remote version conflicts detected during push
    - AUTH_ERROR (3): Authentication or authorization failure
    - NETWORK_ERROR (4): Network connectivity or API availability issues

    Example:
        >>> exit_code = ExitCode.SUCCESS
        >>> sys.exit(exit_code)
    """
    SUCCESS = 0
    GENERAL_ERROR = 1
    CONFLICTS = 2
    AUTH_ERROR = 3
    NETWORK_ERROR = 4


@dataclass
class PullSummary:
    """What a pull command did, for display.

    Attributes:
        space_key: Space key
        commit: Commit SHA created for the pull (None when nothing changed)
        tag: Sync tag created for the pull
        updated: Markdown paths written
        deleted: Markdown paths removed
        downloaded_assets: Asset paths downloaded
        deleted_assets: Asset paths removed
    """
    space_key: str
    commit: Optional[str] = None
    tag: str = ""
    updated: List[str] = field(default_factory=list)
    deleted: List[str] = field(default_factory=list)
    downloaded_assets: List[str] = field(default_factory=list)
    deleted_assets: List[str] = field(default_factory=list)


@dataclass
class PushSummary:
    """What a push command did, for display.

    Attributes:
        space_key: Space key
        pushed: Markdown paths written to the remote
        deleted: Markdown paths whose pages were archived or deleted
        tag: Sync tag created for the push (empty for no-op and dry runs)
        dry_run: True when no remote or git writes were made
    """
    space_key: str
    pushed: List[str] = field(default_factory=list)
    deleted: List[str] = field(default_factory=list)
    tag: str = ""
    dry_run: bool = False

    @property
    def is_noop(self) -> bool:
        return not self.pushed and not self.deleted


@dataclass
class DiffSummary:
    """What a diff command found.

    Attributes:
        space_key: Space key
        diff: Unified diff from the local files to the rendered remote pages
            (empty when they match)
        diagnostics: Conversion and lookup warnings
    """
    space_key: str
    diff: str = ""
    diagnostics: List[PullDiagnostic] = field(default_factory=list)
