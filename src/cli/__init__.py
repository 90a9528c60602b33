"""Command-line interface for Confluence space sync.

This package provides the `confluence-sync` CLI tool: the pull command,
the push transaction coordinator, the diff command and the validate
command, plus the state file manager and terminal output they share.
"""

from .config import StateManager
from .diff_command import DiffCommand
from .errors import (
    CLIError,
    PushTransactionError,
    StateError,
    StateFilesystemError,
)
from .models import DiffSummary, ExitCode, PullSummary, PushSummary
from .pull_command import PullCommand
from .push_command import PushCommand
from .validate_command import ValidateCommand

__all__ = [
    'PullCommand',
    'PushCommand',
    'DiffCommand',
    'ValidateCommand',
    'StateManager',
    'ExitCode',
    'PullSummary',
    'PushSummary',
    'DiffSummary',
    'CLIError',
    'PushTransactionError',
    'StateError',
    'StateFilesystemError',
]
