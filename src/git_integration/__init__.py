"""Git integration for Confluence space sync.

This package provides the versioned workspace the pull and push commands
record their history in: scoped stashes, sync branches and worktrees,
per-change commits, annotated tags and snapshot refs.
"""

from src.git_integration.errors import GitRepositoryError
from src.git_integration.workspace import GitWorkspace

__all__ = [
    'GitRepositoryError',
    'GitWorkspace',
]
