"""Sync transaction engine.

Pull reconciliation, path planning, attachment reconciliation, identifier
resolution, conflict policy and the push engine.
"""

from src.sync_engine.conflict_policy import normalize_policy, resolve_write_version
from src.sync_engine.errors import (
    InvariantViolationError,
    PullMergeRequiredError,
    PushConflictError,
    SyncEngineError,
    ValidationFailedError,
)
from src.sync_engine.hooks import ForwardResolver, ReverseResolver
from src.sync_engine.models import (
    ChangeType,
    ConflictPolicy,
    PullDiagnostic,
    PullOptions,
    PullResult,
    PushChange,
    PushCommitPlan,
    PushOptions,
    PushResult,
    RemoteService,
)
from src.sync_engine.path_planner import PathPlanner, plan_page_paths
from src.sync_engine.pull import pull
from src.sync_engine.push import push
from src.sync_engine.validation import validate_files, validate_space

__all__ = [
    # Errors
    'InvariantViolationError',
    'PullMergeRequiredError',
    'PushConflictError',
    'SyncEngineError',
    'ValidationFailedError',
    # Engines
    'pull',
    'push',
    'validate_files',
    'validate_space',
    # Components
    'ForwardResolver',
    'ReverseResolver',
    'PathPlanner',
    'plan_page_paths',
    'normalize_policy',
    'resolve_write_version',
    # Models
    'ChangeType',
    'ConflictPolicy',
    'PullDiagnostic',
    'PullOptions',
    'PullResult',
    'PushChange',
    'PushCommitPlan',
    'PushOptions',
    'PushResult',
    'RemoteService',
]
