"""Optimistic-concurrency decision for push."""

import logging
from typing import Union

from .errors import PullMergeRequiredError, PushConflictError
from .models import ConflictPolicy

logger = logging.getLogger(__name__)


def normalize_policy(policy: Union[ConflictPolicy, str, None]) -> ConflictPolicy:
    """Map a policy name to ConflictPolicy; unknown values mean cancel."""
    if isinstance(policy, ConflictPolicy):
        return policy
    try:
        return ConflictPolicy((policy or "").strip().lower())
    except ValueError:
        return ConflictPolicy.CANCEL


def resolve_write_version(path: str, page_id: str, local_version: int, remote_version: int,
                          policy: Union[ConflictPolicy, str, None]) -> int:
    """Decide the version number for a page write.

    Args:
        path: Relative path of the file being pushed
        page_id: Remote page ID
        local_version: Version recorded in the local frontmatter
        remote_version: Current remote version
        policy: Conflict policy

    Returns:
        local_version + 1 when the remote is not ahead; under force,
        max(local_version, remote_version) + 1

    Raises:
        PushConflictError: Remote is ahead under the cancel policy
        PullMergeRequiredError: Remote is ahead under the pull-merge policy

    Example:
        >>> resolve_write_version("a.md", "1", 3, 5, "force")
        6
    """
    policy = normalize_policy(policy)

    if remote_version <= local_version:
        return local_version + 1

    if policy is ConflictPolicy.FORCE:
        logger.warning(
            f"Overwriting {path} (page {page_id}): remote v{remote_version} "
            f"is ahead of local v{local_version}"
        )
        return max(local_version, remote_version) + 1
    if policy is ConflictPolicy.PULL_MERGE:
        raise PullMergeRequiredError(path, page_id, local_version, remote_version)
    raise PushConflictError(path, page_id, local_version, remote_version, ConflictPolicy.CANCEL.value)
