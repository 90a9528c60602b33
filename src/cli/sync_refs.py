"""Git names used to record sync history.

    confluence-sync/pull/<key>/<ts>               tag after a pull commit
    confluence-sync/push/<key>/<ts>               tag after a merged push
    refs/confluence-sync/snapshots/<key>/<ts>     pre-push working state
    sync/<key>/<ts>                               push staging branch
    <repo>/.confluence-worktrees/<key>-<ts>       push staging worktree

<key> is the sanitized space key and <ts> a UTC timestamp such as
20240115T103000Z.
"""

import os
from datetime import datetime, timezone
from typing import List, Optional

from src.file_mapper.filesafe_converter import FilesafeConverter
from src.git_integration.workspace import GitWorkspace

TIMESTAMP_FORMAT = "%Y%m%dT%H%M%SZ"
WORKTREE_DIR = ".confluence-worktrees"


def sync_timestamp(now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT)


def ref_key(space_key: str) -> str:
    return FilesafeConverter.sanitize_segment(space_key)


def pull_tag(space_key: str, timestamp: str) -> str:
    return f"confluence-sync/pull/{ref_key(space_key)}/{timestamp}"


def push_tag(space_key: str, timestamp: str) -> str:
    return f"confluence-sync/push/{ref_key(space_key)}/{timestamp}"


def snapshot_ref(space_key: str, timestamp: str) -> str:
    return f"refs/confluence-sync/snapshots/{ref_key(space_key)}/{timestamp}"


def sync_branch(space_key: str, timestamp: str) -> str:
    return f"sync/{ref_key(space_key)}/{timestamp}"


def worktree_path(repo_path: str, space_key: str, timestamp: str) -> str:
    return os.path.join(repo_path, WORKTREE_DIR, f"{ref_key(space_key)}-{timestamp}")


def sync_tags(git: GitWorkspace, space_key: str) -> List[str]:
    """Pull and push tags of a space, oldest first."""
    key = ref_key(space_key)
    tags = git.list_tags(f"confluence-sync/pull/{key}/*", f"confluence-sync/push/{key}/*")
    # Sort on the timestamp suffix, then the full name for a stable order
    return sorted(tags, key=lambda tag: (tag.rsplit("/", 1)[-1], tag))


def baseline_ref(git: GitWorkspace, space_key: str) -> str:
    """Newest pull or push tag of the space, else the repository's root commit."""
    tags = sync_tags(git, space_key)
    if tags:
        return tags[-1]
    return git.root_commit()
