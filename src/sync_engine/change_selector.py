"""Selection of remote pages to fetch in a pull.

Three scopes:

    FULL         first pull, forced pull, or no watermark: every page
    TARGET       a single requested page
    INCREMENTAL  pages in the change feed since (watermark - overlap window)

Incremental and full selections are extended with moved pages by the pull
reconciler. Target pulls leave moved pages at their recorded paths for a
later pull. Deleted pages never go through this path.
"""

import logging
from datetime import datetime, timedelta
from enum import Enum
from typing import Dict, List, Tuple

from src.file_mapper.timestamps import parse_rfc3339
from src.models.remote import RemoteChange, RemotePage

from .errors import SyncEngineError
from .models import CHANGE_BATCH_SIZE, DEFAULT_OVERLAP_WINDOW, PullOptions, RemoteService

logger = logging.getLogger(__name__)


class SelectionScope(str, Enum):
    FULL = "full"
    TARGET = "target"
    INCREMENTAL = "incremental"


def selection_scope(options: PullOptions) -> SelectionScope:
    if options.target_page_id.strip():
        return SelectionScope.TARGET
    if options.force_full or not options.state.last_pull_high_watermark.strip():
        return SelectionScope.FULL
    return SelectionScope.INCREMENTAL


def list_all_changes(remote: RemoteService, space_key: str, since: datetime,
                     limit: int = CHANGE_BATCH_SIZE) -> List[RemoteChange]:
    """Follow the offset-paginated change feed until has_more is false."""
    changes: List[RemoteChange] = []
    start = 0
    while True:
        result = remote.list_changes(space_key, since=since, limit=limit, start=start)
        changes.extend(result.changes)
        if not result.has_more:
            return changes
        next_start = result.next_start
        if next_start <= start:
            next_start = start + limit
        if next_start <= start:
            return changes
        start = next_start


def select_changed_page_ids(remote: RemoteService, options: PullOptions,
                            page_by_id: Dict[str, RemotePage]) -> Tuple[SelectionScope, List[str]]:
    """Decide which existing remote pages must be fetched.

    Args:
        remote: Remote service
        options: Pull options (scope switches and saved watermark)
        page_by_id: Current remote listing

    Returns:
        (scope, sorted page IDs), restricted to pages in the listing

    Raises:
        SyncEngineError: If the saved watermark cannot be parsed
    """
    scope = selection_scope(options)

    if scope is SelectionScope.TARGET:
        target_id = options.target_page_id.strip()
        if target_id not in page_by_id:
            logger.warning(f"Target page {target_id} is not in space {options.space_key}")
            return scope, []
        return scope, [target_id]

    if scope is SelectionScope.FULL:
        return scope, sorted(page_by_id)

    watermark_text = options.state.last_pull_high_watermark.strip()
    try:
        watermark = parse_rfc3339(watermark_text)
    except ValueError as e:
        raise SyncEngineError(f"invalid last_pull_high_watermark '{watermark_text}': {e}")

    overlap = options.overlap_window if options.overlap_window > timedelta(0) else DEFAULT_OVERLAP_WINDOW
    since = watermark - overlap
    logger.info(f"Listing changes in {options.space_key} since {since.isoformat()}")

    changes = list_all_changes(remote, options.space_key, since)
    ids = sorted({c.page_id for c in changes if c.page_id in page_by_id})
    logger.debug(f"Change feed returned {len(changes)} entr(ies), {len(ids)} in scope")
    return scope, ids
