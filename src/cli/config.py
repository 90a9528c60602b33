"""Space state file loading and saving.

Each synced space directory holds a JSON state file that ties remote
identity to local layout:

    {
      "attachment_index": {"assets/123/att9-diagram.png": "att9"},
      "last_pull_high_watermark": "2024-01-15T10:30:00Z",
      "page_path_index": {"overview.md": "123"}
    }

A missing or empty file is a fresh state. An unparsable watermark is an
error both on load and on save.
"""

import json
import os
from typing import Any, Dict

from src.file_mapper.models import SpaceState
from src.file_mapper.page_index import normalize_rel_path
from src.file_mapper.timestamps import parse_rfc3339

from .errors import StateError, StateFilesystemError


class StateManager:
    """Handles state file loading, validation, and saving.

    All methods are classmethods keyed by the space directory.
    """

    STATE_FILE = '.confluence-state.json'

    @classmethod
    def state_path(cls, space_dir: str) -> str:
        return os.path.join(space_dir, cls.STATE_FILE)

    @classmethod
    def load(cls, space_dir: str) -> SpaceState:
        """Load the state for a space directory.

        Args:
            space_dir: Space directory containing the state file

        Returns:
            SpaceState (empty when the file is missing or blank)

        Raises:
            StateFilesystemError: If the file exists but cannot be read
            StateError: If the file is malformed or the watermark is invalid
        """
        state_path = cls.state_path(space_dir)
        try:
            with open(state_path, 'r', encoding='utf-8') as f:
                content = f.read()
        except FileNotFoundError:
            return SpaceState()
        except PermissionError:
            raise StateFilesystemError(state_path, 'read', 'Permission denied')
        except OSError as e:
            raise StateFilesystemError(state_path, 'read', str(e))

        if not content.strip():
            return SpaceState()

        try:
            state_dict = json.loads(content)
        except json.JSONDecodeError as e:
            raise StateError(f"Invalid JSON syntax: {e}")

        if not isinstance(state_dict, dict):
            raise StateError(
                f"State must be a JSON object, got {type(state_dict).__name__}"
            )

        return cls._parse_state(state_dict)

    @classmethod
    def save(cls, space_dir: str, state: SpaceState) -> None:
        """Save state, creating the space directory if needed.

        Raises:
            StateError: If the watermark is not RFC3339
            StateFilesystemError: If the file cannot be written
        """
        watermark = cls._check_watermark(state.last_pull_high_watermark)
        state_dict = {
            'last_pull_high_watermark': watermark,
            'page_path_index': _normalize_paths(state.page_path_index),
            'attachment_index': _normalize_paths(state.attachment_index),
        }

        try:
            os.makedirs(space_dir, exist_ok=True)
        except OSError as e:
            raise StateFilesystemError(space_dir, 'create_directory', str(e))

        state_path = cls.state_path(space_dir)
        try:
            with open(state_path, 'w', encoding='utf-8', newline='\n') as f:
                f.write(json.dumps(state_dict, indent=2, sort_keys=True))
                f.write('\n')
        except PermissionError:
            raise StateFilesystemError(state_path, 'write', 'Permission denied')
        except OSError as e:
            raise StateFilesystemError(state_path, 'write', str(e))

    @classmethod
    def _check_watermark(cls, watermark: Any) -> str:
        if watermark is None:
            return ''
        if not isinstance(watermark, str):
            raise StateError(
                f"must be a string (RFC3339 timestamp), got {type(watermark).__name__}",
                'last_pull_high_watermark'
            )
        watermark = watermark.strip()
        if watermark:
            try:
                parse_rfc3339(watermark)
            except ValueError:
                raise StateError(
                    f"invalid RFC3339 timestamp '{watermark}'",
                    'last_pull_high_watermark'
                )
        return watermark

    @classmethod
    def _parse_state(cls, state_dict: Dict[str, Any]) -> SpaceState:
        """Validate a decoded state document.

        Raises:
            StateError: If a field has the wrong type
        """
        watermark = cls._check_watermark(state_dict.get('last_pull_high_watermark'))

        indexes = {}
        for field_name in ('page_path_index', 'attachment_index'):
            value = state_dict.get(field_name) or {}
            if not isinstance(value, dict):
                raise StateError(
                    f"must be an object, got {type(value).__name__}",
                    field_name
                )
            for path, identifier in value.items():
                if not isinstance(identifier, str):
                    raise StateError(
                        f"values must be strings, got {type(identifier).__name__} for {path}",
                        field_name
                    )
            indexes[field_name] = _normalize_paths(value)

        return SpaceState(
            last_pull_high_watermark=watermark,
            page_path_index=indexes['page_path_index'],
            attachment_index=indexes['attachment_index'],
        )


def _normalize_paths(index: Dict[str, str]) -> Dict[str, str]:
    out: Dict[str, str] = {}
    for path, identifier in index.items():
        clean = normalize_rel_path(path)
        if clean and identifier:
            out[clean] = identifier
    return out
