"""Unit tests for cli.config.StateManager module."""

import json

import pytest

from src.cli.config import StateManager
from src.cli.errors import StateError, StateFilesystemError
from src.file_mapper.models import SpaceState


class TestStateManagerLoad:
    """Test cases for StateManager.load() method."""

    def test_load_valid_state(self, tmp_path):
        """Load a state file with every field populated."""
        (tmp_path / StateManager.STATE_FILE).write_text(json.dumps({
            "last_pull_high_watermark": "2024-01-15T10:30:00Z",
            "page_path_index": {"./docs\\a.md": "1"},
            "attachment_index": {"assets/1/att9-a.png": "att9"},
        }))

        state = StateManager.load(str(tmp_path))

        assert state == SpaceState(
            last_pull_high_watermark="2024-01-15T10:30:00Z",
            page_path_index={"docs/a.md": "1"},
            attachment_index={"assets/1/att9-a.png": "att9"},
        )

    def test_missing_file_is_fresh_state(self, tmp_path):
        assert StateManager.load(str(tmp_path)) == SpaceState()

    def test_blank_file_is_fresh_state(self, tmp_path):
        (tmp_path / StateManager.STATE_FILE).write_text("  \n")

        assert StateManager.load(str(tmp_path)) == SpaceState()

    def test_null_fields_are_empty(self, tmp_path):
        (tmp_path / StateManager.STATE_FILE).write_text(
            '{"last_pull_high_watermark": null, "page_path_index": null}'
        )

        assert StateManager.load(str(tmp_path)) == SpaceState()

    def test_invalid_json(self, tmp_path):
        (tmp_path / StateManager.STATE_FILE).write_text("{not json")

        with pytest.raises(StateError) as exc_info:
            StateManager.load(str(tmp_path))

        assert "Invalid JSON syntax" in str(exc_info.value)

    def test_non_object(self, tmp_path):
        (tmp_path / StateManager.STATE_FILE).write_text("[]")

        with pytest.raises(StateError) as exc_info:
            StateManager.load(str(tmp_path))

        assert "must be a JSON object" in str(exc_info.value)

    def test_invalid_watermark(self, tmp_path):
        (tmp_path / StateManager.STATE_FILE).write_text('{"last_pull_high_watermark": "yesterday"}')

        with pytest.raises(StateError) as exc_info:
            StateManager.load(str(tmp_path))

        assert exc_info.value.state_field == "last_pull_high_watermark"

    def test_non_string_index_value(self, tmp_path):
        (tmp_path / StateManager.STATE_FILE).write_text('{"page_path_index": {"a.md": 1}}')

        with pytest.raises(StateError) as exc_info:
            StateManager.load(str(tmp_path))

        assert exc_info.value.state_field == "page_path_index"

    def test_index_must_be_object(self, tmp_path):
        (tmp_path / StateManager.STATE_FILE).write_text('{"attachment_index": ["a"]}')

        with pytest.raises(StateError):
            StateManager.load(str(tmp_path))

    def test_unreadable_file(self, tmp_path):
        (tmp_path / StateManager.STATE_FILE).mkdir()

        with pytest.raises(StateFilesystemError) as exc_info:
            StateManager.load(str(tmp_path))

        assert exc_info.value.operation == "read"


class TestStateManagerSave:
    """Test cases for StateManager.save() method."""

    def test_save_writes_sorted_json(self, tmp_path):
        """Saved state is stable: sorted keys, two-space indent, trailing newline."""
        space_dir = tmp_path / "docs" / "TEAM"
        state = SpaceState(
            last_pull_high_watermark="2024-01-15T10:30:00Z",
            page_path_index={"b.md": "2", "a.md": "1", "": "3"},
        )

        StateManager.save(str(space_dir), state)

        text = (space_dir / StateManager.STATE_FILE).read_text()
        assert text.endswith("}\n")
        assert json.loads(text) == {
            "attachment_index": {},
            "last_pull_high_watermark": "2024-01-15T10:30:00Z",
            "page_path_index": {"a.md": "1", "b.md": "2"},
        }
        assert text.index('"a.md"') < text.index('"b.md"')

    def test_save_then_load(self, tmp_path):
        state = SpaceState("2024-01-15T10:30:00Z", {"a.md": "1"}, {"assets/1/x.png": "att1"})

        StateManager.save(str(tmp_path), state)

        assert StateManager.load(str(tmp_path)) == state

    def test_save_rejects_invalid_watermark(self, tmp_path):
        with pytest.raises(StateError):
            StateManager.save(str(tmp_path), SpaceState(last_pull_high_watermark="soon"))

        assert not (tmp_path / StateManager.STATE_FILE).exists()
