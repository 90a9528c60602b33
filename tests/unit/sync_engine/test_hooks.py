"""Unit tests for sync_engine.hooks module."""

from src.content_converter.resolution import HookOutcome, LinkTarget, MediaTarget
from src.sync_engine.hooks import (
    PLACEHOLDER_ATTACHMENT_ID,
    PLACEHOLDER_PAGE_PREFIX,
    ForwardResolver,
    ReverseResolver,
    is_external_destination,
    relative_link,
)


class TestHelpers:
    """Test cases for link helper functions."""

    def test_relative_link_between_directories(self):
        assert relative_link("guides/setup.md", "reference/api.md") == "../reference/api.md"

    def test_relative_link_same_directory(self):
        assert relative_link("a.md", "b.md") == "b.md"

    def test_external_destinations(self):
        assert is_external_destination("https://example.com")
        assert is_external_destination("mailto:someone@example.com")
        assert is_external_destination("#section")
        assert is_external_destination("")
        assert not is_external_destination("other.md")


class TestForwardResolver:
    """Test cases for ForwardResolver."""

    def setup_method(self):
        self.resolver = ForwardResolver(
            "guides/setup.md",
            {"1": "Home.md", "2": "guides/setup.md"},
            {"att1": "assets/2/att1-a.png"},
            "TEAM",
        )

    def test_known_page_becomes_relative_path(self):
        result = self.resolver.resolve_link(LinkTarget(href="", page_id="1", anchor="top"))

        assert result.outcome is HookOutcome.HANDLED
        assert result.value == "../Home.md#top"

    def test_link_without_page_id_is_unhandled(self):
        result = self.resolver.resolve_link(LinkTarget(href="https://example.com"))

        assert result.outcome is HookOutcome.UNHANDLED

    def test_other_space_is_unhandled(self):
        result = self.resolver.resolve_link(LinkTarget(href="", page_id="77", space_key="OTHER"))

        assert result.outcome is HookOutcome.UNHANDLED

    def test_unknown_page_in_space_is_unresolved(self):
        result = self.resolver.resolve_link(LinkTarget(href="", page_id="77"))

        assert result.outcome is HookOutcome.UNRESOLVED
        assert "77" in result.detail

    def test_known_media_becomes_image(self):
        result = self.resolver.resolve_media(MediaTarget(attachment_id="att1", alt="Diagram"))

        assert result.is_handled
        assert result.value == "![Diagram](../assets/2/att1-a.png)"

    def test_unknown_media_is_unresolved(self):
        result = self.resolver.resolve_media(MediaTarget(attachment_id="att9"))

        assert result.is_unresolved


class TestReverseResolver:
    """Test cases for ReverseResolver."""

    def _resolver(self, space_dir, page_index=None, attachment_index=None):
        return ReverseResolver(
            str(space_dir),
            page_index or {},
            attachment_index or {},
            "https://example.atlassian.net/",
        )

    def test_indexed_page_becomes_page_url(self, tmp_path):
        (tmp_path / "Home.md").write_text("---\n---\n")
        resolver = self._resolver(tmp_path, {"Home.md": "1"})

        result = resolver.resolve_link("Home.md#intro", str(tmp_path / "Index.md"))

        assert result.is_handled
        assert result.value == "https://example.atlassian.net/wiki/pages/viewpage.action?pageId=1#intro"

    def test_relative_path_from_subdirectory(self, tmp_path):
        resolver = self._resolver(tmp_path, {"Home.md": "1"})

        result = resolver.resolve_link("../Home.md", str(tmp_path / "guides" / "setup.md"))

        assert result.value.endswith("pageId=1")

    def test_unpushed_page_resolves_to_placeholder(self, tmp_path):
        (tmp_path / "New Page.md").write_text("---\n---\n")
        resolver = self._resolver(tmp_path)

        result = resolver.resolve_link("New Page.md", str(tmp_path / "Home.md"))

        assert result.is_handled
        assert result.value == PLACEHOLDER_PAGE_PREFIX + "New%20Page.md"

    def test_missing_target_is_unresolved(self, tmp_path):
        resolver = self._resolver(tmp_path)

        result = resolver.resolve_link("missing.md", str(tmp_path / "Home.md"))

        assert result.is_unresolved

    def test_link_outside_space_is_unresolved(self, tmp_path):
        resolver = self._resolver(tmp_path / "space")

        result = resolver.resolve_link("../../etc/passwd", str(tmp_path / "space" / "Home.md"))

        assert result.is_unresolved
        assert "outside" in result.detail

    def test_external_link_is_unhandled(self, tmp_path):
        result = self._resolver(tmp_path).resolve_link("https://example.com", str(tmp_path / "a.md"))

        assert result.outcome is HookOutcome.UNHANDLED

    def test_indexed_asset_resolves_to_attachment_id(self, tmp_path):
        asset = tmp_path / "assets" / "1" / "att1-a.png"
        asset.parent.mkdir(parents=True)
        asset.write_bytes(b"png")
        resolver = self._resolver(tmp_path, attachment_index={"assets/1/att1-a.png": "att1"})

        result = resolver.resolve_media("assets/1/att1-a.png", "A", str(tmp_path / "Home.md"))

        assert result.is_handled
        assert result.media_id == "att1"
        assert result.media_type == "image"

    def test_new_asset_resolves_to_placeholder(self, tmp_path):
        asset = tmp_path / "assets" / "new.png"
        asset.parent.mkdir(parents=True)
        asset.write_bytes(b"png")

        result = self._resolver(tmp_path).resolve_media("assets/new.png", "", str(tmp_path / "Home.md"))

        assert result.media_id == PLACEHOLDER_ATTACHMENT_ID

    def test_missing_asset_is_unresolved(self, tmp_path):
        result = self._resolver(tmp_path).resolve_media("assets/none.png", "", str(tmp_path / "Home.md"))

        assert result.is_unresolved
