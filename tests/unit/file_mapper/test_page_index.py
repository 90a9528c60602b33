"""Unit tests for file_mapper.page_index module."""

import pytest

from src.file_mapper.page_index import build_page_index, is_markdown_path, iter_markdown_files, normalize_rel_path
from tests.helpers.documents import write_page


class TestPathHelpers:
    """Test cases for normalize_rel_path and is_markdown_path."""

    @pytest.mark.parametrize("path,expected", [
        ("docs/a.md", "docs/a.md"),
        ("./docs/a.md", "docs/a.md"),
        (".\\docs\\a.md", "docs/a.md"),
        ("/docs/a.md/", "docs/a.md"),
    ])
    def test_normalize(self, path, expected):
        assert normalize_rel_path(path) == expected

    @pytest.mark.parametrize("path,expected", [
        ("a.md", True),
        ("Guides/Setup.MD", True),
        ("assets/1/notes.md", False),
        ("image.png", False),
        ("assets", False),
    ])
    def test_is_markdown(self, path, expected):
        assert is_markdown_path(path) is expected


class TestPageIndex:
    """Test cases for iter_markdown_files and build_page_index."""

    @pytest.fixture
    def space_dir(self, tmp_path):
        write_page(tmp_path / "Home.md", "Home\n", title="Home", page_id="1")
        write_page(tmp_path / "Guides" / "Setup.md", "Setup\n", title="Setup", page_id="2")
        write_page(tmp_path / "Draft.md", "Draft\n", title="Draft")
        (tmp_path / "Broken.md").write_text("no frontmatter\n", encoding="utf-8")
        write_page(tmp_path / "assets" / "1" / "readme.md", "x\n", page_id="9")
        write_page(tmp_path / ".git" / "x.md", "x\n", page_id="8")
        (tmp_path / "notes.txt").write_text("x", encoding="utf-8")
        return tmp_path

    def test_iter_skips_assets_and_hidden_dirs(self, space_dir):
        assert list(iter_markdown_files(str(space_dir))) == [
            "Broken.md",
            "Draft.md",
            "Guides/Setup.md",
            "Home.md",
        ]

    def test_index_holds_pages_with_ids(self, space_dir):
        """Files without a page ID or with bad frontmatter are left out."""
        assert build_page_index(str(space_dir)) == {"Guides/Setup.md": "2", "Home.md": "1"}

    def test_empty_directory(self, tmp_path):
        assert build_page_index(str(tmp_path / "missing")) == {}
