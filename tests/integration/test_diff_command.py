"""Integration tests for DiffCommand against a real git repository."""

from src.cli.models import ExitCode
from tests.helpers.fake_remote import doc, paragraph


class TestSpaceDiff:
    """Test cases for diffing a whole space."""

    def test_fresh_pull_has_no_differences(self, sync_repo):
        exit_code = sync_repo.diff_command().run(str(sync_repo.space_dir), "TEAM")

        assert exit_code == ExitCode.SUCCESS
        assert "No differences" in sync_repo.printed

    def test_local_edit_shows_as_removed_line(self, sync_repo):
        sync_repo.edit("FAQ.md", "Mine\n")

        summary = sync_repo.diff_command().diff(str(sync_repo.space_dir), "TEAM")

        assert "a/local/FAQ.md b/remote/FAQ.md" in summary.diff
        assert "-Mine" in summary.diff
        assert "+Answers" in summary.diff
        assert "Home.md" not in summary.diff

    def test_remote_edit_and_new_page(self, sync_repo):
        sync_repo.remote.edit_page("3", doc(paragraph("Theirs")))
        sync_repo.remote.add_page("4", "Guide", doc(paragraph("Read me")), parent_id="1")

        summary = sync_repo.diff_command().diff(str(sync_repo.space_dir), "TEAM")

        assert "+Theirs" in summary.diff
        assert "-Answers" in summary.diff
        assert "b/remote/Guide.md" in summary.diff
        assert "+Read me" in summary.diff

    def test_repository_is_left_untouched(self, sync_repo):
        head = sync_repo.head()
        sync_repo.edit("FAQ.md", "Mine\n")
        sync_repo.remote.edit_page("1", doc(paragraph("Theirs")))
        state = sync_repo.path(".confluence-state.json").read_text()

        sync_repo.diff_command().run(str(sync_repo.space_dir), "TEAM")

        assert sync_repo.head() == head
        assert sync_repo.status() == "M TEAM/FAQ.md"
        assert "Mine" in sync_repo.read("FAQ.md").body
        assert "Welcome" in sync_repo.read("Home.md").body
        assert sync_repo.path(".confluence-state.json").read_text() == state
        assert sync_repo.remote.writes() == []

    def test_diff_is_printed(self, sync_repo):
        sync_repo.edit("FAQ.md", "Mine\n")

        exit_code = sync_repo.diff_command().run(str(sync_repo.space_dir), "TEAM")

        assert exit_code == ExitCode.SUCCESS
        assert "-Mine" in sync_repo.printed
        assert "+Answers" in sync_repo.printed


class TestPageDiff:
    """Test cases for diff --page."""

    def test_only_the_page_is_compared(self, sync_repo):
        sync_repo.edit("FAQ.md", "Mine\n")
        sync_repo.edit("Home.md", "Also mine\n")

        summary = sync_repo.diff_command().diff(str(sync_repo.space_dir), "TEAM", page_id="3")

        assert "-Mine" in summary.diff
        assert "Home.md" not in summary.diff
        assert [c[1] for c in sync_repo.remote.calls if c[0] == "get_page"] == ["3"]

    def test_page_missing_remotely(self, sync_repo):
        del sync_repo.remote.pages["3"]

        summary = sync_repo.diff_command().diff(str(sync_repo.space_dir), "TEAM", page_id="3")

        assert [d.code for d in summary.diagnostics] == ["MISSING_REMOTE_PAGE"]
        assert summary.diagnostics[0].path == "FAQ.md"
        assert "deleted file mode" in summary.diff
        assert "-Answers" in summary.diff

    def test_unknown_page_is_general_error(self, sync_repo):
        exit_code = sync_repo.diff_command().run(str(sync_repo.space_dir), "TEAM", page_id="999")

        assert exit_code == ExitCode.GENERAL_ERROR
        assert "Page 999" in sync_repo.printed
