"""Pytest configuration and fixtures for integration tests.

Integration tests drive PullCommand, PushCommand and DiffCommand end to
end against a real git repository and an in-memory remote space.
"""

import io
from datetime import datetime, timezone

import pytest
from rich.console import Console

from src.cli.diff_command import DiffCommand
from src.cli.output import OutputHandler
from src.cli.pull_command import PullCommand
from src.cli.push_command import PushCommand
from src.file_mapper.frontmatter_handler import FrontmatterHandler
from tests.helpers.fake_remote import SITE, FakeRemote, TestClock, doc, paragraph
from tests.helpers.git_test_utils import git, init_repo


class SyncRepo:
    """A git repository with one space directory synced to a FakeRemote."""

    def __init__(self, root):
        self.repo = init_repo(root / "repo")
        self.space_dir = self.repo / "TEAM"
        self.clock = TestClock(datetime(2024, 1, 15, 10, 0, tzinfo=timezone.utc))
        self.remote = FakeRemote(clock=self.clock)
        self.stream = io.StringIO()
        self.output = OutputHandler(
            verbosity=1,
            console=Console(file=self.stream, no_color=True, width=200),
        )

    def seed(self):
        """Create the standard three-page space on the remote."""
        self.remote.add_page("1", "Home", doc(paragraph("Welcome")))
        self.remote.add_page("2", "Getting Started", doc(paragraph("Steps")), parent_id="1")
        self.remote.add_page("3", "FAQ", doc(paragraph("Answers")), parent_id="1")

    def pull_command(self):
        return PullCommand(output_handler=self.output, remote=self.remote, clock=self.clock)

    def push_command(self):
        return PushCommand(output_handler=self.output, remote=self.remote, domain=SITE, clock=self.clock)

    def diff_command(self):
        return DiffCommand(output_handler=self.output, remote=self.remote)

    def path(self, rel_path):
        return self.space_dir.joinpath(*rel_path.split("/"))

    def read(self, rel_path):
        return FrontmatterHandler.read_document(str(self.path(rel_path)))

    def edit(self, rel_path, body):
        document = self.read(rel_path)
        document.body = body
        FrontmatterHandler.write_document(str(self.path(rel_path)), document)

    def git(self, *args):
        return git(self.repo, *args)

    def head(self):
        return self.git("rev-parse", "HEAD")

    def status(self):
        return self.git("status", "--porcelain")

    def tags(self):
        return self.git("tag", "--list", "confluence-sync/*").splitlines()

    @property
    def printed(self):
        return self.stream.getvalue()


@pytest.fixture
def sync_repo(tmp_path):
    """Repository whose TEAM directory has been pulled once."""
    repo = SyncRepo(tmp_path)
    repo.seed()
    repo.pull_command().pull(str(repo.space_dir), "TEAM")
    repo.remote.calls.clear()
    return repo


@pytest.fixture
def empty_repo(tmp_path):
    """Repository with a seeded remote that has not been pulled yet."""
    repo = SyncRepo(tmp_path)
    repo.seed()
    return repo
