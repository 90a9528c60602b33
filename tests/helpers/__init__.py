"""Test helpers shared by unit and integration tests.

- fake_remote: in-memory RemoteService plus ADF builders
- git_test_utils: throwaway git repositories driven through the git CLI
- documents: synced Markdown files with frontmatter
"""

from .fake_remote import FakeRemote, TestClock
from .documents import markdown_page, write_page
from .git_test_utils import commit_all, git, init_repo, write_file

__all__ = [
    'FakeRemote',
    'TestClock',
    'commit_all',
    'git',
    'init_repo',
    'markdown_page',
    'write_file',
    'write_page',
]
