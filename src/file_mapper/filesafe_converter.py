"""Filesafe path segment conversion.

Remote titles, IDs and attachment filenames become local path segments that
are valid on every common filesystem, including Windows.
"""

import re

INVALID_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')
SEPARATOR_RUNS = re.compile(r'[\s-]+')

WINDOWS_RESERVED_NAMES = frozenset(
    ['CON', 'PRN', 'AUX', 'NUL']
    + [f'COM{i}' for i in range(1, 10)]
    + [f'LPT{i}' for i in range(1, 10)]
)


class FilesafeConverter:
    """Converts remote names to filesafe path segments with case preservation.

    Conversion rules:
    - Characters invalid on Windows (<>:"/\\|?* and control chars) → hyphen
    - Leading/trailing dots and spaces → trimmed
    - Runs of whitespace and hyphens → single hyphen
    - Empty result → "untitled"
    - Windows reserved device names (CON, NUL, COM1, ...) → "-item" appended

    Examples:
        - "Customer Feedback" → "Customer-Feedback"
        - "API: Getting Started" → "API-Getting-Started"
        - "con" → "con-item"
    """

    @staticmethod
    def sanitize_segment(value: str) -> str:
        """Convert an arbitrary name into a single filesafe path segment.

        Examples:
            >>> FilesafeConverter.sanitize_segment("Q&A / Notes")
            'Q&A-Notes'
            >>> FilesafeConverter.sanitize_segment("   ")
            'untitled'
        """
        segment = value.strip()
        segment = INVALID_CHARS.sub('-', segment)
        segment = segment.strip('. ')
        segment = SEPARATOR_RUNS.sub('-', segment)
        segment = segment.strip('-')
        if not segment:
            segment = 'untitled'

        base = segment.split('.', 1)[0].upper()
        if base in WINDOWS_RESERVED_NAMES:
            segment = f"{segment}-item"
        return segment

    @staticmethod
    def title_to_filename(title: str) -> str:
        """Convert a page title to a Markdown filename.

        Examples:
            >>> FilesafeConverter.title_to_filename("Customer Feedback")
            'Customer-Feedback.md'
            >>> FilesafeConverter.title_to_filename("README.md")
            'README.md'
        """
        name = FilesafeConverter.sanitize_segment(title)
        if name.lower().endswith('.md'):
            return name
        return f"{name}.md"
