"""Content conversion between Confluence ADF and Markdown.

AdfToMarkdownConverter renders page bodies for the local tree and
MarkdownToAdfConverter builds page bodies for push. Both take an injected
resolver for cross-references and a strict flag.
"""

from .adf_models import AdfDocument, AdfMark, AdfNode
from .adf_parser import AdfParser
from .adf_to_markdown import AdfToMarkdownConverter, extract_page_id
from .markdown_to_adf import MarkdownToAdfConverter
from .resolution import (
    ForwardResolution,
    HookOutcome,
    LinkTarget,
    MediaTarget,
    ResolutionResult,
    ReverseResolution,
)

__all__ = [
    'AdfDocument',
    'AdfMark',
    'AdfNode',
    'AdfParser',
    'AdfToMarkdownConverter',
    'extract_page_id',
    'MarkdownToAdfConverter',
    'ForwardResolution',
    'HookOutcome',
    'LinkTarget',
    'MediaTarget',
    'ResolutionResult',
    'ReverseResolution',
]
