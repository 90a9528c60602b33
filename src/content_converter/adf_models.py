"""Data models for ADF (Atlassian Document Format) content.

ADF is the JSON document format Confluence stores page bodies in. The
models here are a thin typed layer over the JSON tree that the forward
converter renders from.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

# Node types that reference a binary attachment
ATTACHMENT_NODE_TYPES = ("media", "mediaInline", "image", "file")


@dataclass
class AdfMark:
    """Represents a text mark (formatting) in ADF.

    Attributes:
        type: Mark type (strong, em, link, code, strike, etc.)
        attrs: Mark-specific attributes
    """

    type: str
    attrs: Dict[str, Any] = field(default_factory=dict)


@dataclass
class AdfNode:
    """Represents a node in the ADF tree.

    Attributes:
        type: Node type (paragraph, heading, text, etc.)
        content: List of child nodes
        text: Text content (for text nodes)
        attrs: Node attributes
        marks: Text formatting marks
    """

    type: str
    content: List["AdfNode"] = field(default_factory=list)
    text: Optional[str] = None
    attrs: Dict[str, Any] = field(default_factory=dict)
    marks: List[AdfMark] = field(default_factory=list)

    def mark(self, mark_type: str) -> Optional[AdfMark]:
        """Return the first mark of the given type, if any."""
        for mark in self.marks:
            if mark.type == mark_type:
                return mark
        return None


@dataclass
class AdfDocument:
    """Represents a complete ADF document.

    Attributes:
        version: ADF schema version (usually 1)
        content: List of top-level block nodes
    """

    version: int = 1
    content: List[AdfNode] = field(default_factory=list)
