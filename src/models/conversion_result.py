"""Conversion result data models."""

from dataclasses import dataclass, field
from typing import Any, Dict, List


@dataclass
class ConversionWarning:
    """Diagnostic raised during best-effort conversion.

    Attributes:
        path: File being converted
        code: Machine-readable code (UNRESOLVED_LINK, UNRESOLVED_MEDIA)
        message: Human-readable description
    """
    path: str
    code: str
    message: str


@dataclass
class ForwardResult:
    """Result of ADF to Markdown conversion.

    Attributes:
        markdown: Converted Markdown body
        warnings: Unresolved references that fell back to a best-effort rendering
    """
    markdown: str
    warnings: List[ConversionWarning] = field(default_factory=list)


@dataclass
class ReverseResult:
    """Result of Markdown to ADF conversion.

    Attributes:
        adf: ADF document as a dict, ready for JSON serialization
        warnings: Unresolved references kept as written (best-effort only)
    """
    adf: Dict[str, Any]
    warnings: List[ConversionWarning] = field(default_factory=list)
