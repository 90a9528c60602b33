"""Reference resolution contracts between the converters and the sync engine.

Converters never know about page indexes or attachment paths. They hand
every cross-reference to an injected resolver and act on a tri-state
answer:

    HANDLED     the resolver produced a replacement value
    UNHANDLED   not the resolver's concern; keep the reference as written
    UNRESOLVED  the resolver owns the reference but cannot map it

Only UNRESOLVED is subject to the strict/best-effort policy.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from src.models.conversion_result import ConversionWarning


class HookOutcome(Enum):
    HANDLED = "handled"
    UNHANDLED = "unhandled"
    UNRESOLVED = "unresolved"


@dataclass
class ResolutionResult:
    """Answer from a resolver.

    Attributes:
        outcome: Tri-state outcome
        value: Replacement href/destination (links) or Markdown (forward media)
        media_id: Attachment ID for reverse media resolution
        media_type: ADF media type for reverse media resolution
        detail: Why the reference could not be resolved
    """
    outcome: HookOutcome
    value: str = ""
    media_id: str = ""
    media_type: str = ""
    detail: str = ""

    @classmethod
    def handled(cls, value: str = "", media_id: str = "", media_type: str = "") -> "ResolutionResult":
        return cls(HookOutcome.HANDLED, value=value, media_id=media_id, media_type=media_type)

    @classmethod
    def unhandled(cls) -> "ResolutionResult":
        return cls(HookOutcome.UNHANDLED)

    @classmethod
    def unresolved(cls, detail: str = "") -> "ResolutionResult":
        return cls(HookOutcome.UNRESOLVED, detail=detail)

    @property
    def is_handled(self) -> bool:
        return self.outcome is HookOutcome.HANDLED

    @property
    def is_unresolved(self) -> bool:
        return self.outcome is HookOutcome.UNRESOLVED


@dataclass
class LinkTarget:
    """A link found in remote content.

    Attributes:
        href: Link href as stored remotely
        page_id: Target page ID when the link carries one
        space_key: Target space key when known
        anchor: Fragment within the target page
    """
    href: str
    page_id: str = ""
    space_key: str = ""
    anchor: str = ""


@dataclass
class MediaTarget:
    """A media node found in remote content.

    Attributes:
        attachment_id: Attachment ID from the node attributes
        node_id: Media file ID (used when no attachment ID is present)
        alt: Alt text
        filename: Original filename when known
    """
    attachment_id: str = ""
    node_id: str = ""
    alt: str = ""
    filename: str = ""

    @property
    def label(self) -> str:
        return self.filename or self.alt or self.attachment_id or self.node_id or "attachment"


class ForwardResolution(Protocol):
    """Resolves remote references while rendering Markdown."""

    def resolve_link(self, target: LinkTarget) -> ResolutionResult:
        ...

    def resolve_media(self, target: MediaTarget) -> ResolutionResult:
        ...


class ReverseResolution(Protocol):
    """Resolves local references while building ADF."""

    def resolve_link(self, destination: str, source_path: str) -> ResolutionResult:
        ...

    def resolve_media(self, destination: str, alt: str, source_path: str) -> ResolutionResult:
        ...

