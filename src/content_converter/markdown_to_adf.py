"""Markdown to ADF conversion using the mistune AST.

The Markdown body is parsed with mistune (tables and strikethrough
enabled) into its token tree, which is then walked to build ADF nodes.
Relative link and image destinations go through a ReverseResolution so
local paths become Confluence page URLs and attachment IDs.
"""

import logging
from typing import Any, Dict, List, Optional
from urllib.parse import unquote

import mistune

from src.confluence_client.errors import UnresolvedReferenceError
from src.models.conversion_result import ConversionWarning, ReverseResult
from .resolution import ReverseResolution

logger = logging.getLogger(__name__)

_MARK_FOR_TOKEN = {
    "strong": "strong",
    "emphasis": "em",
    "strikethrough": "strike",
}


def _text(text: str, marks: List[Dict[str, Any]]) -> Dict[str, Any]:
    node: Dict[str, Any] = {"type": "text", "text": text}
    if marks:
        node["marks"] = [dict(m) for m in marks]
    return node


def _paragraph(content: List[Dict[str, Any]]) -> Dict[str, Any]:
    node: Dict[str, Any] = {"type": "paragraph"}
    if content:
        node["content"] = content
    return node


class MarkdownToAdfConverter:
    """Converts Markdown to ADF documents.

    Args:
        resolver: Resolves relative links and images (optional)
        strict: Raise on unresolved references instead of warning
    """

    def __init__(self, resolver: Optional[ReverseResolution] = None, strict: bool = False):
        self.resolver = resolver
        self.strict = strict
        self._markdown = mistune.create_markdown(
            renderer=None,
            plugins=["table", "strikethrough"],
        )
        self._source_path = ""
        self._warnings: List[ConversionWarning] = []

    def convert(self, markdown: str, source_path: str = "") -> ReverseResult:
        """Convert a Markdown body to an ADF document.

        Args:
            markdown: Markdown body (without frontmatter)
            source_path: Absolute path of the file, used to resolve relative references

        Returns:
            ReverseResult with the ADF document dict

        Raises:
            UnresolvedReferenceError: In strict mode, on an unresolved reference
        """
        self._source_path = source_path
        self._warnings = []

        tokens = self._markdown(markdown or "")
        content = self._blocks(tokens)
        logger.debug(
            f"Converted Markdown to ADF for {source_path or '<memory>'} "
            f"({len(content)} block(s), {len(self._warnings)} warning(s))"
        )
        return ReverseResult(
            adf={"type": "doc", "version": 1, "content": content},
            warnings=list(self._warnings),
        )

    # Blocks

    def _blocks(self, tokens: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        nodes: List[Dict[str, Any]] = []
        for token in tokens:
            nodes.extend(self._block(token))
        return nodes

    def _block(self, token: Dict[str, Any]) -> List[Dict[str, Any]]:
        token_type = token["type"]
        attrs = token.get("attrs") or {}

        if token_type in ("paragraph", "block_text"):
            return self._paragraph_or_media(token.get("children") or [])
        if token_type == "heading":
            node = {"type": "heading", "attrs": {"level": attrs.get("level", 1)}}
            content = self._inlines(token.get("children") or [], [])
            if content:
                node["content"] = content
            return [node]
        if token_type == "block_code":
            code = (token.get("raw") or "").rstrip("\n")
            node = {"type": "codeBlock"}
            info = (attrs.get("info") or "").strip()
            if info:
                node["attrs"] = {"language": info.split()[0]}
            if code:
                node["content"] = [{"type": "text", "text": code}]
            return [node]
        if token_type == "block_quote":
            return [{"type": "blockquote", "content": self._blocks(token.get("children") or [])}]
        if token_type == "list":
            return [self._list(token)]
        if token_type == "thematic_break":
            return [{"type": "rule"}]
        if token_type == "table":
            return [self._table(token)]
        if token_type == "block_html":
            raw = (token.get("raw") or "").strip()
            return [_paragraph([_text(raw, [])])] if raw else []
        if token_type == "blank_line":
            return []

        logger.debug(f"Skipping unsupported Markdown token '{token_type}'")
        return []

    def _paragraph_or_media(self, children: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        # A paragraph holding only images becomes block-level media
        images = [c for c in children if c["type"] == "image"]
        others = [
            c for c in children
            if c["type"] not in ("image", "softbreak", "linebreak")
            and not (c["type"] == "text" and not (c.get("raw") or "").strip())
        ]
        if images and not others:
            nodes = []
            for image in images:
                media = self._media(image)
                if media is None:
                    continue
                if media["type"] == "media":
                    nodes.append({"type": "mediaSingle", "attrs": {"layout": "center"}, "content": [media]})
                else:
                    nodes.append(_paragraph([media]))
            return nodes

        content = self._inlines(children, [])
        return [_paragraph(content)] if content else []

    def _list(self, token: Dict[str, Any]) -> Dict[str, Any]:
        attrs = token.get("attrs") or {}
        ordered = bool(attrs.get("ordered"))
        items = []
        for item in token.get("children") or []:
            content = self._blocks(item.get("children") or [])
            if not content or content[0]["type"] != "paragraph":
                content.insert(0, _paragraph([]))
            items.append({"type": "listItem", "content": content})

        node: Dict[str, Any] = {"type": "orderedList" if ordered else "bulletList", "content": items}
        if ordered:
            node["attrs"] = {"order": int(attrs.get("start") or 1)}
        return node

    def _table(self, token: Dict[str, Any]) -> Dict[str, Any]:
        rows = []
        for section in token.get("children") or []:
            if section["type"] == "table_head":
                rows.append(self._table_row(section.get("children") or [], "tableHeader"))
            elif section["type"] == "table_body":
                for row in section.get("children") or []:
                    rows.append(self._table_row(row.get("children") or [], "tableCell"))
        return {"type": "table", "content": rows}

    def _table_row(self, cells: List[Dict[str, Any]], cell_type: str) -> Dict[str, Any]:
        return {
            "type": "tableRow",
            "content": [
                {"type": cell_type, "content": [_paragraph(self._inlines(cell.get("children") or [], []))]}
                for cell in cells
            ],
        }

    # Inline content

    def _inlines(self, tokens: List[Dict[str, Any]], marks: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        nodes: List[Dict[str, Any]] = []
        for token in tokens:
            for node in self._inline(token, marks):
                previous = nodes[-1] if nodes else None
                if (
                    previous is not None
                    and previous["type"] == "text"
                    and node["type"] == "text"
                    and previous.get("marks") == node.get("marks")
                ):
                    previous["text"] += node["text"]
                else:
                    nodes.append(node)
        return nodes

    def _inline(self, token: Dict[str, Any], marks: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        token_type = token["type"]

        if token_type == "text":
            raw = token.get("raw") or ""
            return [_text(raw, marks)] if raw else []
        if token_type in _MARK_FOR_TOKEN:
            nested = marks + [{"type": _MARK_FOR_TOKEN[token_type]}]
            return self._inlines(token.get("children") or [], nested)
        if token_type == "codespan":
            # Code marks only combine with links
            kept = [m for m in marks if m["type"] == "link"]
            return [_text(token.get("raw") or "", kept + [{"type": "code"}])]
        if token_type == "link":
            return self._link(token, marks)
        if token_type == "image":
            media = self._media(token)
            if media is None:
                return []
            if media["type"] != "media":
                return [media]
            if media["attrs"].get("type") == "external":
                url = media["attrs"]["url"]
                link = {"type": "link", "attrs": {"href": url}}
                return [_text(media["attrs"].get("alt") or url, marks + [link])]
            return [dict(media, type="mediaInline")]
        if token_type == "linebreak":
            return [{"type": "hardBreak"}]
        if token_type == "softbreak":
            return [_text(" ", marks)]
        if token_type == "inline_html":
            raw = token.get("raw") or ""
            return [_text(raw, marks)] if raw else []

        logger.debug(f"Skipping unsupported inline token '{token_type}'")
        return self._inlines(token.get("children") or [], marks)

    def _link(self, token: Dict[str, Any], marks: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        attrs = token.get("attrs") or {}
        destination = unquote(attrs.get("url") or "")
        href = destination

        if self.resolver is not None and destination:
            result = self.resolver.resolve_link(destination, self._source_path)
            if result.is_handled:
                href = result.value
            elif result.is_unresolved:
                self._unresolved("link", destination, result.detail, "UNRESOLVED_LINK")

        link_attrs: Dict[str, Any] = {"href": href}
        if attrs.get("title"):
            link_attrs["title"] = attrs["title"]
        nested = marks + [{"type": "link", "attrs": link_attrs}]

        content = self._inlines(token.get("children") or [], nested)
        return content or [_text(href, nested)]

    def _media(self, token: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        attrs = token.get("attrs") or {}
        destination = unquote(attrs.get("url") or "")
        alt = _plain_text(token.get("children") or [])
        if not destination:
            return None

        if self.resolver is not None and destination:
            result = self.resolver.resolve_media(destination, alt, self._source_path)
            if result.is_handled:
                media_attrs: Dict[str, Any] = {
                    "type": "file",
                    "id": result.media_id,
                    "collection": "",
                }
                if alt:
                    media_attrs["alt"] = alt
                return {"type": "media", "attrs": media_attrs}
            if result.is_unresolved:
                self._unresolved("media", destination, result.detail, "UNRESOLVED_MEDIA")
                return _text(f"[Attachment: {alt or destination}]", [])

        media_attrs = {"type": "external", "url": destination}
        if alt:
            media_attrs["alt"] = alt
        return {"type": "media", "attrs": media_attrs}

    def _unresolved(self, kind: str, reference: str, detail: str, code: str) -> None:
        if self.strict:
            raise UnresolvedReferenceError(self._source_path, reference, kind, detail or None)
        message = f"unresolved {kind} reference '{reference}'"
        if detail:
            message += f": {detail}"
        logger.warning(f"{self._source_path}: {message}")
        self._warnings.append(ConversionWarning(self._source_path, code, message))


def _plain_text(tokens: List[Dict[str, Any]]) -> str:
    parts = []
    for token in tokens:
        if "raw" in token and token["type"] in ("text", "codespan"):
            parts.append(token["raw"])
        elif token.get("children"):
            parts.append(_plain_text(token["children"]))
    return "".join(parts)
