"""ADF to Markdown conversion.

Renders a Confluence ADF body as CommonMark/GFM. Page links and media nodes
are passed to a ForwardResolution so the caller can rewrite them to local
relative paths. In best-effort mode an unresolved reference becomes a
ConversionWarning plus a fallback rendering; in strict mode it raises
UnresolvedReferenceError.
"""

import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union
from urllib.parse import parse_qs, urlparse

from src.confluence_client.errors import UnresolvedReferenceError
from src.models.conversion_result import ConversionWarning, ForwardResult
from .adf_models import AdfNode
from .adf_parser import AdfParser
from .resolution import ForwardResolution, LinkTarget, MediaTarget

logger = logging.getLogger(__name__)

# Characters with inline meaning in CommonMark
_INLINE_ESCAPE = re.compile(r"([\\`*_\[\]<~])")
# Line starts that would otherwise open a block construct
_BLOCK_START = re.compile(r"^(\s*)(#{1,6}(?=\s|$)|>|[-+](?=\s))")
_ORDERED_START = re.compile(r"^(\s*\d+)([.)])(?=\s)")
_PAGES_SEGMENT = re.compile(r"/pages/(\d+)(?:/|$)")

# Inline marks in the order they are opened
_MARK_DELIMITERS = (("strong", "**"), ("em", "*"), ("strike", "~~"))


def extract_page_id(href: str) -> str:
    """Extract a page ID from a Confluence page URL.

    Example:
        >>> extract_page_id("https://x.atlassian.net/wiki/spaces/T/pages/123/Title")
        '123'
        >>> extract_page_id("/wiki/pages/viewpage.action?pageId=42")
        '42'
    """
    if not href:
        return ""
    try:
        parsed = urlparse(href)
    except ValueError:
        return ""
    ids = parse_qs(parsed.query).get("pageId")
    if ids and ids[0].strip():
        return ids[0].strip()
    match = _PAGES_SEGMENT.search(parsed.path)
    return match.group(1) if match else ""


def escape_text(text: str) -> str:
    return _INLINE_ESCAPE.sub(r"\\\1", text)


class AdfToMarkdownConverter:
    """Converts ADF documents to Markdown.

    Args:
        resolver: Resolves page links and media to local paths (optional)
        strict: Raise on unresolved references instead of warning
    """

    def __init__(self, resolver: Optional[ForwardResolution] = None, strict: bool = False):
        self.resolver = resolver
        self.strict = strict
        self._parser = AdfParser()
        self._source_path = ""
        self._warnings: List[ConversionWarning] = []

    def convert(self, adf: Union[str, bytes, Dict[str, Any], None], source_path: str = "") -> ForwardResult:
        """Convert an ADF body to Markdown.

        Args:
            adf: ADF document (dict or JSON string); None renders empty
            source_path: Path of the file being generated, for diagnostics

        Returns:
            ForwardResult with Markdown ending in a single newline (or empty)

        Raises:
            ValueError: If the ADF is malformed
            UnresolvedReferenceError: In strict mode, on an unresolved reference
        """
        self._source_path = source_path
        self._warnings = []

        document = self._parser.parse(adf)
        markdown = self._render_blocks(document.content).strip("\n")
        if markdown:
            markdown += "\n"

        logger.debug(
            f"Converted ADF to Markdown for {source_path or '<memory>'} "
            f"({len(self._warnings)} warning(s))"
        )
        return ForwardResult(markdown=markdown, warnings=list(self._warnings))

    # Blocks

    def _render_blocks(self, nodes: List[AdfNode]) -> str:
        parts = [self._render_block(node) for node in nodes]
        return "\n\n".join(p for p in parts if p.strip())

    def _render_block(self, node: AdfNode) -> str:
        node_type = node.type

        if node_type == "paragraph":
            return _escape_block_start(self._render_inline(node.content))
        if node_type == "heading":
            level = min(max(int(node.attrs.get("level", 1) or 1), 1), 6)
            return f"{'#' * level} {self._render_inline(node.content).strip()}"
        if node_type == "bulletList":
            return self._render_list(node, ordered=False)
        if node_type == "orderedList":
            return self._render_list(node, ordered=True)
        if node_type == "codeBlock":
            language = node.attrs.get("language") or ""
            code = "".join(child.text or "" for child in node.content)
            fence = "````" if "```" in code else "```"
            return f"{fence}{language}\n{code}\n{fence}"
        if node_type in ("blockquote", "panel"):
            inner = self._render_blocks(node.content)
            return "\n".join(f"> {line}" if line else ">" for line in inner.split("\n"))
        if node_type in ("expand", "nestedExpand"):
            title = node.attrs.get("title") or ""
            inner = self._render_blocks(node.content)
            return f"**{escape_text(title)}**\n\n{inner}" if title else inner
        if node_type == "rule":
            return "---"
        if node_type == "table":
            return self._render_table(node)
        if node_type in ("mediaSingle", "mediaGroup"):
            rendered = [self._render_media(child) for child in node.content if child.type == "media"]
            return "\n\n".join(r for r in rendered if r)
        if node_type in ("extension", "bodiedExtension"):
            key = node.attrs.get("extensionKey") or "extension"
            inner = self._render_blocks(node.content)
            marker = f"<!-- confluence macro: {key} -->"
            return f"{marker}\n\n{inner}" if inner else marker

        logger.debug(f"Rendering unknown block node '{node_type}' by content")
        if node.content and node.content[0].is_block:
            return self._render_blocks(node.content)
        return self._render_inline(node.content or [node])

    def _render_list(self, node: AdfNode, ordered: bool) -> str:
        start = int(node.attrs.get("order", 1) or 1) if ordered else 1
        lines: List[str] = []
        for offset, item in enumerate(child for child in node.content if child.type == "listItem"):
            marker = f"{start + offset}. " if ordered else "- "
            body = self._render_list_item(item)
            indent = " " * len(marker)
            item_lines = body.split("\n") if body else [""]
            lines.append(marker + item_lines[0])
            lines.extend(indent + line if line else "" for line in item_lines[1:])
        return "\n".join(lines)

    def _render_list_item(self, item: AdfNode) -> str:
        # Tight rendering: nested lists follow the item text on the next line
        parts: List[str] = []
        for child in item.content:
            rendered = self._render_block(child)
            if not rendered.strip():
                continue
            if parts and child.type not in ("bulletList", "orderedList"):
                parts.append("")
            parts.append(rendered)
        return "\n".join(parts)

    def _render_table(self, node: AdfNode) -> str:
        rows: List[List[str]] = []
        for row in node.content:
            if row.type != "tableRow":
                continue
            cells = [
                self._render_cell(cell)
                for cell in row.content
                if cell.type in ("tableCell", "tableHeader")
            ]
            rows.append(cells)
        if not rows:
            return ""

        width = max(len(r) for r in rows)
        rows = [r + [""] * (width - len(r)) for r in rows]
        header, body = rows[0], rows[1:]
        lines = [
            "| " + " | ".join(header) + " |",
            "|" + "|".join(" --- " for _ in header) + "|",
        ]
        lines.extend("| " + " | ".join(r) + " |" for r in body)
        return "\n".join(lines)

    def _render_cell(self, cell: AdfNode) -> str:
        texts = []
        for child in cell.content:
            if child.type == "paragraph":
                texts.append(self._render_inline(child.content))
            else:
                texts.append(self._render_block(child).replace("\n", " "))
        return " ".join(t.strip() for t in texts if t.strip()).replace("|", "\\|")

    # Inline content

    def _render_inline(self, nodes: List[AdfNode]) -> str:
        out: List[str] = []
        index = 0
        while index < len(nodes):
            node = nodes[index]
            link = node.mark("link")
            if node.type == "text" and link is not None:
                # Adjacent text nodes sharing one link render as a single link
                run = [node]
                index += 1
                while index < len(nodes):
                    nxt = nodes[index].mark("link")
                    if nodes[index].type != "text" or nxt is None or nxt.attrs != link.attrs:
                        break
                    run.append(nodes[index])
                    index += 1
                label = "".join(self._render_text(n, skip_link=True) for n in run)
                out.append(self._render_link(label, link.attrs))
                continue
            out.append(self._render_inline_node(node))
            index += 1
        return "".join(out)

    def _render_inline_node(self, node: AdfNode) -> str:
        node_type = node.type
        attrs = node.attrs

        if node_type == "text":
            return self._render_text(node)
        if node_type == "hardBreak":
            return "\\\n"
        if node_type == "inlineCard":
            url = attrs.get("url") or ""
            return self._render_link(escape_text(url), {"href": url}) if url else ""
        if node_type == "mention":
            return escape_text(attrs.get("text") or f"@{attrs.get('id', '')}")
        if node_type == "emoji":
            return attrs.get("text") or attrs.get("shortName") or ""
        if node_type == "status":
            return escape_text(attrs.get("text") or "")
        if node_type == "date":
            return _render_date(attrs.get("timestamp"))
        if node_type in ("mediaInline", "media"):
            return self._render_media(node)
        if node_type == "inlineExtension":
            return f"<!-- confluence macro: {attrs.get('extensionKey') or 'extension'} -->"

        if node.content:
            return self._render_inline(node.content)
        return escape_text(node.text or "")

    def _render_text(self, node: AdfNode, skip_link: bool = False) -> str:
        text = node.text or ""
        if not text:
            return ""

        if node.mark("code") is not None:
            rendered = _code_span(text)
        else:
            rendered = escape_text(text)

        mark_types = {m.type for m in node.marks}
        for mark_type, delimiter in _MARK_DELIMITERS:
            if mark_type in mark_types:
                # Delimiters cannot sit against whitespace
                stripped = rendered.strip()
                if stripped:
                    lead = rendered[:len(rendered) - len(rendered.lstrip())]
                    trail = rendered[len(rendered.rstrip()):]
                    rendered = f"{lead}{delimiter}{stripped}{delimiter}{trail}"

        if not skip_link:
            link = node.mark("link")
            if link is not None:
                rendered = self._render_link(rendered, link.attrs)
        return rendered

    def _render_link(self, label: str, attrs: Dict[str, Any]) -> str:
        href = str(attrs.get("href") or "")
        page_id = str(attrs.get("pageId") or "") or extract_page_id(href)
        anchor = str(attrs.get("anchor") or "")
        if not anchor and "#" in href:
            anchor = href.split("#", 1)[1]

        if self.resolver is not None:
            target = LinkTarget(
                href=href,
                page_id=page_id,
                space_key=str(attrs.get("spaceKey") or ""),
                anchor=anchor,
            )
            result = self.resolver.resolve_link(target)
            if result.is_handled:
                href = result.value
            elif result.is_unresolved:
                self._unresolved("link", page_id or href, result.detail, "UNRESOLVED_LINK")

        label = label or escape_text(href)
        return f"[{label}]({_link_destination(href)})"

    def _render_media(self, node: AdfNode) -> str:
        attrs = node.attrs
        target = _media_target(attrs)

        if attrs.get("type") == "external" and attrs.get("url"):
            return f"![{escape_text(target.alt)}]({_link_destination(attrs['url'])})"

        if self.resolver is not None:
            result = self.resolver.resolve_media(target)
            if result.is_handled:
                return result.value
            if result.is_unresolved:
                reference = target.attachment_id or target.node_id
                self._unresolved("media", reference, result.detail, "UNRESOLVED_MEDIA")

        return f"[Attachment: {escape_text(target.label)}]"

    def _unresolved(self, kind: str, reference: str, detail: str, code: str) -> None:
        if self.strict:
            raise UnresolvedReferenceError(self._source_path, reference, kind, detail or None)
        message = f"unresolved {kind} reference '{reference}'"
        if detail:
            message += f": {detail}"
        logger.warning(f"{self._source_path}: {message}")
        self._warnings.append(ConversionWarning(self._source_path, code, message))


def _media_target(attrs: Dict[str, Any]) -> MediaTarget:
    def first(*keys: str) -> str:
        for key in keys:
            value = attrs.get(key)
            if value is not None and str(value).strip():
                return str(value).strip()
        return ""

    return MediaTarget(
        attachment_id=first("attachmentId", "attachmentID"),
        node_id=first("id", "mediaId", "fileId"),
        alt=first("alt"),
        filename=first("filename", "fileName", "name", "__fileName"),
    )


def _escape_block_start(text: str) -> str:
    text = _BLOCK_START.sub(r"\1\\\2", text, count=1)
    return _ORDERED_START.sub(r"\1\\\2", text, count=1)


def _code_span(text: str) -> str:
    longest = max((len(m) for m in re.findall(r"`+", text)), default=0)
    fence = "`" * (longest + 1)
    if text.startswith("`") or text.endswith("`"):
        return f"{fence} {text} {fence}"
    return f"{fence}{text}{fence}"


def _link_destination(href: str) -> str:
    if not href or re.search(r"[\s()<>]", href):
        return f"<{href}>"
    return href


def _render_date(timestamp: Any) -> str:
    try:
        millis = int(timestamp)
    except (TypeError, ValueError):
        return escape_text(str(timestamp or ""))
    return datetime.fromtimestamp(millis / 1000, tz=timezone.utc).strftime("%Y-%m-%d")

