"""Unit tests for content_converter.adf_to_markdown module."""

import pytest

from src.confluence_client.errors import UnresolvedReferenceError
from src.content_converter.adf_to_markdown import AdfToMarkdownConverter, extract_page_id
from src.content_converter.resolution import ResolutionResult
from tests.helpers.fake_remote import doc, heading, media, paragraph, text


def link(href, **attrs):
    return {"type": "link", "attrs": dict(href=href, **attrs)}


def bullet_list(*items):
    return {"type": "bulletList", "content": [{"type": "listItem", "content": [paragraph(i)]} for i in items]}


class StubResolver:
    """Forward resolver returning canned results and recording targets."""

    def __init__(self, link_result=None, media_result=None):
        self.link_result = link_result or ResolutionResult.unhandled()
        self.media_result = media_result or ResolutionResult.unhandled()
        self.links = []
        self.media = []

    def resolve_link(self, target):
        self.links.append(target)
        return self.link_result

    def resolve_media(self, target):
        self.media.append(target)
        return self.media_result


class TestAdfToMarkdownBlocks:
    """Test cases for block rendering."""

    def setup_method(self):
        self.converter = AdfToMarkdownConverter()

    def convert(self, *blocks):
        return self.converter.convert(doc(*blocks)).markdown

    def test_empty_body(self):
        assert self.converter.convert(None).markdown == ""
        assert self.convert() == ""

    def test_heading_and_paragraph(self):
        assert self.convert(heading("Title", 2), paragraph("Hello")) == "## Title\n\nHello\n"

    def test_bullet_list(self):
        assert self.convert(bullet_list("one", "two")) == "- one\n- two\n"

    def test_ordered_list_keeps_start(self):
        ordered = bullet_list("a", "b")
        ordered["type"] = "orderedList"
        ordered["attrs"] = {"order": 3}

        assert self.convert(ordered) == "3. a\n4. b\n"

    def test_nested_list_is_indented(self):
        outer = bullet_list("parent")
        outer["content"][0]["content"].append(bullet_list("child"))

        assert self.convert(outer) == "- parent\n  - child\n"

    def test_code_block(self):
        block = {"type": "codeBlock", "attrs": {"language": "python"}, "content": [text("print(1)")]}

        assert self.convert(block) == "```python\nprint(1)\n```\n"

    def test_code_block_containing_fence(self):
        block = {"type": "codeBlock", "content": [text("```")]}

        assert self.convert(block) == "````\n```\n````\n"

    def test_table(self):
        def row(cell_type, *values):
            return {"type": "tableRow", "content": [{"type": cell_type, "content": [paragraph(v)]} for v in values]}

        table = {"type": "table", "content": [row("tableHeader", "A", "B"), row("tableCell", "1", "a|b")]}

        assert self.convert(table) == "| A | B |\n| --- | --- |\n| 1 | a\\|b |\n"

    def test_blockquote(self):
        quote = {"type": "blockquote", "content": [paragraph("first"), paragraph("second")]}

        assert self.convert(quote) == "> first\n>\n> second\n"

    def test_rule(self):
        assert self.convert(paragraph("a"), {"type": "rule"}) == "a\n\n---\n"

    def test_macro_becomes_comment(self):
        macro = {"type": "extension", "attrs": {"extensionKey": "toc"}}

        assert self.convert(macro) == "<!-- confluence macro: toc -->\n"

    def test_placeholder_nodes_are_dropped(self):
        assert self.convert({"type": "placeholder", "attrs": {"text": "Type here"}}, paragraph("x")) == "x\n"

    def test_malformed_document(self):
        with pytest.raises(ValueError):
            self.converter.convert({"type": "paragraph"})


class TestAdfToMarkdownInline:
    """Test cases for inline rendering."""

    def setup_method(self):
        self.converter = AdfToMarkdownConverter()

    def convert(self, *content):
        return self.converter.convert(doc(paragraph(*content))).markdown

    def test_marks(self):
        rendered = self.convert(
            text("bold", {"type": "strong"}), " ",
            text("it", {"type": "em"}), " ",
            text("gone", {"type": "strike"}), " ",
            text("x", {"type": "code"}),
        )

        assert rendered == "**bold** *it* ~~gone~~ `x`\n"

    def test_mark_delimiters_stay_inside_whitespace(self):
        assert self.convert("a", text(" bold ", {"type": "strong"}), "b") == "a **bold** b\n"

    def test_special_characters_are_escaped(self):
        assert self.convert("a*b_[c]") == "a\\*b\\_\\[c\\]\n"

    def test_block_start_is_escaped(self):
        assert self.convert("# not a heading") == "\\# not a heading\n"
        assert self.convert("1. not a list") == "1\\. not a list\n"

    def test_hard_break(self):
        assert self.convert("a", {"type": "hardBreak"}, "b") == "a\\\nb\n"

    def test_external_link(self):
        assert self.convert(text("site", link("https://example.com/x"))) == "[site](https://example.com/x)\n"

    def test_link_run_renders_once(self):
        shared = link("https://example.com")
        rendered = self.convert(text("a ", shared), text("b", {"type": "strong"}, shared))

        assert rendered == "[a **b**](https://example.com)\n"

    def test_destination_with_spaces_is_bracketed(self):
        assert self.convert(text("x", link("a b.md"))) == "[x](<a b.md>)\n"

    def test_mention_and_status(self):
        rendered = self.convert(
            {"type": "mention", "attrs": {"id": "u1", "text": "@Ann"}}, " ",
            {"type": "status", "attrs": {"text": "DONE"}},
        )

        assert rendered == "@Ann DONE\n"

    def test_date(self):
        assert self.convert({"type": "date", "attrs": {"timestamp": "1705312800000"}}) == "2024-01-15\n"


class TestAdfToMarkdownResolution:
    """Test cases for link and media resolution."""

    def test_handled_link_is_rewritten(self):
        resolver = StubResolver(link_result=ResolutionResult.handled("Other.md#top"))
        body = doc(paragraph(text("see", link("https://x.atlassian.net/wiki/spaces/T/pages/42/Other#top"))))

        result = AdfToMarkdownConverter(resolver=resolver).convert(body, "Page.md")

        assert result.markdown == "[see](Other.md#top)\n"
        target = resolver.links[0]
        assert (target.page_id, target.anchor) == ("42", "top")

    def test_unhandled_link_is_kept(self):
        resolver = StubResolver()
        body = doc(paragraph(text("x", link("https://example.com"))))

        result = AdfToMarkdownConverter(resolver=resolver).convert(body)

        assert result.markdown == "[x](https://example.com)\n"
        assert result.warnings == []

    def test_unresolved_link_warns_in_best_effort(self):
        resolver = StubResolver(link_result=ResolutionResult.unresolved("page 42 not in space"))
        body = doc(paragraph(text("x", link("/wiki/pages/viewpage.action?pageId=42"))))

        result = AdfToMarkdownConverter(resolver=resolver).convert(body, "Page.md")

        assert result.markdown == "[x](/wiki/pages/viewpage.action?pageId=42)\n"
        assert [(w.path, w.code) for w in result.warnings] == [("Page.md", "UNRESOLVED_LINK")]

    def test_unresolved_link_raises_in_strict(self):
        resolver = StubResolver(link_result=ResolutionResult.unresolved())
        body = doc(paragraph(text("x", link("/wiki/pages/viewpage.action?pageId=42"))))

        with pytest.raises(UnresolvedReferenceError) as exc_info:
            AdfToMarkdownConverter(resolver=resolver, strict=True).convert(body, "Page.md")

        assert exc_info.value.reference == "42"
        assert exc_info.value.kind == "link"

    def test_handled_media(self):
        resolver = StubResolver(media_result=ResolutionResult.handled("![a.png](assets/1/att1-a.png)"))

        result = AdfToMarkdownConverter(resolver=resolver).convert(doc(media("att1", "a.png", "1")))

        assert result.markdown == "![a.png](assets/1/att1-a.png)\n"
        assert resolver.media[0].filename == "a.png"

    def test_unresolved_media_falls_back(self):
        resolver = StubResolver(media_result=ResolutionResult.unresolved())

        result = AdfToMarkdownConverter(resolver=resolver).convert(doc(media("att1", "a.png")))

        assert result.markdown == "[Attachment: a.png]\n"
        assert result.warnings[0].code == "UNRESOLVED_MEDIA"

    def test_external_media(self):
        node = {"type": "mediaSingle", "content": [
            {"type": "media", "attrs": {"type": "external", "url": "https://example.com/a.png", "alt": "pic"}},
        ]}

        assert AdfToMarkdownConverter().convert(doc(node)).markdown == "![pic](https://example.com/a.png)\n"


class TestExtractPageId:
    """Test cases for extract_page_id function."""

    @pytest.mark.parametrize("href,expected", [
        ("https://x.atlassian.net/wiki/spaces/T/pages/123/Title", "123"),
        ("https://x.atlassian.net/wiki/spaces/T/pages/123", "123"),
        ("/wiki/pages/viewpage.action?pageId=42", "42"),
        ("https://example.com/docs", ""),
        ("", ""),
    ])
    def test_extract(self, href, expected):
        assert extract_page_id(href) == expected
