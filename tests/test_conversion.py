"""Tests for markdown <-> tree conversion, tree positions and HTML rendering."""

import pytest

from isocanvas.editor.conversion import (
    build_content_from_document,
    build_document_from_content,
    parse_or_empty,
)
from isocanvas.editor.render import render_html
from isocanvas.editor.tree import (
    DiffType,
    diff_mark,
    iter_textblocks,
    node_size,
    text_content,
)


class TestBuildDocument:
    def test_heading_and_paragraph(self):
        doc = build_document_from_content("# Title\n\nHello world")
        assert [b["type"] for b in doc["content"]] == ["heading", "paragraph"]
        assert doc["content"][0]["attrs"] == {"level": 1}
        assert text_content(doc) == "TitleHello world"

    def test_inline_marks(self):
        doc = build_document_from_content("Hello **bold** and *em* and `code`")
        nodes = doc["content"][0]["content"]
        marked = {n["text"]: [m["type"] for m in n.get("marks", [])] for n in nodes}
        assert marked["bold"] == ["strong"]
        assert marked["em"] == ["em"]
        assert marked["code"] == ["code"]

    def test_link_mark_keeps_href(self):
        doc = build_document_from_content("See [docs](https://example.com)")
        link = doc["content"][0]["content"][1]
        assert link["text"] == "docs"
        assert link["marks"][0]["attrs"]["href"] == "https://example.com"

    def test_lists_wrap_items_in_paragraphs(self):
        doc = build_document_from_content("* one\n* two")
        lst = doc["content"][0]
        assert lst["type"] == "bullet_list"
        assert [item["content"][0]["type"] for item in lst["content"]] == ["paragraph", "paragraph"]

    def test_ordered_list_start(self):
        doc = build_document_from_content("3. three\n4. four")
        assert doc["content"][0]["type"] == "ordered_list"
        assert doc["content"][0]["attrs"]["order"] == 3

    def test_fenced_code_keeps_text_and_language(self):
        doc = build_document_from_content("```python\nprint(1)\n```")
        block = doc["content"][0]
        assert block["type"] == "code_block"
        assert block["attrs"]["language"] == "python"
        assert text_content(block) == "print(1)"

    def test_whitespace_collapsed(self):
        doc = build_document_from_content("Hello\nworld")
        assert text_content(doc) == "Hello world"

    @pytest.mark.parametrize("content", ["", "   ", None])
    def test_empty_content_gives_empty_paragraph(self, content):
        assert parse_or_empty(content) == {"type": "doc", "content": [{"type": "paragraph"}]}


class TestSerialize:
    @pytest.mark.parametrize(
        "markdown",
        [
            "# Title\n\nHello **world**",
            "* one\n* two",
            "1. one\n2. two",
            "> quoted",
            "```python\nprint(1)\n```",
            "Some *em* text\n\n---\n\nAfter",
        ],
    )
    def test_round_trip(self, markdown):
        assert build_content_from_document(build_document_from_content(markdown)) == markdown

    def test_special_characters_escaped(self):
        doc = {"type": "doc", "content": [{"type": "paragraph", "content": [{"type": "text", "text": "a*b"}]}]}
        assert build_content_from_document(doc) == "a\\*b"


class TestPositions:
    def test_textblock_content_starts(self):
        doc = build_document_from_content("# Title\n\nHello")
        starts = [start for _, start in iter_textblocks(doc)]
        # heading opens at 0, its text starts at 1; "Title" + 2 boundaries = 7
        assert starts == [1, 8]

    def test_nested_blocks(self):
        doc = build_document_from_content("* one")
        (_, start), = iter_textblocks(doc)
        # bullet_list(0) > list_item(1) > paragraph(2) > text at 3
        assert start == 3
        assert node_size(doc["content"][0]) == 9


class TestRenderHtml:
    def test_renders_marks(self):
        html = render_html(build_document_from_content("# T\n\nHello **world**"))
        assert html == "<h1>T</h1><p>Hello <strong>world</strong></p>"

    def test_escapes_text(self):
        doc = {"type": "doc", "content": [{"type": "paragraph", "content": [{"type": "text", "text": "<b>"}]}]}
        assert render_html(doc) == "<p>&lt;b&gt;</p>"

    def test_diff_marks_styled(self):
        doc = {
            "type": "doc",
            "content": [{
                "type": "paragraph",
                "content": [
                    {"type": "text", "text": "old", "marks": [diff_mark(DiffType.DELETED)]},
                    {"type": "text", "text": "new", "marks": [diff_mark(DiffType.INSERTED)]},
                    {"type": "text", "text": "same", "marks": [diff_mark(DiffType.UNCHANGED)]},
                ],
            }],
        }
        html = render_html(doc)
        assert '<span class="diff-deleted" style="background-color: rgba(255, 0, 0, 0.2); text-decoration: line-through;">old</span>' in html
        assert '<span class="diff-inserted" style="background-color: rgba(0, 255, 0, 0.2);">new</span>' in html
        assert '<span class="diff-unchanged">same</span>' in html
