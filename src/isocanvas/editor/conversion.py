"""Markdown <-> document tree conversion.

Markdown is rendered to HTML with Python-Markdown and the HTML is walked
with BeautifulSoup into the tree format described in ``editor.tree``.
Whitespace in inline content is collapsed the way a browser DOM parser
would; code blocks keep their text verbatim.
"""

import re
from typing import Iterable, Optional

import markdown
from bs4 import BeautifulSoup, NavigableString, Tag
from bs4.element import Comment

from .tree import (
    Node,
    children,
    empty_document,
    is_text,
    merge_text_nodes,
    sort_marks,
    text_node,
)

_MARKDOWN_EXTENSIONS = ["fenced_code", "sane_lists"]

_WHITESPACE_RE = re.compile(r"[ \t\r\n]+")

_HEADING_TAGS = {"h1": 1, "h2": 2, "h3": 3, "h4": 4, "h5": 5, "h6": 6}
_BLOCK_TAGS = frozenset(
    {"p", "blockquote", "pre", "hr", "ul", "ol", "li", "div", "table", "thead",
     "tbody", "tr", "td", "th", "section", "article"} | set(_HEADING_TAGS)
)
_MARK_TAGS = {"em": "em", "i": "em", "strong": "strong", "b": "strong", "code": "code"}

# Characters with inline meaning in markdown; escaped when serializing text.
_ESCAPE_RE = re.compile(r"([\\`*_\[\]])")


# ---------------------------------------------------------------------------
# Markdown -> tree
# ---------------------------------------------------------------------------


def build_document_from_content(content: str) -> Node:
    """Parse markdown *content* into a document tree."""
    html = markdown.markdown(content or "", extensions=_MARKDOWN_EXTENSIONS)
    soup = BeautifulSoup(html, "html.parser")
    blocks = _parse_blocks(soup.children)
    if not blocks:
        return empty_document()
    return {"type": "doc", "content": blocks}


def _parse_blocks(elements: Iterable) -> list[Node]:
    blocks: list[Node] = []
    pending_inline: list = []

    def flush_inline() -> None:
        if pending_inline:
            inline = _finish_inline(_parse_inline_all(pending_inline, []))
            if inline:
                blocks.append({"type": "paragraph", "content": inline})
            pending_inline.clear()

    for el in elements:
        if isinstance(el, Comment):
            continue
        if isinstance(el, Tag) and el.name in _BLOCK_TAGS:
            flush_inline()
            block = _parse_block(el)
            if block is None:
                continue
            if isinstance(block, list):
                blocks.extend(block)
            else:
                blocks.append(block)
        else:
            pending_inline.append(el)
    flush_inline()
    return blocks


def _parse_block(el: Tag):
    name = el.name

    if name == "p":
        return {"type": "paragraph", **_content_dict(_finish_inline(_parse_inline_all(el.children, [])))}

    if name in _HEADING_TAGS:
        inline = _finish_inline(_parse_inline_all(el.children, []))
        return {"type": "heading", "attrs": {"level": _HEADING_TAGS[name]}, **_content_dict(inline)}

    if name == "pre":
        code = el.find("code")
        language = None
        if isinstance(code, Tag):
            for cls in code.get("class") or []:
                if cls.startswith("language-"):
                    language = cls[len("language-"):]
        text = el.get_text().rstrip("\n")
        node: Node = {"type": "code_block", "attrs": {"language": language}}
        if text:
            node["content"] = [text_node(text)]
        return node

    if name == "hr":
        return {"type": "horizontal_rule"}

    if name == "blockquote":
        return {"type": "blockquote", "content": _parse_blocks(el.children) or [{"type": "paragraph"}]}

    if name in ("ul", "ol"):
        items = [_parse_list_item(li) for li in el.find_all("li", recursive=False)]
        if not items:
            return None
        if name == "ul":
            return {"type": "bullet_list", "content": items}
        try:
            order = int(el.get("start", 1))
        except (TypeError, ValueError):
            order = 1
        return {"type": "ordered_list", "attrs": {"order": order}, "content": items}

    if name == "li":
        return _parse_list_item(el)

    # Tables and generic containers are flattened into their blocks.
    return _parse_blocks(el.children)


def _parse_list_item(li: Tag) -> Node:
    blocks = _parse_blocks(li.children)
    if not blocks or blocks[0]["type"] != "paragraph":
        blocks.insert(0, {"type": "paragraph"})
    return {"type": "list_item", "content": blocks}


def _content_dict(inline: list[Node]) -> dict:
    return {"content": inline} if inline else {}


def _parse_inline_all(elements: Iterable, marks: list[dict]) -> list[Node]:
    nodes: list[Node] = []
    for el in elements:
        nodes.extend(_parse_inline(el, marks))
    return nodes


def _parse_inline(el, marks: list[dict]) -> list[Node]:
    if isinstance(el, Comment):
        return []
    if isinstance(el, NavigableString):
        text = _WHITESPACE_RE.sub(" ", str(el))
        return [text_node(text, list(marks))] if text else []
    if not isinstance(el, Tag):
        return []

    name = el.name
    if name == "br":
        return [{"type": "hard_break"}]
    if name == "img":
        return [{
            "type": "image",
            "attrs": {"src": el.get("src", ""), "alt": el.get("alt"), "title": el.get("title")},
        }]
    if name in _MARK_TAGS:
        return _parse_inline_all(el.children, marks + [{"type": _MARK_TAGS[name]}])
    if name == "a":
        link = {"type": "link", "attrs": {"href": el.get("href", ""), "title": el.get("title")}}
        return _parse_inline_all(el.children, marks + [link])
    return _parse_inline_all(el.children, marks)


def _finish_inline(nodes: list[Node]) -> list[Node]:
    """Merge runs, collapse spaces across node boundaries, trim block edges."""
    nodes = merge_text_nodes(nodes)
    cleaned: list[Node] = []
    for node in nodes:
        if is_text(node):
            text = node["text"]
            if text.startswith(" ") and (not cleaned or _ends_with_space(cleaned[-1])):
                text = text.lstrip(" ")
            if not text:
                continue
            node = {**node, "text": text}
        cleaned.append(node)

    if cleaned and is_text(cleaned[-1]):
        text = cleaned[-1]["text"].rstrip(" ")
        if text:
            cleaned[-1] = {**cleaned[-1], "text": text}
        else:
            cleaned.pop()
    return merge_text_nodes(cleaned)


def _ends_with_space(node: Node) -> bool:
    # A hard break swallows the space that follows it.
    if is_text(node):
        return node["text"].endswith(" ")
    return node.get("type") == "hard_break"


# ---------------------------------------------------------------------------
# Tree -> markdown
# ---------------------------------------------------------------------------


def build_content_from_document(doc: Node) -> str:
    """Serialize a document tree back to markdown."""
    return _serialize_blocks(children(doc)).strip("\n")


def _serialize_blocks(blocks: list[Node]) -> str:
    return "\n\n".join(_serialize_block(block) for block in blocks)


def _serialize_block(node: Node) -> str:
    kind = node.get("type")
    attrs = node.get("attrs") or {}

    if kind == "paragraph":
        return serialize_inline(children(node))
    if kind == "heading":
        return "#" * int(attrs.get("level", 1)) + " " + serialize_inline(children(node))
    if kind == "code_block":
        language = attrs.get("language") or ""
        code = "".join(child.get("text", "") for child in children(node))
        return f"```{language}\n{code}\n```"
    if kind == "horizontal_rule":
        return "---"
    if kind == "blockquote":
        inner = _serialize_blocks(children(node))
        return "\n".join(("> " + line).rstrip() for line in inner.split("\n"))
    if kind == "bullet_list":
        return "\n".join(_serialize_item(item, "* ") for item in children(node))
    if kind == "ordered_list":
        start = int(attrs.get("order", 1))
        return "\n".join(
            _serialize_item(item, f"{start + i}. ") for i, item in enumerate(children(node))
        )
    if kind == "list_item":
        return _serialize_blocks(children(node))
    return _serialize_blocks(children(node))


def _serialize_item(item: Node, bullet: str) -> str:
    inner = _serialize_blocks(children(item))
    indent = " " * len(bullet)
    lines = inner.split("\n")
    rest = [(indent + line) if line else "" for line in lines[1:]]
    return "\n".join([bullet + lines[0]] + rest)


def serialize_inline(nodes: list[Node]) -> str:
    parts = []
    for node in nodes:
        kind = node.get("type")
        if kind == "hard_break":
            parts.append("\\\n")
            continue
        if kind == "image":
            attrs = node.get("attrs") or {}
            parts.append(f"![{attrs.get('alt') or ''}]({attrs.get('src', '')})")
            continue
        parts.append(_wrap_marks(node.get("text", ""), node.get("marks") or []))
    return "".join(parts)


def _wrap_marks(text: str, marks: list[dict]) -> str:
    mark_types = {m.get("type") for m in marks}
    if "code" in mark_types:
        out = f"`{text}`"
    else:
        out = _ESCAPE_RE.sub(r"\\\1", text)
    if "strong" in mark_types:
        out = f"**{out}**"
    if "em" in mark_types:
        out = f"*{out}*"
    for mark in sort_marks(marks):
        if mark.get("type") == "link":
            href = (mark.get("attrs") or {}).get("href", "")
            out = f"[{out}]({href})"
    return out


def parse_or_empty(content: Optional[str]) -> Node:
    """Tree for *content*, or an empty document for ``None``/blank input."""
    if not content or not content.strip():
        return empty_document()
    return build_document_from_content(content)
