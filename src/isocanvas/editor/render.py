"""HTML rendering of document trees, including diff annotations."""

from html import escape

from .tree import DIFF_MARK, DiffType, Node, children, diff_type_of, sort_marks

DIFF_CLASSES = {
    DiffType.INSERTED: "diff-inserted",
    DiffType.DELETED: "diff-deleted",
    DiffType.UNCHANGED: "diff-unchanged",
}

DIFF_STYLES = {
    DiffType.INSERTED: "background-color: rgba(0, 255, 0, 0.2);",
    DiffType.DELETED: "background-color: rgba(255, 0, 0, 0.2); text-decoration: line-through;",
    DiffType.UNCHANGED: "",
}


def render_html(node: Node) -> str:
    kind = node.get("type")
    attrs = node.get("attrs") or {}

    if kind == "text":
        return _render_marks(escape(node.get("text", "")), node.get("marks") or [])
    if kind == "hard_break":
        return _render_marks("<br>", node.get("marks") or [])
    if kind == "image":
        img = '<img src="{}" alt="{}"{}>'.format(
            escape(attrs.get("src") or ""),
            escape(attrs.get("alt") or ""),
            f' title="{escape(attrs["title"])}"' if attrs.get("title") else "",
        )
        return _render_marks(img, node.get("marks") or [])
    if kind == "horizontal_rule":
        diff_type = diff_type_of(node)
        if diff_type is None:
            return "<hr>"
        return f'<hr class="{DIFF_CLASSES[diff_type]}"{_style_attr(diff_type)}>'

    inner = "".join(render_html(child) for child in children(node))
    if kind == "doc":
        return inner
    if kind == "paragraph":
        return f"<p>{inner}</p>"
    if kind == "heading":
        level = int(attrs.get("level", 1))
        return f"<h{level}>{inner}</h{level}>"
    if kind == "blockquote":
        return f"<blockquote>{inner}</blockquote>"
    if kind == "code_block":
        language = attrs.get("language")
        cls = f' class="language-{escape(language)}"' if language else ""
        return f"<pre><code{cls}>{inner}</code></pre>"
    if kind == "bullet_list":
        return f"<ul>{inner}</ul>"
    if kind == "ordered_list":
        order = int(attrs.get("order", 1))
        start = f' start="{order}"' if order != 1 else ""
        return f"<ol{start}>{inner}</ol>"
    if kind == "list_item":
        return f"<li>{inner}</li>"
    return inner


def _render_marks(html: str, marks: list[dict]) -> str:
    diff = None
    for mark in reversed(sort_marks(marks)):
        mark_type = mark.get("type")
        if mark_type == "code":
            html = f"<code>{html}</code>"
        elif mark_type == "strong":
            html = f"<strong>{html}</strong>"
        elif mark_type == "em":
            html = f"<em>{html}</em>"
        elif mark_type == "link":
            href = escape((mark.get("attrs") or {}).get("href") or "")
            html = f'<a href="{href}">{html}</a>'
        elif mark_type == DIFF_MARK:
            diff = DiffType((mark.get("attrs") or {}).get("type", 0))
    if diff is not None:
        html = f'<span class="{DIFF_CLASSES[diff]}"{_style_attr(diff)}>{html}</span>'
    return html


def _style_attr(diff_type: DiffType) -> str:
    style = DIFF_STYLES[diff_type]
    return f' style="{style}"' if style else ""
