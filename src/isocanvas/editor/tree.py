"""Document tree helpers.

Trees are ProseMirror-style JSON dicts::

    {"type": "doc", "content": [
        {"type": "heading", "attrs": {"level": 1}, "content": [{"type": "text", "text": "Title"}]},
        {"type": "paragraph", "content": [
            {"type": "text", "text": "Hello "},
            {"type": "text", "text": "world", "marks": [{"type": "strong"}]},
        ]},
    ]}

Positions follow ProseMirror's counting: entering or leaving a non-leaf node
counts one, each character counts one, each leaf node counts one. The
document's own boundaries are not counted, so its content starts at 0.
Characters are counted as Python code points.
"""

import copy
from enum import IntEnum
from typing import Any, Iterator, Optional

Node = dict[str, Any]

TEXTBLOCK_TYPES = frozenset({"paragraph", "heading", "code_block"})
INLINE_LEAF_TYPES = frozenset({"hard_break", "image"})
BLOCK_LEAF_TYPES = frozenset({"horizontal_rule"})
CONTAINER_TYPES = frozenset({"doc", "blockquote", "bullet_list", "ordered_list", "list_item"})

# Placeholder for inline leaves in linearized text, so that string offsets
# and positions stay aligned.
LEAF_PLACEHOLDER = "\ufffc"

# Canonical mark order; equal mark sets always serialize identically.
_MARK_RANK = {"link": 0, "em": 1, "strong": 2, "code": 3, "diffMark": 4}


def children(node: Node) -> list[Node]:
    return node.get("content") or []


def is_text(node: Node) -> bool:
    return node.get("type") == "text"


def is_leaf(node: Node) -> bool:
    return node.get("type") in INLINE_LEAF_TYPES or node.get("type") in BLOCK_LEAF_TYPES


def is_textblock(node: Node) -> bool:
    return node.get("type") in TEXTBLOCK_TYPES


def node_size(node: Node) -> int:
    """Number of positions *node* occupies in its parent."""
    if is_text(node):
        return len(node.get("text", ""))
    if is_leaf(node):
        return 1
    return 2 + content_size(node)


def content_size(node: Node) -> int:
    return sum(node_size(child) for child in children(node))


def text_content(node: Node) -> str:
    """Concatenated text of every text node under *node*, without separators."""
    if is_text(node):
        return node.get("text", "")
    return "".join(text_content(child) for child in children(node))


def inline_text(block: Node) -> str:
    """Linearized inline content of a textblock, one character per position."""
    parts = []
    for child in children(block):
        if is_text(child):
            parts.append(child.get("text", ""))
        else:
            parts.append(LEAF_PLACEHOLDER)
    return "".join(parts)


def iter_textblocks(node: Node, start: int = 0) -> Iterator[tuple[Node, int]]:
    """Yield ``(textblock, content_start)`` in document order.

    *start* is the position where *node*'s content begins.
    """
    pos = start
    for child in children(node):
        if is_textblock(child):
            yield child, pos + 1
        elif not is_leaf(child) and not is_text(child):
            yield from iter_textblocks(child, pos + 1)
        pos += node_size(child)


def text_node(text: str, marks: Optional[list[dict]] = None) -> Node:
    node: Node = {"type": "text", "text": text}
    if marks:
        node["marks"] = sort_marks(marks)
    return node


def sort_marks(marks: list[dict]) -> list[dict]:
    return sorted(marks, key=lambda m: _MARK_RANK.get(m.get("type", ""), 99))


def merge_text_nodes(nodes: list[Node]) -> list[Node]:
    """Join adjacent text nodes with identical marks and drop empty ones."""
    merged: list[Node] = []
    for node in nodes:
        if is_text(node) and not node.get("text"):
            continue
        if (
            merged
            and is_text(node)
            and is_text(merged[-1])
            and merged[-1].get("marks") == node.get("marks")
        ):
            merged[-1] = {**merged[-1], "text": merged[-1]["text"] + node["text"]}
        else:
            merged.append(node)
    return merged


def copy_tree(node: Node) -> Node:
    return copy.deepcopy(node)


def empty_document() -> Node:
    return {"type": "doc", "content": [{"type": "paragraph"}]}


class DiffType(IntEnum):
    """Tag carried by every span of a diffed tree."""
    UNCHANGED = 0
    DELETED = -1
    INSERTED = 1


DIFF_MARK = "diffMark"


def diff_mark(diff_type: DiffType) -> dict:
    return {"type": DIFF_MARK, "attrs": {"type": int(diff_type)}}


def diff_type_of(node: Node) -> Optional[DiffType]:
    """Diff tag of an inline node (mark) or block leaf (``attrs.diffType``)."""
    for mark in node.get("marks") or []:
        if mark.get("type") == DIFF_MARK:
            return DiffType((mark.get("attrs") or {}).get("type", 0))
    attr = (node.get("attrs") or {}).get("diffType")
    return DiffType(attr) if attr is not None else None
