"""Structural diff of two document trees.

Blocks are aligned first (``difflib.SequenceMatcher`` over whole-block
signatures), so headings, paragraphs and lists survive as blocks in the
result. Where an old and a new block of the same type and attributes sit
at the same place in a changed region, their content is diffed further:
textblocks word by word keeping marks, containers (lists, quotes) block by
block. Everything else becomes a deleted block followed by an inserted one.

Every inline node of the result carries a ``diffMark``; block leaves carry
``attrs.diffType``. Reading only Unchanged + Inserted spans gives the new
text back exactly, and only Unchanged + Deleted the old text.
"""

import json
import logging
import re
from difflib import SequenceMatcher
from typing import Iterable, Optional

from ..editor.conversion import parse_or_empty
from ..editor.tree import (
    DiffType,
    Node,
    children,
    copy_tree,
    diff_mark,
    diff_type_of,
    is_leaf,
    is_text,
    is_textblock,
    merge_text_nodes,
    sort_marks,
)
from ..exceptions import DiffComputationError

logger = logging.getLogger(__name__)

_TOKEN_RE = re.compile(r"\w+|\s+|[^\w\s]")


def diff_documents(old: Node, new: Node) -> Node:
    """Annotated tree of *new* against *old*. Raises DiffComputationError."""
    for label, tree in (("old", old), ("new", new)):
        if not isinstance(tree, dict) or tree.get("type") != "doc":
            raise DiffComputationError(f"The {label} tree is not a document")
    try:
        return {"type": "doc", "content": _diff_blocks(children(old), children(new))}
    except (KeyError, TypeError, AttributeError, ValueError) as e:
        raise DiffComputationError("Failed to diff document trees", original_error=e) from e


def compute_diff(old: Node, new: Node) -> Node:
    """Like ``diff_documents`` but falls back to the un-annotated new tree."""
    try:
        return diff_documents(old, new)
    except DiffComputationError as e:
        logger.warning("Diff failed, showing new version unannotated", extra=e.details)
        return copy_tree(new) if isinstance(new, dict) else {"type": "doc", "content": []}


def diff_contents(old_content: Optional[str], new_content: Optional[str]) -> Node:
    """Diff two markdown versions."""
    return compute_diff(parse_or_empty(old_content), parse_or_empty(new_content))


def project_text(tree: Node, include: Iterable[DiffType]) -> str:
    """Concatenated text of the spans whose diff tag is in *include*.

    Untagged text counts as Unchanged.
    """
    wanted = set(include)
    parts: list[str] = []

    def walk(node: Node) -> None:
        if is_text(node):
            if (diff_type_of(node) or DiffType.UNCHANGED) in wanted:
                parts.append(node.get("text", ""))
            return
        for child in children(node):
            walk(child)

    walk(tree)
    return "".join(parts)


# ---------------------------------------------------------------------------
# Block level
# ---------------------------------------------------------------------------


def _signature(block: Node) -> str:
    return json.dumps(block, sort_keys=True)


def _diff_blocks(old_blocks: list[Node], new_blocks: list[Node]) -> list[Node]:
    matcher = SequenceMatcher(
        None,
        [_signature(b) for b in old_blocks],
        [_signature(b) for b in new_blocks],
        autojunk=False,
    )
    out: list[Node] = []
    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        if tag == "equal":
            out.extend(_mark_block(b, DiffType.UNCHANGED) for b in new_blocks[j1:j2])
        elif tag == "delete":
            out.extend(_mark_block(b, DiffType.DELETED) for b in old_blocks[i1:i2])
        elif tag == "insert":
            out.extend(_mark_block(b, DiffType.INSERTED) for b in new_blocks[j1:j2])
        else:
            olds, news = old_blocks[i1:i2], new_blocks[j1:j2]
            for k in range(max(len(olds), len(news))):
                old = olds[k] if k < len(olds) else None
                new = news[k] if k < len(news) else None
                if old is not None and new is not None:
                    out.extend(_diff_block_pair(old, new))
                elif old is not None:
                    out.append(_mark_block(old, DiffType.DELETED))
                else:
                    out.append(_mark_block(new, DiffType.INSERTED))
    return out


def _diff_block_pair(old: Node, new: Node) -> list[Node]:
    same_shape = old["type"] == new["type"] and (old.get("attrs") or {}) == (new.get("attrs") or {})
    if same_shape and is_textblock(new):
        return [_with_content(new, _diff_inline(children(old), children(new)))]
    if old["type"] == new["type"] and not is_textblock(new) and not is_leaf(new):
        # Containers keep the new attrs (e.g. a renumbered list).
        return [_with_content(new, _diff_blocks(children(old), children(new)))]
    return [_mark_block(old, DiffType.DELETED), _mark_block(new, DiffType.INSERTED)]


def _with_content(block: Node, content: list[Node]) -> Node:
    result = {k: copy_tree(v) for k, v in block.items() if k != "content"}
    if content:
        result["content"] = content
    return result


def _mark_block(block: Node, diff_type: DiffType) -> Node:
    if is_leaf(block):
        attrs = dict(block.get("attrs") or {})
        attrs["diffType"] = int(diff_type)
        return {**copy_tree(block), "attrs": attrs}
    if is_textblock(block):
        return _with_content(block, [_mark_inline(n, diff_type) for n in children(block)])
    return _with_content(block, [_mark_block(child, diff_type) for child in children(block)])


def _mark_inline(node: Node, diff_type: DiffType) -> Node:
    marks = [m for m in node.get("marks") or [] if m.get("type") != "diffMark"]
    return {**copy_tree(node), "marks": sort_marks(marks + [diff_mark(diff_type)])}


# ---------------------------------------------------------------------------
# Inline level
# ---------------------------------------------------------------------------


def _tokens(nodes: list[Node]) -> list[Node]:
    """Split text nodes into word/space/punctuation pieces; leaves stay whole."""
    tokens: list[Node] = []
    for node in nodes:
        if is_text(node):
            for piece in _TOKEN_RE.findall(node.get("text", "")):
                tokens.append({**node, "text": piece})
        else:
            tokens.append(node)
    return tokens


def _token_key(token: Node) -> str:
    marks = [m for m in token.get("marks") or [] if m.get("type") != "diffMark"]
    return json.dumps({**token, "marks": marks}, sort_keys=True)


def _diff_inline(old_nodes: list[Node], new_nodes: list[Node]) -> list[Node]:
    old_tokens, new_tokens = _tokens(old_nodes), _tokens(new_nodes)
    matcher = SequenceMatcher(
        None,
        [_token_key(t) for t in old_tokens],
        [_token_key(t) for t in new_tokens],
        autojunk=False,
    )
    out: list[Node] = []
    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        if tag == "equal":
            out.extend(_mark_inline(t, DiffType.UNCHANGED) for t in new_tokens[j1:j2])
            continue
        if tag in ("delete", "replace"):
            out.extend(_mark_inline(t, DiffType.DELETED) for t in old_tokens[i1:i2])
        if tag in ("insert", "replace"):
            out.extend(_mark_inline(t, DiffType.INSERTED) for t in new_tokens[j1:j2])
    return merge_text_nodes(out)
