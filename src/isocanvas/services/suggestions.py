"""Suggestion projection onto the current document tree.

Suggestions are anchored by their ``original_text`` only. Every time the
tree changes they are re-located: the first occurrence of the text, searched
textblock by textblock in document order, gives the selection range in
tree positions. A suggestion whose text is gone loses its range and is not
rendered. Duplicate text always resolves to the first occurrence.
"""

import logging
from typing import Optional

from ..editor.tree import (
    Node,
    children,
    copy_tree,
    inline_text,
    is_text,
    iter_textblocks,
    merge_text_nodes,
    text_node,
)
from ..exceptions import ValidationError
from ..schemas.suggestion import Suggestion

logger = logging.getLogger(__name__)


def find_positions_in_doc(doc: Node, search_text: str) -> Optional[tuple[int, int]]:
    """(start, end) tree positions of the first occurrence of *search_text*.

    A match may cross mark boundaries inside one textblock but never spans
    two blocks.
    """
    if not search_text:
        return None
    for block, start in iter_textblocks(doc):
        offset = inline_text(block).find(search_text)
        if offset != -1:
            return start + offset, start + offset + len(search_text)
    return None


def project_with_positions(doc: Node, suggestions: list[Suggestion]) -> list[Suggestion]:
    projected = []
    for suggestion in suggestions:
        positions = find_positions_in_doc(doc, suggestion.original_text)
        start, end = positions if positions else (None, None)
        projected.append(
            suggestion.model_copy(
                update={
                    "selection_start": start,
                    "selection_end": end,
                    "description": (
                        suggestion.description or suggestion.content or suggestion.suggested_text
                    ),
                }
            )
        )
    return projected


def renderable_suggestions(doc: Node, suggestions: list[Suggestion]) -> list[Suggestion]:
    """Projected suggestions whose anchor text still exists."""
    anchored = [s for s in project_with_positions(doc, suggestions) if s.is_anchored]
    dropped = len(suggestions) - len(anchored)
    if dropped:
        logger.debug("Dropped unanchored suggestions", extra={"count": dropped})
    return anchored


def apply_suggestion(doc: Node, suggestion: Suggestion) -> Node:
    """New tree with the suggestion's anchor replaced by its suggested text.

    The replacement takes the marks of the text at the start of the range.
    Raises ValidationError when the anchor text is not in *doc*.
    """
    result = copy_tree(doc)
    if suggestion.original_text:
        for block, _start in iter_textblocks(result):
            offset = inline_text(block).find(suggestion.original_text)
            if offset == -1:
                continue
            content = _splice(
                children(block), offset, offset + len(suggestion.original_text), suggestion.suggested_text
            )
            if content:
                block["content"] = content
            else:
                block.pop("content", None)
            return result

    raise ValidationError(
        f"Suggestion {suggestion.id} no longer matches the document", field="original_text"
    )


def _splice(nodes: list[Node], start: int, end: int, replacement: str) -> list[Node]:
    out: list[Node] = []
    pos = 0
    inserted = False

    def insert(marks: Optional[list[dict]]) -> None:
        nonlocal inserted
        if not inserted:
            out.append(text_node(replacement, marks))
            inserted = True

    for node in nodes:
        size = len(node.get("text", "")) if is_text(node) else 1
        node_end = pos + size
        if node_end <= start:
            out.append(node)
        elif pos >= end:
            insert(None)
            out.append(node)
        elif is_text(node):
            text = node["text"]
            if pos < start:
                out.append({**node, "text": text[: start - pos]})
            insert(node.get("marks"))
            if node_end > end:
                out.append({**node, "text": text[end - pos:]})
        else:
            # Inline leaf inside the replaced range is dropped.
            insert(None)
        pos = node_end

    insert(None)
    return merge_text_nodes(out)
