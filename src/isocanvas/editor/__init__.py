"""Document tree: markdown conversion, tree utilities and HTML rendering."""

from .conversion import build_content_from_document, build_document_from_content
from .render import render_html
from .tree import DiffType, Node, text_content

__all__ = [
    "build_content_from_document",
    "build_document_from_content",
    "render_html",
    "DiffType",
    "Node",
    "text_content",
]
