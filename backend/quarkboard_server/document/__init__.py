"""In-memory HTML document tree: arena, parser and serializer."""

from quarkboard_server.document.tree import Document, Node, NodeId, NodeKind
from quarkboard_server.document.parser import VOID_ELEMENTS, parse_document
from quarkboard_server.document.serializer import serialize

__all__ = [
    "Document",
    "Node",
    "NodeId",
    "NodeKind",
    "VOID_ELEMENTS",
    "parse_document",
    "serialize",
]
