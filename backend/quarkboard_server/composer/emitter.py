from __future__ import annotations

from quarkboard_server.document.serializer import serialize
from quarkboard_server.document.tree import Document

ENCODING = 'utf-8'


def emit(document: Document) -> bytes:
    """Serialize a composed document to the response body."""
    return serialize(document).encode(ENCODING)
