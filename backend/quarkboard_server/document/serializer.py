from __future__ import annotations

import html
from typing import List, Tuple

from quarkboard_server.document.parser import VOID_ELEMENTS
from quarkboard_server.document.tree import Attributes, Document, NodeId, NodeKind


def _attributes(attrs: Attributes) -> str:
    parts = []
    for name, value in attrs:
        if value is None:
            parts.append(f" {name}")
        else:
            parts.append(f' {name}="{html.escape(value, quote=True)}"')
    return "".join(parts)


def serialize(document: Document, node_id: NodeId = Document.ROOT) -> str:
    """Render the subtree at *node_id* (the whole document by default) as HTML.

    Void elements get no end tag; text and comments are written as stored.
    """
    out: List[str] = []
    # (node, closing) pairs; closing entries emit an element's end tag.
    stack: List[Tuple[NodeId, bool]] = [(node_id, False)]
    while stack:
        current, closing = stack.pop()
        node = document.node(current)
        if closing:
            out.append(f"</{node.tag}>")
            continue
        kind = node.kind
        if kind is NodeKind.DOCUMENT:
            stack.extend((c, False) for c in reversed(node.children))
        elif kind is NodeKind.ELEMENT:
            out.append(f"<{node.tag}{_attributes(node.attrs)}>")
            if node.tag in VOID_ELEMENTS:
                continue
            stack.append((current, True))
            stack.extend((c, False) for c in reversed(node.children))
        elif kind is NodeKind.TEXT:
            out.append(node.data)
        elif kind is NodeKind.COMMENT:
            out.append(f"<!--{node.data}-->")
        elif kind is NodeKind.DOCTYPE:
            out.append(f"<!{node.data}>")
    return "".join(out)
