"""Mutable HTML document tree shared with plugins during composition.

Nodes live in a flat arena owned by the document and are addressed by
integer ids; parent/child links are ids as well. Plugins receive the
``Document`` and mutate it through the methods below.

Text nodes hold markup-ready text: ``create_text`` escapes what it is given,
text produced by the parser keeps the entities it was written with, and the
serializer writes both verbatim.
"""

from __future__ import annotations

import html
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

NodeId = int
Attributes = List[Tuple[str, Optional[str]]]


class NodeKind(str, Enum):
    DOCUMENT = "document"
    DOCTYPE = "doctype"
    ELEMENT = "element"
    TEXT = "text"
    COMMENT = "comment"


@dataclass(slots=True)
class Node:
    kind: NodeKind
    tag: str | None = None
    attrs: Attributes = field(default_factory=list)
    data: str = ""
    parent: NodeId | None = None
    children: List[NodeId] = field(default_factory=list)


_CONTAINER_KINDS = (NodeKind.DOCUMENT, NodeKind.ELEMENT)


def _normalize_attrs(attrs: Mapping[str, str | None] | Iterable[Tuple[str, str | None]] | None) -> Attributes:
    if not attrs:
        return []
    items = attrs.items() if isinstance(attrs, Mapping) else attrs
    normalized: Attributes = []
    for name, value in items:
        normalized.append((str(name).lower(), None if value is None else str(value)))
    return normalized


class Document:
    """An owned HTML tree. Node ``ROOT`` is the document node."""

    ROOT: NodeId = 0

    def __init__(self) -> None:
        self._nodes: List[Node] = [Node(NodeKind.DOCUMENT)]
        # Node state saved at first change since checkpoint(); None when not recording.
        self._journal: Dict[NodeId, Tuple[Attributes, NodeId | None, List[NodeId]]] | None = None
        self._mark = 0

    @classmethod
    def blank(cls) -> "Document":
        """A document holding an empty ``html`` / ``head`` / ``body`` skeleton."""
        doc = cls()
        doc.ensure_structure()
        return doc

    # -- node access --

    def node(self, node_id: NodeId) -> Node:
        if not isinstance(node_id, int) or node_id < 0 or node_id >= len(self._nodes):
            raise ValueError(f"unknown node id: {node_id!r}")
        return self._nodes[node_id]

    def __len__(self) -> int:
        return len(self._nodes)

    def children(self, node_id: NodeId) -> Tuple[NodeId, ...]:
        return tuple(self.node(node_id).children)

    def parent(self, node_id: NodeId) -> NodeId | None:
        return self.node(node_id).parent

    def tag(self, node_id: NodeId) -> str | None:
        return self.node(node_id).tag

    # -- node creation --

    def _add(self, node: Node) -> NodeId:
        self._nodes.append(node)
        return len(self._nodes) - 1

    def create_element(self, tag: str, attrs: Mapping[str, str | None] | Iterable[Tuple[str, str | None]] | None = None) -> NodeId:
        if not tag or not tag.strip():
            raise ValueError("element tag is required")
        return self._add(Node(NodeKind.ELEMENT, tag=tag.strip().lower(), attrs=_normalize_attrs(attrs)))

    def create_text(self, text: str) -> NodeId:
        """Create a text node; ``<``, ``>`` and ``&`` in *text* are escaped."""
        return self._add(Node(NodeKind.TEXT, data=html.escape(text, quote=False)))

    def create_raw_text(self, markup: str) -> NodeId:
        """Create a text node written out exactly as given (script bodies, entities)."""
        return self._add(Node(NodeKind.TEXT, data=markup))

    def create_comment(self, text: str) -> NodeId:
        return self._add(Node(NodeKind.COMMENT, data=text))

    def create_doctype(self, declaration: str = "DOCTYPE html") -> NodeId:
        return self._add(Node(NodeKind.DOCTYPE, data=declaration))

    # -- structure mutation --

    def _touch(self, node_id: NodeId) -> None:
        if self._journal is None or node_id >= self._mark or node_id in self._journal:
            return
        node = self._nodes[node_id]
        self._journal[node_id] = (list(node.attrs), node.parent, list(node.children))

    def _detach(self, node_id: NodeId) -> None:
        node = self._nodes[node_id]
        if node.parent is not None:
            self._touch(node.parent)
            self._touch(node_id)
            self._nodes[node.parent].children.remove(node_id)
            node.parent = None

    def _check_insert(self, parent: NodeId, child: NodeId) -> None:
        parent_node = self.node(parent)
        child_node = self.node(child)
        if parent_node.kind not in _CONTAINER_KINDS:
            raise ValueError(f"node {parent} cannot hold children ({parent_node.kind.value})")
        if child_node.kind is NodeKind.DOCUMENT:
            raise ValueError("the document node cannot be moved")
        cursor: NodeId | None = parent
        while cursor is not None:
            if cursor == child:
                raise ValueError("cannot insert a node into its own subtree")
            cursor = self._nodes[cursor].parent

    def append_child(self, parent: NodeId, child: NodeId) -> NodeId:
        """Append *child* as the last child of *parent*, moving it if attached elsewhere."""
        self._check_insert(parent, child)
        self._detach(child)
        self._touch(parent)
        self._touch(child)
        self._nodes[parent].children.append(child)
        self._nodes[child].parent = parent
        return child

    def insert_before(self, parent: NodeId, child: NodeId, reference: NodeId | None) -> NodeId:
        if reference is None:
            return self.append_child(parent, child)
        self._check_insert(parent, child)
        if self.node(reference).parent != parent:
            raise ValueError(f"node {reference} is not a child of {parent}")
        if reference == child:
            return child
        self._detach(child)
        self._touch(parent)
        self._touch(child)
        siblings = self._nodes[parent].children
        siblings.insert(siblings.index(reference), child)
        self._nodes[child].parent = parent
        return child

    def remove(self, node_id: NodeId) -> None:
        """Detach a node (and its subtree) from the tree."""
        if self.node(node_id).kind is NodeKind.DOCUMENT:
            raise ValueError("the document node cannot be removed")
        self._detach(node_id)

    # -- attributes --

    def _element(self, node_id: NodeId) -> Node:
        node = self.node(node_id)
        if node.kind is not NodeKind.ELEMENT:
            raise ValueError(f"node {node_id} is not an element")
        return node

    def get_attribute(self, node_id: NodeId, name: str, default: str | None = None) -> str | None:
        wanted = name.lower()
        for key, value in self._element(node_id).attrs:
            if key == wanted:
                return value
        return default

    def has_attribute(self, node_id: NodeId, name: str) -> bool:
        wanted = name.lower()
        return any(key == wanted for key, _ in self._element(node_id).attrs)

    def set_attribute(self, node_id: NodeId, name: str, value: str | None) -> None:
        node = self._element(node_id)
        self._touch(node_id)
        wanted = name.lower()
        for index, (key, _) in enumerate(node.attrs):
            if key == wanted:
                node.attrs[index] = (key, value)
                return
        node.attrs.append((wanted, value))

    def remove_attribute(self, node_id: NodeId, name: str) -> None:
        node = self._element(node_id)
        self._touch(node_id)
        wanted = name.lower()
        node.attrs = [(k, v) for k, v in node.attrs if k != wanted]

    # -- queries --

    def iter_descendants(self, node_id: NodeId = ROOT) -> Iterator[NodeId]:
        """Yield the descendants of *node_id* in document order."""
        stack = list(reversed(self.node(node_id).children))
        while stack:
            current = stack.pop()
            yield current
            stack.extend(reversed(self._nodes[current].children))

    def elements_by_tag(self, tag: str, within: NodeId = ROOT) -> List[NodeId]:
        wanted = tag.lower()
        return [
            n for n in self.iter_descendants(within)
            if self._nodes[n].kind is NodeKind.ELEMENT and self._nodes[n].tag == wanted
        ]

    def find_first(self, tag: str, within: NodeId = ROOT) -> NodeId | None:
        wanted = tag.lower()
        for n in self.iter_descendants(within):
            node = self._nodes[n]
            if node.kind is NodeKind.ELEMENT and node.tag == wanted:
                return n
        return None

    def element_by_id(self, element_id: str) -> NodeId | None:
        for n in self.iter_descendants():
            node = self._nodes[n]
            if node.kind is NodeKind.ELEMENT and ("id", element_id) in node.attrs:
                return n
        return None

    def text_content(self, node_id: NodeId = ROOT) -> str:
        """Concatenated text below *node_id*, with entities decoded."""
        parts = [
            self._nodes[n].data for n in self.iter_descendants(node_id)
            if self._nodes[n].kind is NodeKind.TEXT
        ]
        return html.unescape("".join(parts))

    def _required(self, tag: str) -> NodeId:
        found = self.find_first(tag)
        if found is None:
            raise LookupError(f"document has no <{tag}> element")
        return found

    @property
    def html(self) -> NodeId:
        return self._required("html")

    @property
    def head(self) -> NodeId:
        return self._required("head")

    @property
    def body(self) -> NodeId:
        return self._required("body")

    # -- structure --

    def ensure_structure(self) -> None:
        """Guarantee the ``html > head, body`` skeleton, adopting stray nodes.

        Top-level nodes other than doctypes are moved into ``html``. A
        missing ``head`` takes the leading metadata elements; a missing
        ``body`` takes everything else that is not ``head``.
        """
        root = self._nodes[self.ROOT]
        html_id = next(
            (c for c in root.children if self._nodes[c].kind is NodeKind.ELEMENT and self._nodes[c].tag == "html"),
            None,
        )
        if html_id is None:
            html_id = self.create_element("html")
            movable = [c for c in root.children if self._nodes[c].kind is not NodeKind.DOCTYPE]
            self.append_child(self.ROOT, html_id)
            for child in movable:
                self.append_child(html_id, child)

        def child_tagged(tag: str) -> NodeId | None:
            for c in self._nodes[html_id].children:
                node = self._nodes[c]
                if node.kind is NodeKind.ELEMENT and node.tag == tag:
                    return c
            return None

        head_id = child_tagged("head")
        if head_id is None:
            head_id = self.create_element("head")
            leading: List[NodeId] = []
            for c in self._nodes[html_id].children:
                node = self._nodes[c]
                if node.kind is NodeKind.ELEMENT and node.tag in METADATA_ELEMENTS:
                    leading.append(c)
                elif node.kind is NodeKind.TEXT and not node.data.strip():
                    continue
                elif node.kind is NodeKind.COMMENT:
                    continue
                else:
                    break
            first = self._nodes[html_id].children[0] if self._nodes[html_id].children else None
            self.insert_before(html_id, head_id, first)
            for c in leading:
                self.append_child(head_id, c)

        if child_tagged("body") is None:
            body_id = self.create_element("body")
            movable = [c for c in self._nodes[html_id].children if c != head_id]
            # Whitespace sitting directly between head and the content stays put.
            while movable and self._nodes[movable[0]].kind is NodeKind.TEXT and not self._nodes[movable[0]].data.strip():
                movable.pop(0)
            self.append_child(html_id, body_id)
            for c in movable:
                self.append_child(body_id, c)

    # -- fragments / copies --

    def append_html(self, parent: NodeId, markup: str) -> List[NodeId]:
        """Parse *markup* as a fragment and append the resulting nodes to *parent*."""
        from quarkboard_server.document.parser import parse_fragment_into

        return parse_fragment_into(self, parent, markup)

    # -- checkpoints --

    def checkpoint(self) -> None:
        """Start recording changes so ``rollback`` can undo them.

        Only nodes that are actually changed are saved. Edits made directly
        on ``Node`` objects returned by ``node()`` are not recorded.
        """
        self._journal = {}
        self._mark = len(self._nodes)

    def rollback(self) -> None:
        """Undo every change made since the last ``checkpoint``."""
        if self._journal is None:
            raise RuntimeError("rollback() without checkpoint()")
        for node_id, (attrs, parent, children) in self._journal.items():
            node = self._nodes[node_id]
            node.attrs = attrs
            node.parent = parent
            node.children = children
        del self._nodes[self._mark:]
        self._journal = None

    def commit(self) -> None:
        """Keep the changes made since the last ``checkpoint`` and stop recording."""
        self._journal = None


METADATA_ELEMENTS = frozenset({"base", "link", "meta", "noscript", "script", "style", "template", "title"})
