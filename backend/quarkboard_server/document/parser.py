"""Build ``Document`` trees from markup with the standard library HTML tokenizer.

The builder keeps an open-element stack, closes void elements immediately,
applies the common optional end tags (``p``, ``li``, table cells, ...) and
closes anything still open at end of input. Body content or a <body> tag
ends an unclosed <head>. An end tag that matches no open element makes the
markup malformed, except for void elements, </head> and </p>.
"""

from __future__ import annotations

from html.parser import HTMLParser
from typing import List

from quarkboard_server.core.errors import MalformedTemplateError
from quarkboard_server.document.tree import METADATA_ELEMENTS, Document, NodeId, NodeKind

VOID_ELEMENTS = frozenset({
    "area", "base", "br", "col", "embed", "hr", "img", "input",
    "link", "meta", "source", "track", "wbr",
})

# Start tag -> open elements it implicitly closes when on top of the stack.
_IMPLIED_END = {
    "li": {"li"},
    "dt": {"dt", "dd"},
    "dd": {"dt", "dd"},
    "option": {"option"},
    "tr": {"tr", "td", "th"},
    "td": {"td", "th"},
    "th": {"td", "th"},
}

_CLOSES_PARAGRAPH = frozenset({
    "address", "article", "aside", "blockquote", "details", "div", "dl",
    "fieldset", "figure", "footer", "form", "h1", "h2", "h3", "h4", "h5",
    "h6", "header", "hr", "main", "nav", "ol", "p", "pre", "section",
    "table", "ul",
})

_DOCUMENT_TAGS = frozenset({"html", "head", "body"})

# Start tags that may appear while <head> is open without closing it.
_HEAD_CONTENT = METADATA_ELEMENTS | {"html", "head"}


class _TreeBuilder(HTMLParser):
    def __init__(self, document: Document, container: NodeId, *, fragment: bool) -> None:
        super().__init__(convert_charrefs=False)
        self.document = document
        self.fragment = fragment
        self._stack: List[NodeId] = [container]
        self._text: List[str] = []

    # -- helpers --

    @property
    def _current(self) -> NodeId:
        return self._stack[-1]

    def _current_tag(self) -> str | None:
        return self.document.tag(self._current) if len(self._stack) > 1 else None

    def _flush_text(self) -> None:
        if not self._text:
            return
        data = "".join(self._text)
        self._text.clear()
        self.document.append_child(self._current, self.document.create_raw_text(data))

    def _apply_implied_end(self, tag: str) -> None:
        closes = _IMPLIED_END.get(tag, set())
        while len(self._stack) > 1 and self._current_tag() in closes:
            self._stack.pop()
        if tag in _CLOSES_PARAGRAPH and self._current_tag() == "p":
            self._stack.pop()

    def _open_index(self, tag: str) -> int | None:
        for depth in range(len(self._stack) - 1, 0, -1):
            if self.document.tag(self._stack[depth]) == tag:
                return depth
        return None

    def _leave_head(self, tag: str) -> None:
        """Close an open <head> when *tag* can only live in the body."""
        if self._current_tag() != "head" or (tag != "body" and tag in _HEAD_CONTENT):
            return
        self._stack.pop()
        if tag != "body" and self._open_index("body") is None:
            body = self.document.create_element("body")
            self.document.append_child(self._current, body)
            self._stack.append(body)

    def _open(self, tag: str, attrs, *, self_closing: bool = False) -> None:
        self._flush_text()
        if self.fragment and tag in _DOCUMENT_TAGS:
            return
        if not self.fragment:
            self._leave_head(tag)
            depth = self._open_index("body") if tag == "body" else None
            if depth is not None:
                # A second <body> only contributes attributes the first lacks.
                body = self._stack[depth]
                for name, value in attrs:
                    if not self.document.has_attribute(body, name):
                        self.document.set_attribute(body, name, value)
                return
        self._apply_implied_end(tag)
        element = self.document.create_element(tag, attrs)
        self.document.append_child(self._current, element)
        if tag not in VOID_ELEMENTS and not self_closing:
            self._stack.append(element)

    # -- HTMLParser hooks --

    def handle_starttag(self, tag, attrs):
        self._open(tag, attrs)

    def handle_startendtag(self, tag, attrs):
        self._open(tag, attrs, self_closing=True)

    def handle_endtag(self, tag):
        self._flush_text()
        if self.fragment and tag in _DOCUMENT_TAGS:
            return
        depth = self._open_index(tag)
        if depth is not None:
            del self._stack[depth:]
            return
        if tag in VOID_ELEMENTS or (tag == "head" and not self.fragment):
            return
        if tag == "p":
            # A lone </p> stands for an empty paragraph.
            self.document.append_child(self._current, self.document.create_element("p"))
            return
        line, column = self.getpos()
        raise MalformedTemplateError(f"unexpected </{tag}> at line {line}, column {column + 1}")

    def handle_data(self, data):
        self._text.append(data)

    def handle_entityref(self, name):
        self._text.append(f"&{name};")

    def handle_charref(self, name):
        self._text.append(f"&#{name};")

    def handle_comment(self, data):
        self._flush_text()
        self.document.append_child(self._current, self.document.create_comment(data))

    def handle_decl(self, decl):
        self._flush_text()
        self.document.append_child(self._current, self.document.create_doctype(decl))

    def handle_pi(self, data):
        self._text.append(f"<?{data}>")

    def unknown_decl(self, data):
        self._text.append(f"<![{data}]>")

    def finish(self) -> None:
        try:
            self.close()
        except (AssertionError, ValueError) as exc:
            raise MalformedTemplateError(str(exc)) from exc
        self._flush_text()
        del self._stack[1:]


def _feed(builder: _TreeBuilder, markup: str) -> None:
    if not isinstance(markup, str):
        raise MalformedTemplateError(f"markup must be text, not {type(markup).__name__}")
    try:
        builder.feed(markup)
    except (AssertionError, ValueError) as exc:
        raise MalformedTemplateError(str(exc)) from exc
    builder.finish()


def parse_document(markup: str) -> Document:
    """Parse a complete page into a new ``Document`` with html/head/body present."""
    document = Document()
    _feed(_TreeBuilder(document, Document.ROOT, fragment=False), markup)
    document.ensure_structure()
    return document


def parse_fragment_into(document: Document, parent: NodeId, markup: str) -> List[NodeId]:
    """Parse *markup* and append its top-level nodes to *parent* inside *document*.

    On malformed markup nothing is appended.
    """
    if document.node(parent).kind not in (NodeKind.ELEMENT, NodeKind.DOCUMENT):
        raise ValueError(f"node {parent} cannot hold children")
    scratch = document.create_element("template")
    _feed(_TreeBuilder(document, scratch, fragment=True), markup)
    added = list(document.children(scratch))
    for node_id in added:
        document.append_child(parent, node_id)
    return added
