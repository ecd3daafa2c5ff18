"""Per-request page assembly.

A fresh tree is parsed from the template for every request and handed to
each enabled plugin in registration order. A plugin that raises is rolled
back to the state before its turn and the rest of the page is still built.
"""

from __future__ import annotations

import logging
from typing import Iterable, List
from urllib.parse import quote

from quarkboard_server.composer.template import TemplateHandle
from quarkboard_server.document.parser import parse_document
from quarkboard_server.document.tree import Document
from quarkboard_server.plugin_runtime.models import PluginBase

_log = logging.getLogger(__name__)

SCRIPT_CATEGORY = 'js'
STYLE_CATEGORY = 'css'
SCRIPT_TYPE = 'application/javascript'


def asset_url(plugin_name: str, category: str, filename: str) -> str:
    return f"/{plugin_name}/{category}/{quote(filename, safe='/')}"


def script_url(plugin_name: str, filename: str) -> str:
    return asset_url(plugin_name, SCRIPT_CATEGORY, filename)


def style_url(plugin_name: str, filename: str) -> str:
    return asset_url(plugin_name, STYLE_CATEGORY, filename)


def _apply_markup(document: Document, plugin: PluginBase) -> bool:
    document.checkpoint()
    try:
        plugin.contribute_markup(document)
    except Exception:
        _log.exception("plugin name=%s contribute_markup failed; changes discarded", plugin.name)
        document.rollback()
        return False
    document.commit()
    return True


def _append_scripts(document: Document, plugin: PluginBase) -> None:
    body = document.body
    for filename in plugin.list_scripts():
        element = document.create_element('script', [('src', script_url(plugin.name, filename)), ('type', SCRIPT_TYPE)])
        document.append_child(body, element)


def _append_styles(document: Document, plugin: PluginBase) -> None:
    head = document.head
    for filename in plugin.list_styles():
        element = document.create_element('link', [('href', style_url(plugin.name, filename)), ('rel', 'stylesheet')])
        document.append_child(head, element)


def compose(template: TemplateHandle, plugins: Iterable[PluginBase]) -> Document:
    """Build the page for one request.

    Raises ``MalformedTemplateError`` when the template cannot be parsed.
    """
    document = parse_document(template.source)
    active: List[PluginBase] = [p for p in plugins if p.enabled]
    for plugin in active:
        if not _apply_markup(document, plugin):
            continue
        _append_scripts(document, plugin)
        _append_styles(document, plugin)
    _log.debug("composed page plugins=%d nodes=%d", len(active), len(document))
    return document
