from __future__ import annotations

import logging
from typing import Dict, Iterable, Iterator, List

from quarkboard_server.core.errors import PluginNameCollisionError
from quarkboard_server.plugin_runtime.models import PluginBase, validate_plugin_name

_log = logging.getLogger(__name__)


class PluginRegistry:
    """Ordered collection of plugins built at boot.

    Registration order is the page order: the composer renders plugins and
    their scripts/styles in exactly this sequence. Names are unique because
    each one owns the ``/{name}/...`` static namespace.
    """

    def __init__(self, plugins: Iterable[PluginBase] = ()) -> None:
        self._plugins: Dict[str, PluginBase] = {}
        for plugin in plugins:
            self.register(plugin)

    def register(self, plugin: PluginBase) -> PluginBase:
        name = validate_plugin_name(plugin.name)
        if name in self._plugins:
            raise PluginNameCollisionError(name)
        self._plugins[name] = plugin
        _log.debug("registered plugin name=%s enabled=%s", name, plugin.enabled)
        return plugin

    def unregister(self, name: str) -> PluginBase | None:
        return self._plugins.pop(name, None)

    def get(self, name: str) -> PluginBase | None:
        return self._plugins.get(name)

    def list(self) -> List[PluginBase]:
        return list(self._plugins.values())

    def enabled(self) -> List[PluginBase]:
        return [p for p in self._plugins.values() if p.enabled]

    def names(self) -> List[str]:
        return list(self._plugins)

    def __contains__(self, name: object) -> bool:
        return name in self._plugins

    def __iter__(self) -> Iterator[PluginBase]:
        return iter(self.list())

    def __len__(self) -> int:
        return len(self._plugins)
