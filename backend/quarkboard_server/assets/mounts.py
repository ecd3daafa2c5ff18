"""Static asset namespaces.

Each plugin asset category is exposed under ``/{plugin}/{category}``. The
table is built once at boot; serving the bytes is left to Starlette's
``StaticFiles``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Iterable, List, Mapping, Sequence
from urllib.parse import unquote

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

from quarkboard_server.plugin_runtime.models import PluginBase, is_path_segment

_log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class MountEntry:
    url_prefix: str
    directory: Path
    plugin: str
    category: str


def mount_prefix(plugin_name: str, category: str) -> str:
    return f"/{plugin_name}/{category}"


class MountTable:
    """Immutable mapping of URL prefixes to plugin asset directories.

    Entries keep registration order. When two entries claim the same
    prefix the later one wins and the earlier one is shadowed.
    """

    def __init__(self, entries: Sequence[MountEntry] = ()) -> None:
        self._entries = tuple(entries)
        effective: dict[str, MountEntry] = {}
        for entry in self._entries:
            previous = effective.get(entry.url_prefix)
            if previous is not None:
                _log.warning(
                    "mount %s from plugin=%s shadows plugin=%s",
                    entry.url_prefix, entry.plugin, previous.plugin,
                )
            effective[entry.url_prefix] = entry
        self._effective: Mapping[str, MountEntry] = MappingProxyType(effective)

    @classmethod
    def build(cls, plugins: Iterable[PluginBase]) -> "MountTable":
        """One entry per (plugin, category), enabled or not, in plugin order."""
        entries: List[MountEntry] = []
        for plugin in plugins:
            for category in plugin.asset_directories:
                if not is_path_segment(category):
                    _log.warning("plugin=%s skipping asset category %r: not a URL path segment", plugin.name, category)
                    continue
                directory = plugin.asset_directory(category)
                if directory is None:
                    continue
                entries.append(MountEntry(mount_prefix(plugin.name, category), directory, plugin.name, category))
        return cls(entries)

    @property
    def entries(self) -> tuple[MountEntry, ...]:
        return self._entries

    def effective(self) -> List[MountEntry]:
        """The entries that actually serve requests, one per prefix."""
        return list(self._effective.values())

    def lookup(self, url_prefix: str) -> MountEntry | None:
        return self._effective.get(url_prefix)

    def resolve(self, url_path: str) -> Path | None:
        """Map a request path to the file it would serve, or None."""
        for prefix, entry in self._effective.items():
            if not url_path.startswith(prefix + "/"):
                continue
            relative = unquote(url_path[len(prefix) + 1:])
            if not relative:
                return None
            base = entry.directory.resolve()
            candidate = (base / relative).resolve()
            if not candidate.is_relative_to(base) or not candidate.is_file():
                return None
            return candidate
        return None

    def mount(self, app: FastAPI) -> List[str]:
        """Register a ``StaticFiles`` app per effective prefix; returns the mounted prefixes."""
        mounted: List[str] = []
        for entry in self._effective.values():
            if not entry.directory.is_dir():
                _log.warning(
                    "plugin=%s category=%s asset directory missing: %s",
                    entry.plugin, entry.category, entry.directory,
                )
                continue
            app.mount(
                entry.url_prefix,
                StaticFiles(directory=str(entry.directory)),
                name=f"{entry.plugin}:{entry.category}",
            )
            mounted.append(entry.url_prefix)
            _log.debug("mounted %s -> %s", entry.url_prefix, entry.directory)
        return mounted

    def __len__(self) -> int:
        return len(self._entries)
