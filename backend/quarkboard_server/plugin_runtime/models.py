from __future__ import annotations

import re
from pathlib import Path
from typing import Callable, Dict, List, Mapping, Optional, Sequence

from quarkboard_server.core.errors import InvalidPluginNameError
from quarkboard_server.document.tree import Document

MarkupHook = Callable[[Document], None]

_NAME_RE = re.compile(r'^[A-Za-z0-9_.-]+$')

# Top-level URL segments owned by the server itself.
RESERVED_NAMES = frozenset({'api', 'docs', 'redoc', 'openapi.json'})


def is_path_segment(value: object) -> bool:
    return isinstance(value, str) and bool(_NAME_RE.match(value)) and value not in {'.', '..'}


def validate_plugin_name(name: object) -> str:
    """Return *name* if it can be used as a single URL path segment."""
    if not is_path_segment(name):
        raise InvalidPluginNameError(f"plugin name must be a URL-safe path segment: {name!r}")
    if name.lower() in RESERVED_NAMES:
        raise InvalidPluginNameError(f"plugin name is reserved: {name!r}")
    return name


class PluginBase:
    """A page contributor.

    Subclasses set the class attributes (or pass them to ``__init__``) and
    override ``contribute_markup`` to edit the shared document. Asset
    directories are keyed by category; ``js`` and ``css`` are the categories
    whose files the composer links automatically.
    """

    name: str = 'unnamed'
    enabled: bool = True
    version: str = '0.0.0'
    human_name: str | None = None
    required_backend: str | None = None
    depends_on: Sequence[str] = ()
    asset_directories: Mapping[str, str | Path] = {}
    script_files: Sequence[str] = ()
    style_files: Sequence[str] = ()
    # Directory relative asset paths resolve against (the manifest folder).
    root: Path | None = None

    def __init__(
        self,
        name: str | None = None,
        *,
        enabled: bool | None = None,
        version: str | None = None,
        human_name: str | None = None,
        required_backend: str | None = None,
        depends_on: Sequence[str] | None = None,
        asset_directories: Mapping[str, str | Path] | None = None,
        script_files: Sequence[str] | None = None,
        style_files: Sequence[str] | None = None,
        root: str | Path | None = None,
        markup: Optional[MarkupHook] = None,
    ) -> None:
        if name is not None:
            self.name = name
        if enabled is not None:
            self.enabled = enabled
        if version is not None:
            self.version = version
        if human_name is not None:
            self.human_name = human_name
        if required_backend is not None:
            self.required_backend = required_backend
        self.depends_on = list(depends_on if depends_on is not None else self.depends_on)
        self.asset_directories = dict(asset_directories if asset_directories is not None else self.asset_directories)
        self.script_files = list(script_files if script_files is not None else self.script_files)
        self.style_files = list(style_files if style_files is not None else self.style_files)
        if root is not None:
            self.root = Path(root)
        self._markup = markup

    def contribute_markup(self, document: Document) -> None:
        if self._markup is not None:
            self._markup(document)

    def list_scripts(self) -> List[str]:
        return list(self.script_files)

    def list_styles(self) -> List[str]:
        return list(self.style_files)

    def asset_directory(self, category: str) -> Path | None:
        raw = self.asset_directories.get(category)
        if raw is None:
            return None
        path = Path(raw)
        if not path.is_absolute() and self.root is not None:
            path = self.root / path
        return path

    def describe(self) -> Dict[str, object]:
        return {
            'name': self.name,
            'human_name': self.human_name,
            'version': self.version,
            'enabled': self.enabled,
            'depends_on': list(self.depends_on),
            'asset_categories': sorted(self.asset_directories),
            'scripts': self.list_scripts(),
            'styles': self.list_styles(),
        }

    def __repr__(self) -> str:
        return f"<{type(self).__name__} name={self.name!r} enabled={self.enabled}>"
