"""Plugin loader.

Every sub-directory of the plugins directory holding a ``plugin.yml`` is a
plugin. The manifest declares its assets and page contributions; the python
modules it lists are imported and a module-level
``contribute_markup(document)`` becomes the plugin's markup hook.

Example manifest::

    name: clock
    version: 1.0.0
    required_backend: ">=0.1.0"
    enabled: true
    depends_on: []
    files: [plugin]
    assets:
      js: assets/js
      css: assets/css
    scripts: [clock.js]
    styles: [clock.css]
"""

from __future__ import annotations
import importlib.util
import logging
import pathlib
import sys
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional

import yaml

from quarkboard_server.core.compat import version_satisfies
from quarkboard_server.core.errors import QuarkboardError
from quarkboard_server.document.tree import Document
from quarkboard_server.plugin_runtime.models import MarkupHook, PluginBase, validate_plugin_name
from quarkboard_server.plugin_runtime.registry import PluginRegistry

_log = logging.getLogger(__name__)

MANIFEST_NAME = 'plugin.yml'
MODULE_NAMESPACE = 'quarkboard_plugins'


def _string_list(raw: Any) -> List[str]:
    """Normalize a manifest list field, dropping blanks and null placeholders."""
    if raw is None:
        return []
    items: Iterable[Any] = raw if isinstance(raw, (list, tuple)) else (raw,)
    cleaned: List[str] = []
    for item in items:
        if item is None:
            continue
        text = str(item).strip()
        if not text or text.lower() in {'null', 'none'}:
            continue
        cleaned.append(text)
    return cleaned


def _as_bool(raw: Any, default: bool) -> bool:
    if raw is None:
        return default
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, (int, float)):
        return bool(raw)
    lowered = str(raw).strip().lower()
    if lowered in {'1', 'true', 'yes', 'on'}:
        return True
    if lowered in {'0', 'false', 'no', 'off'}:
        return False
    return default


@dataclass
class PluginManifest:
    name: str
    version: str
    root: pathlib.Path
    required_backend: str | None = None
    enabled: bool = True
    files: List[str] = field(default_factory=list)
    depends_on: List[str] = field(default_factory=list)
    assets: Dict[str, str] = field(default_factory=dict)
    scripts: List[str] = field(default_factory=list)
    styles: List[str] = field(default_factory=list)
    human_name: str | None = None


@dataclass
class PluginLoadReport:
    registry: PluginRegistry
    statuses: Dict[str, str] = field(default_factory=dict)
    errors: Dict[str, str] = field(default_factory=dict)

    def mark(self, name: str, status: str, error: str | None = None) -> None:
        self.statuses[name] = status
        if error:
            self.errors[name] = error
        else:
            self.errors.pop(name, None)


class ManifestPlugin(PluginBase):
    """A plugin described by an on-disk manifest."""

    def __init__(self, manifest: PluginManifest, hooks: List[MarkupHook] | None = None) -> None:
        super().__init__(
            manifest.name,
            enabled=manifest.enabled,
            version=manifest.version,
            human_name=manifest.human_name,
            required_backend=manifest.required_backend,
            depends_on=manifest.depends_on,
            asset_directories=manifest.assets,
            script_files=manifest.scripts,
            style_files=manifest.styles,
            root=manifest.root,
        )
        self.manifest = manifest
        self._hooks = list(hooks or [])

    def contribute_markup(self, document: Document) -> None:
        for hook in self._hooks:
            hook(document)


def parse_manifest(path: pathlib.Path) -> PluginManifest | None:
    """Read a ``plugin.yml``; returns None (after logging) when it is unusable."""
    try:
        data = yaml.safe_load(path.read_text(encoding='utf-8')) or {}
    except (OSError, yaml.YAMLError) as e:
        _log.error("failed to parse manifest %s: %s", path, e)
        return None
    if not isinstance(data, dict):
        _log.error("manifest is not a mapping: %s", path)
        return None
    name = data.get('name')
    ver = data.get('version')
    if not (name and ver):
        _log.error("invalid manifest missing name/version: %s", path)
        return None
    name = str(name)
    if path.parent.name != name:
        _log.error("manifest name mismatch dir=%s name=%s", path.parent.name, name)
        return None
    try:
        validate_plugin_name(name)
    except QuarkboardError as e:
        _log.error("invalid plugin name in %s: %s", path, e)
        return None
    assets = data.get('assets') or {}
    if not isinstance(assets, dict):
        _log.error("manifest assets must be a mapping of category to directory: %s", path)
        return None
    required = data.get('required_backend')
    human_name = data.get('human_name') or data.get('title')
    return PluginManifest(
        name=name,
        version=str(ver),
        root=path.parent,
        required_backend=str(required) if required else None,
        enabled=_as_bool(data.get('enabled'), True),
        files=_string_list(data.get('files')),
        depends_on=_string_list(data.get('depends_on')),
        assets={str(k): str(v) for k, v in assets.items() if v},
        scripts=_string_list(data.get('scripts')),
        styles=_string_list(data.get('styles')),
        human_name=str(human_name) if human_name else None,
    )


def _module_path(manifest: PluginManifest, rel: str) -> pathlib.Path:
    rel_path = rel[:-3] if rel.endswith('.py') else rel
    candidate = (manifest.root / f"{rel_path}.py").resolve()
    if not candidate.is_relative_to(manifest.root.resolve()):
        raise ImportError(f"module {rel!r} escapes plugin directory")
    return candidate


def _import_files(manifest: PluginManifest) -> List[MarkupHook]:
    hooks: List[MarkupHook] = []
    for rel in manifest.files:
        file_path = _module_path(manifest, rel)
        dotted = (rel[:-3] if rel.endswith('.py') else rel).replace('/', '.').replace('\\', '.')
        full = f"{MODULE_NAMESPACE}.{manifest.name}.{dotted}"
        spec = importlib.util.spec_from_file_location(full, file_path)
        if spec is None or spec.loader is None:
            raise ImportError(f"cannot import {file_path}")
        module = importlib.util.module_from_spec(spec)
        sys.modules[full] = module
        try:
            spec.loader.exec_module(module)
        except BaseException:
            sys.modules.pop(full, None)
            raise
        _log.debug("plugin name=%s imported=%s", manifest.name, full)
        hook = getattr(module, 'contribute_markup', None)
        if callable(hook):
            hooks.append(hook)
    return hooks


def unload_plugin_modules(plugin_name: str) -> None:
    """Drop a plugin's imported modules from sys.modules."""
    prefix = f"{MODULE_NAMESPACE}.{plugin_name}."
    for key in [k for k in list(sys.modules) if k.startswith(prefix)]:
        sys.modules.pop(key, None)


def _next_ready(remaining: Dict[str, PluginManifest], active: set) -> Optional[str]:
    for name in sorted(remaining):
        if all(d in active for d in remaining[name].depends_on):
            return name
    return None


def load_plugins(
    plugins_dir: str | pathlib.Path,
    *,
    backend_version: str,
    factory: Callable[[PluginManifest, List[MarkupHook]], PluginBase] = ManifestPlugin,
) -> PluginLoadReport:
    """Discover, import and register every plugin under *plugins_dir*.

    Plugins are registered after their dependencies, ties broken by name.
    A plugin that cannot be loaded is logged and skipped; loading never
    aborts startup.
    """
    report = PluginLoadReport(registry=PluginRegistry())
    root = pathlib.Path(plugins_dir)
    if not root.is_dir():
        _log.warning("plugins directory not found: %s", root)
        return report

    manifests: Dict[str, PluginManifest] = {}
    for manifest_path in sorted(root.glob(f'*/{MANIFEST_NAME}')):
        mf = parse_manifest(manifest_path)
        if mf is None:
            report.mark(manifest_path.parent.name, 'invalid_manifest', f"unusable manifest {manifest_path}")
            continue
        manifests[mf.name] = mf

    remaining: Dict[str, PluginManifest] = {}
    for name, mf in manifests.items():
        missing = [d for d in mf.depends_on if d not in manifests]
        if missing:
            report.mark(name, 'dependency_missing', f"missing deps: {missing}")
            _log.warning("plugin name=%s dependency_missing deps=%s", name, missing)
            continue
        if mf.required_backend and not version_satisfies(backend_version, mf.required_backend):
            report.mark(name, 'incompatible', f"requires backend {mf.required_backend}")
            _log.warning("plugin name=%s incompatible required_backend=%s backend=%s", name, mf.required_backend, backend_version)
            continue
        remaining[name] = mf

    active: set = set()
    while True:
        name = _next_ready(remaining, active)
        if name is None:
            break
        mf = remaining.pop(name)
        try:
            hooks = _import_files(mf)
            plugin = factory(mf, hooks)
            report.registry.register(plugin)
        except Exception as e:
            unload_plugin_modules(name)
            report.mark(name, 'error', f"{type(e).__name__}: {e}")
            _log.error("plugin load failed name=%s", name, exc_info=True)
            continue
        active.add(name)
        report.mark(name, 'active' if mf.enabled else 'disabled')
        _log.info("plugin name=%s version=%s status=%s", name, mf.version, report.statuses[name])

    for name, mf in remaining.items():
        unmet = [d for d in mf.depends_on if d not in active]
        if unmet and all(d in remaining for d in unmet):
            report.mark(name, 'dependency_cycle', f"cycle with deps {unmet}")
            _log.warning("plugin name=%s dependency_cycle deps=%s", name, unmet)
        else:
            report.mark(name, 'dependency_inactive', f"inactive deps: {unmet}")
            _log.warning("plugin name=%s dependency_inactive deps=%s", name, unmet)
    return report
