"""Quarkboard exception hierarchy.

Boot-fatal errors stop the process before the listener opens; the
per-request errors are turned into responses by the web layer.
"""

from __future__ import annotations

from pathlib import Path


class QuarkboardError(Exception):
    """Base for all quarkboard-specific errors."""


class TemplateNotFoundError(QuarkboardError, FileNotFoundError):
    def __init__(self, path: Path):
        self.path = path
        super().__init__(f"template not found: {path}")


class TemplateReadError(QuarkboardError):
    def __init__(self, path: Path, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"unable to read template {path}: {reason}")


class MalformedTemplateError(QuarkboardError):
    """The template markup could not be turned into a document tree."""


class InvalidPluginNameError(QuarkboardError, ValueError):
    pass


class PluginNameCollisionError(QuarkboardError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"plugin already registered: {name}")


class TLSConfigError(QuarkboardError):
    """HTTPS was requested but the key or certificate is unusable."""
