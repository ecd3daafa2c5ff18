from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from quarkboard_server.core.errors import TemplateNotFoundError, TemplateReadError

_log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class TemplateHandle:
    """The base page markup, read once at boot and shared by every request."""

    path: Path
    source: str


def load_template(path: str | Path) -> TemplateHandle:
    """Read the template at *path*.

    Raises ``TemplateNotFoundError`` when nothing exists at *path* and
    ``TemplateReadError`` for any other read or decode failure.
    """
    template_path = Path(path)
    if not template_path.exists():
        raise TemplateNotFoundError(template_path)
    try:
        source = template_path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise TemplateNotFoundError(template_path) from exc
    except UnicodeDecodeError as exc:
        raise TemplateReadError(template_path, f"not valid UTF-8 ({exc.reason})") from exc
    except OSError as exc:
        raise TemplateReadError(template_path, exc.strerror or str(exc)) from exc
    _log.info("loaded template path=%s bytes=%d", template_path, len(source))
    return TemplateHandle(path=template_path, source=source)
