from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from quarkboard_server.core.config import Settings, settings as default_settings
from quarkboard_server.core.errors import QuarkboardError, TLSConfigError
from quarkboard_server.core.logging_config import configure_logging

_log = logging.getLogger('quarkboard_server.entrypoint')


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='quarkboard-server',
        description='Serve a page assembled from the installed plugins.',
    )
    parser.add_argument('-H', '--hostname', help=f"interface to bind (default {default_settings.hostname})")
    parser.add_argument('-P', '--port', type=int, help=f"port to listen on (default {default_settings.port})")
    parser.add_argument('--https', action='store_true', default=None, help='serve over TLS')
    parser.add_argument('--private-key', type=Path, help='PEM private key used with --https')
    parser.add_argument('--certificate', type=Path, help='PEM certificate used with --https')
    parser.add_argument('--template', dest='template_path', type=Path, help='base page template')
    parser.add_argument('--plugins-dir', type=Path, help='directory scanned for plugins')
    parser.add_argument('--log-level', help='DEBUG, INFO, WARNING, ERROR or CRITICAL')
    return parser


def settings_from_args(args: argparse.Namespace, base: Settings | None = None) -> Settings:
    """Layer the flags that were actually given on top of *base*."""
    base = base or default_settings
    update: Dict[str, Any] = {}
    for field in ('hostname', 'port', 'https', 'private_key', 'certificate', 'template_path', 'plugins_dir', 'log_level'):
        value = getattr(args, field, None)
        if value is not None:
            update[field] = value
    return base.model_copy(update=update)


def check_tls(settings: Settings) -> None:
    if not settings.https:
        return
    for label, path in (('private key', settings.private_key), ('certificate', settings.certificate)):
        if path is None:
            raise TLSConfigError(f"https requested but no {label} configured")
        if not path.is_file():
            raise TLSConfigError(f"{label} not found: {path}")
        try:
            with path.open('rb'):
                pass
        except OSError as exc:
            raise TLSConfigError(f"{label} unreadable: {path} ({exc.strerror or exc})") from exc


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = settings_from_args(args)
    configure_logging(settings.log_level)
    _log.info("starting version=%s log_level=%s", settings.version, settings.log_level)

    try:
        check_tls(settings)
        from quarkboard_server.main import create_app
        app = create_app(settings)
    except QuarkboardError as exc:
        _log.error("startup failed: %s", exc)
        return 1

    import uvicorn

    ssl_params: Dict[str, str] = {}
    if settings.https:
        ssl_params = {'ssl_keyfile': str(settings.private_key), 'ssl_certfile': str(settings.certificate)}
    scheme = 'https' if settings.https else 'http'
    _log.info("listening on %s://%s:%d", scheme, settings.hostname, settings.port)
    uvicorn.run(
        app,
        host=settings.hostname,
        port=settings.port,
        log_level=settings.log_level.lower(),
        **ssl_params,
    )
    return 0


if __name__ == '__main__':  # pragma: no cover
    sys.exit(main())
