"""Application factory.

Boot order: logging, template, plugins, static mounts, routes. Anything that
fails before the app is returned is fatal; after that only per-request
errors remain.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse, JSONResponse

from quarkboard_server.api import plugins as plugins_router
from quarkboard_server.api import version as version_router
from quarkboard_server.assets.mounts import MountTable
from quarkboard_server.composer.compose import compose
from quarkboard_server.composer.emitter import emit
from quarkboard_server.composer.template import load_template
from quarkboard_server.core.config import Settings, settings as default_settings
from quarkboard_server.core.errors import MalformedTemplateError
from quarkboard_server.core.logging_config import configure_logging
from quarkboard_server.core.middleware import install_response_headers
from quarkboard_server.plugin_runtime.loader import load_plugins
from quarkboard_server.plugin_runtime.registry import PluginRegistry

_log = logging.getLogger(__name__)


def create_app(settings: Settings | None = None, registry: PluginRegistry | None = None) -> FastAPI:
    """Build the FastAPI app.

    When *registry* is given it is used as-is and the plugins directory is
    not scanned.
    """
    settings = settings or default_settings
    configure_logging(settings.log_level)

    template = load_template(settings.template_path)

    statuses: dict = {}
    errors: dict = {}
    if registry is None:
        report = load_plugins(settings.plugins_dir, backend_version=settings.version)
        registry = report.registry
        statuses, errors = report.statuses, report.errors
    else:
        statuses = {p.name: ('active' if p.enabled else 'disabled') for p in registry.list()}

    mount_table = MountTable.build(registry.list())

    app = FastAPI(title=settings.app_name, version=settings.version)
    app.state.settings = settings
    app.state.template = template
    app.state.registry = registry
    app.state.mount_table = mount_table
    app.state.plugin_statuses = statuses
    app.state.plugin_errors = errors

    @app.exception_handler(MalformedTemplateError)
    async def malformed_template_handler(request: Request, exc: MalformedTemplateError):
        _log.error("cannot compose %s: %s", request.url.path, exc)
        return JSONResponse(status_code=500, content={'detail': f"malformed template: {exc}"})

    app.include_router(version_router.router, prefix=settings.api_v1_prefix)
    app.include_router(plugins_router.router, prefix=settings.api_v1_prefix)

    @app.get('/', response_class=HTMLResponse)
    async def index(request: Request) -> HTMLResponse:
        state = request.app.state
        document = compose(state.template, state.registry.list())
        return HTMLResponse(content=emit(document))

    app.state.mounted = frozenset(mount_table.mount(app))
    install_response_headers(app, settings)

    _log.info(
        "%s %s ready plugins=%d enabled=%d mounts=%d",
        settings.app_name, settings.version, len(registry), len(registry.enabled()), len(app.state.mounted),
    )
    return app
