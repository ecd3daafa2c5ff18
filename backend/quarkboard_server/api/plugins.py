from __future__ import annotations

from typing import Dict, List, Optional

from fastapi import APIRouter, Request
from pydantic import BaseModel

router = APIRouter(prefix='/plugins', tags=['plugins'])


class PluginModel(BaseModel):
    name: str
    human_name: Optional[str] = None
    version: str
    enabled: bool
    depends_on: List[str] = []
    asset_categories: List[str] = []
    scripts: List[str] = []
    styles: List[str] = []


class MountModel(BaseModel):
    url_prefix: str
    plugin: str
    category: str
    directory: str
    available: bool


class PluginListing(BaseModel):
    plugins: List[PluginModel]
    mounts: List[MountModel]
    # Load outcome per discovered plugin (active, disabled, error, ...).
    statuses: Dict[str, str] = {}
    errors: Dict[str, str] = {}


@router.get('', response_model=PluginListing)
async def list_plugins(request: Request) -> PluginListing:
    state = request.app.state
    plugins = [PluginModel(**p.describe()) for p in state.registry.list()]
    mounts = [
        MountModel(
            url_prefix=entry.url_prefix,
            plugin=entry.plugin,
            category=entry.category,
            directory=str(entry.directory),
            available=entry.url_prefix in state.mounted,
        )
        for entry in state.mount_table.effective()
    ]
    return PluginListing(
        plugins=plugins,
        mounts=mounts,
        statuses=dict(state.plugin_statuses),
        errors=dict(state.plugin_errors),
    )
