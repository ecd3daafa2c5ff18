from __future__ import annotations

from fastapi import APIRouter, Request
from pydantic import BaseModel

router = APIRouter(tags=['meta'])


class VersionInfo(BaseModel):
    version: str
    repository: str | None = None


@router.get('/version', response_model=VersionInfo)
async def get_version(request: Request) -> VersionInfo:
    settings = request.app.state.settings
    return VersionInfo(version=settings.version, repository=settings.repository or None)
