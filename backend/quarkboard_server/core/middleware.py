"""Headers attached to every response: provenance and browser hardening."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict

from fastapi import FastAPI, Request

from quarkboard_server.core.config import Settings

VERSION_HEADER = 'X-Quarkboard-Version'
REPOSITORY_HEADER = 'X-Quarkboard-Repository'


@dataclass(frozen=True, slots=True)
class SecurityHeadersConfig:
    x_frame_options: str = 'SAMEORIGIN'
    x_content_type_options: str = 'nosniff'
    referrer_policy: str = 'no-referrer'
    strict_transport_security: str | None = None

    @classmethod
    def for_settings(cls, settings: Settings) -> "SecurityHeadersConfig":
        if settings.https:
            return cls(strict_transport_security='max-age=15552000; includeSubDomains')
        return cls()


def provenance_headers(settings: Settings) -> Dict[str, str]:
    headers: Dict[str, str] = {}
    if settings.version:
        headers[VERSION_HEADER] = settings.version
    if settings.repository:
        headers[REPOSITORY_HEADER] = settings.repository
    return headers


def security_headers(config: SecurityHeadersConfig) -> Dict[str, str]:
    headers = {
        'X-Content-Type-Options': config.x_content_type_options,
        'X-Frame-Options': config.x_frame_options,
        'Referrer-Policy': config.referrer_policy,
    }
    if config.strict_transport_security:
        headers['Strict-Transport-Security'] = config.strict_transport_security
    return headers


def install_response_headers(app: FastAPI, settings: Settings) -> None:
    """Stamp the headers on responses from routes, static mounts and error handlers alike."""
    fixed = {**security_headers(SecurityHeadersConfig.for_settings(settings)), **provenance_headers(settings)}

    @app.middleware('http')
    async def add_response_headers(request: Request, call_next):
        response = await call_next(request)
        for name, value in fixed.items():
            response.headers.setdefault(name, value)
        return response
