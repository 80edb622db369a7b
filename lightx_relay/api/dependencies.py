"""
FastAPI Dependencies for the Relay

Provides dependency injection for:
- Settings (overridable in tests)
- Shared httpx.AsyncClient (created in the app lifespan)
- RelayOrchestrator (per-request)
- Request body size limit
"""

import httpx
from fastapi import Depends, Request

from lightx_relay.core.config import Settings, settings
from lightx_relay.core.exceptions import PayloadTooLargeError
from lightx_relay.pipeline.orchestrator import RelayOrchestrator


def get_settings() -> Settings:
    return settings


def create_http_client(cfg: Settings) -> httpx.AsyncClient:
    """Build the shared outbound client. Redirects are followed for source image hosts."""
    return httpx.AsyncClient(
        timeout=cfg.HTTP_TIMEOUT_SECONDS,
        follow_redirects=True
    )


def get_http_client(request: Request) -> httpx.AsyncClient:
    return request.app.state.http_client


def get_orchestrator(
    cfg: Settings = Depends(get_settings),
    http_client: httpx.AsyncClient = Depends(get_http_client)
) -> RelayOrchestrator:
    return RelayOrchestrator(http_client, cfg)


async def enforce_body_limit(request: Request, cfg: Settings = Depends(get_settings)):
    """Reject bodies whose declared length exceeds MAX_REQUEST_BODY_BYTES."""
    declared = request.headers.get("content-length")
    if declared and declared.isdigit() and int(declared) > cfg.MAX_REQUEST_BODY_BYTES:
        raise PayloadTooLargeError(cfg.MAX_REQUEST_BODY_BYTES)
