"""
LightX API Client

Thin wrapper over a shared httpx.AsyncClient that signs every call with the
API key and turns non-2xx replies into ExternalAPIError.
"""

import json
from typing import Dict, Any

import httpx

from lightx_relay.core.logging import get_logger
from lightx_relay.core.metrics import record_lightx_call
from lightx_relay.core.exceptions import ExternalAPIError

logger = get_logger(__name__)

SERVICE_NAME = "lightx"


def is_success(status_code: int) -> bool:
    return 200 <= status_code < 300


class LightXClient:
    """POSTs JSON to the LightX external API."""

    def __init__(self, http_client: httpx.AsyncClient, api_key: str, base_url: str):
        self.http_client = http_client
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")

    @property
    def headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "x-api-key": self.api_key,
        }

    async def post(self, path: str, body: Dict[str, Any]) -> Dict[str, Any]:
        """
        POST `body` to `path` and return the decoded JSON reply.

        Raises:
            ExternalAPIError: on transport failure, non-2xx status,
                or a reply that is not a JSON object.
        """
        url = f"{self.base_url}{path}"
        logger.debug("lightx_request", path=path)

        try:
            response = await self.http_client.post(url, json=body, headers=self.headers)
        except httpx.TimeoutException:
            raise ExternalAPIError(
                f"LightX {path} failed: timeout",
                service=SERVICE_NAME
            )
        except httpx.HTTPError as e:
            raise ExternalAPIError(
                f"LightX {path} failed: {e}",
                service=SERVICE_NAME
            )

        record_lightx_call(path, response.status_code)

        try:
            data = response.json()
        except ValueError:
            data = None

        if not is_success(response.status_code):
            rendered = json.dumps(data) if data is not None else response.text
            raise ExternalAPIError(
                f"LightX {path} failed: HTTP {response.status_code} {rendered}",
                service=SERVICE_NAME,
                http_status=response.status_code
            )

        if not isinstance(data, dict):
            raise ExternalAPIError(
                f"LightX {path} returned a non-object reply: {response.text[:200]}",
                service=SERVICE_NAME,
                http_status=response.status_code
            )

        logger.debug("lightx_response", path=path, http_status=response.status_code)
        return data
