"""
Relay Orchestrator

Runs the fixed run-tool pipeline for one request:
probe -> slot -> fetch -> transfer -> invoke -> poll.
"""

import re
from typing import Optional, Dict, Any

import httpx

from lightx_relay.core.config import Settings
from lightx_relay.core.logging import get_logger
from lightx_relay.core.metrics import record_relay_run
from lightx_relay.core.exceptions import ConfigurationError, ValidationError
from lightx_relay.pipeline.client import LightXClient
from lightx_relay.pipeline.schemas import OrderStatus
from lightx_relay.pipeline import stages

logger = get_logger(__name__)

TEXT2IMAGE_TOOL = "text2image"

# Tool names become a URL path segment on the LightX API.
TOOL_NAME_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_-]*$")


class RelayOrchestrator:
    """Relays one run-tool request to LightX and waits for the result."""

    def __init__(self, http_client: httpx.AsyncClient, settings: Settings):
        self.http_client = http_client
        self.settings = settings
        self.client = LightXClient(
            http_client,
            api_key=settings.LIGHTX_API_KEY or "",
            base_url=settings.LIGHTX_BASE_URL
        )

    def validate(self, tool: Optional[str], image_url: Optional[str]):
        """Reject requests that cannot be relayed, in the order callers expect."""
        if not self.settings.LIGHTX_API_KEY:
            raise ConfigurationError("LIGHTX_API_KEY is not set")

        if not tool:
            raise ValidationError("tool is required")

        if not TOOL_NAME_PATTERN.match(tool):
            raise ValidationError(f"tool is not a valid tool name: {tool!r}")

        if tool != TEXT2IMAGE_TOOL and not image_url:
            raise ValidationError("imageUrl is required for this tool")

    async def run(
        self,
        tool: Optional[str],
        image_url: Optional[str] = None,
        params: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Execute the pipeline and return the response payload.

        Returns a dict with `success` and `tool`, plus one of:
        `raw` (text2image), `synchronous` + `raw` (no orderId),
        `status` + `output` (active) or `status` + `raw` (failed/exhausted).
        """
        self.validate(tool, image_url)
        params = params or {}

        logger.info("run_tool_started", tool=tool, has_image=bool(image_url))

        if tool == TEXT2IMAGE_TOOL:
            reply = await stages.run_text2image(self.client, params)
            record_relay_run(tool, "success")
            return {"success": True, "tool": tool, "raw": reply}

        source = await stages.probe_source_image(
            self.http_client, image_url, self.settings.DEFAULT_CONTENT_TYPE
        )
        slot = await stages.request_upload_slot(self.client, source)
        payload = await stages.fetch_source_bytes(self.http_client, image_url)
        await stages.transfer_to_slot(self.http_client, slot, payload, source.content_type)

        invocation = await stages.invoke_tool(
            self.client,
            tool,
            slot.image_url,
            params,
            default_max_retries=self.settings.DEFAULT_MAX_RETRIES
        )

        if invocation.is_synchronous:
            record_relay_run(tool, "synchronous")
            return {
                "success": True,
                "tool": tool,
                "synchronous": True,
                "raw": invocation.raw,
            }

        result = await stages.poll_order_status(
            self.client,
            invocation.order_id,
            invocation.max_retries,
            interval_seconds=self.settings.POLL_INTERVAL_SECONDS
        )

        if not result.succeeded:
            logger.warning(
                "order_not_active",
                tool=tool,
                order_id=invocation.order_id,
                status=result.status,
                attempts=result.attempts
            )
            record_relay_run(tool, "failed" if result.status == OrderStatus.FAILED.value else "timeout")
            return {
                "success": False,
                "tool": tool,
                "status": result.status,
                "raw": result.raw,
            }

        logger.info("run_tool_completed", tool=tool, order_id=invocation.order_id, attempts=result.attempts)
        record_relay_run(tool, "success")
        return {
            "success": True,
            "tool": tool,
            "status": result.status,
            "output": result.output,
        }
