"""
Run-Tool Endpoint - LightX Relay

POST /lightx/run-tool - Run a LightX tool on a caller-hosted image:
1. Stage the image into a LightX upload slot
2. Invoke the tool
3. Poll the order until it is active or failed
"""

from typing import Optional, Dict, Any

from fastapi import APIRouter, Body, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from lightx_relay.core.logging import get_logger, LogContext
from lightx_relay.api.dependencies import get_orchestrator, enforce_body_limit
from lightx_relay.pipeline.orchestrator import RelayOrchestrator

logger = get_logger(__name__)
router = APIRouter()


# =============================================================================
# Request/Response Schemas
# =============================================================================

class RunToolRequest(BaseModel):
    """Request to run a LightX tool."""
    model_config = ConfigDict(populate_by_name=True)

    image_url: Optional[str] = Field(
        default=None,
        alias="imageUrl",
        description="Publicly readable source image URL (not needed for text2image)"
    )
    tool: Optional[str] = Field(
        default=None,
        description="LightX tool path, e.g. cartoon, remove-background, text2image"
    )
    params: Optional[Dict[str, Any]] = Field(
        default=None,
        description="Tool-specific options merged into the LightX request body"
    )


class RunToolResponse(BaseModel):
    """Relay result. Fields that do not apply to the outcome are omitted."""
    success: bool
    tool: Optional[str] = None
    status: Optional[str] = None
    synchronous: Optional[bool] = None
    output: Optional[Any] = None
    raw: Optional[Any] = None
    error: Optional[str] = None


# =============================================================================
# Endpoints
# =============================================================================

@router.post(
    "/run-tool",
    response_model=RunToolResponse,
    dependencies=[Depends(enforce_body_limit)]
)
async def run_tool(
    request: Optional[RunToolRequest] = Body(default=None),
    orchestrator: RelayOrchestrator = Depends(get_orchestrator)
):
    """
    Relay one tool run to LightX and wait for the result.

    Outcomes:
    - text2image: `{success, tool, raw}`
    - tool without an order id: `{success, tool, synchronous, raw}`
    - order active: `{success, tool, status, output}`
    - order failed or polling exhausted: `{success: false, tool, status, raw}`
    """
    request = request or RunToolRequest()

    with LogContext(stage="run_tool"):
        logger.info(
            "run_tool_request_received",
            tool=request.tool,
            param_keys=sorted((request.params or {}).keys())
        )
        result = await orchestrator.run(
            tool=request.tool,
            image_url=request.image_url,
            params=request.params
        )

    return JSONResponse(
        content={key: value for key, value in result.items() if value is not None}
    )
