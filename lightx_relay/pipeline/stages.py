"""
Pipeline Stage Implementations

Each stage is a separate coroutine that can be called independently:

1. probe     - HEAD the caller's image for size and content type
2. slot      - ask LightX for a pre-signed upload slot
3. fetch     - GET the caller's image bytes
4. transfer  - PUT the bytes into the upload slot
5. invoke    - POST /<tool> with the staged image URL
6. poll      - POST /order-status until the order is terminal
"""

import math
import asyncio
from typing import Dict, Any

import httpx
import pydantic

from lightx_relay.core.logging import get_logger, with_logging
from lightx_relay.core.metrics import track_stage_latency, record_poll_attempts
from lightx_relay.core.exceptions import ExternalAPIError, PipelineStageError
from lightx_relay.pipeline.client import LightXClient, is_success
from lightx_relay.pipeline.schemas import (
    SourceImage,
    UploadSlot,
    ToolInvocation,
    PollResult,
    OrderStatus,
)

logger = get_logger(__name__)

SOURCE_SERVICE = "source_image"
STORAGE_SERVICE = "upload_storage"
UPLOAD_OK_STATUS_CODE = 2000


def _body(reply: Dict[str, Any]) -> Dict[str, Any]:
    body = reply.get("body")
    return body if isinstance(body, dict) else {}


def _build(model, stage: str, **fields):
    """Construct a stage model, reporting unusable upstream values as a stage failure."""
    try:
        return model(**fields)
    except pydantic.ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}" for error in e.errors()
        )
        raise PipelineStageError(
            f"Unexpected {model.__name__} values from upstream: {problems}",
            stage=stage
        )


def _poll_budget(value: Any) -> int:
    """Number of order-status calls for a maxRetriesAllowed value.

    Counts the integers below the value, so 2.5 allows 3 calls. Values that
    are not finite numbers allow none.
    """
    try:
        budget = math.ceil(float(value))
    except (TypeError, ValueError, OverflowError):
        return 0
    return max(0, budget)


async def _send(
    http_client: httpx.AsyncClient,
    method: str,
    url: str,
    service: str,
    stage: str,
    **kwargs
) -> httpx.Response:
    """Issue a raw request, wrapping transport failures."""
    try:
        return await http_client.request(method, url, **kwargs)
    except httpx.HTTPError as e:
        raise ExternalAPIError(
            f"{method} {service} failed: {e}",
            service=service,
            stage=stage
        )


# =============================================================================
# Stage 1: Probe source image
# =============================================================================

@with_logging("probe")
async def probe_source_image(
    http_client: httpx.AsyncClient,
    image_url: str,
    default_content_type: str = "image/jpeg"
) -> SourceImage:
    """HEAD the source image; Content-Length is required."""
    with track_stage_latency("probe"):
        response = await _send(http_client, "HEAD", image_url, SOURCE_SERVICE, "probe")

    if not is_success(response.status_code):
        raise ExternalAPIError(
            f"Could not read image headers: HTTP {response.status_code}",
            service=SOURCE_SERVICE,
            http_status=response.status_code,
            stage="probe"
        )

    size_header = response.headers.get("content-length")
    if not size_header:
        raise PipelineStageError("Source image has no Content-Length header", stage="probe")

    try:
        size = int(size_header)
    except ValueError:
        size = -1
    if size < 0:
        raise PipelineStageError(
            f"Source image has an invalid Content-Length header: {size_header!r}",
            stage="probe"
        )

    content_type = response.headers.get("content-type") or default_content_type
    logger.info("source_image_probed", size=size, content_type=content_type)

    return _build(SourceImage, "probe", size=size, content_type=content_type)


# =============================================================================
# Stage 2: Request upload slot
# =============================================================================

@with_logging("slot")
async def request_upload_slot(client: LightXClient, source: SourceImage) -> UploadSlot:
    """Ask LightX for somewhere to put the image."""
    with track_stage_latency("slot"):
        reply = await client.post("/uploadImageUrl", {
            "uploadType": "imageUrl",
            "size": source.size,
            "contentType": source.content_type,
        })

    if reply.get("statusCode") != UPLOAD_OK_STATUS_CODE:
        raise PipelineStageError(
            f"uploadImageUrl statusCode != {UPLOAD_OK_STATUS_CODE}: {reply}",
            stage="slot",
            details={"reply": reply}
        )

    body = _body(reply)
    upload_url = body.get("uploadImage")
    image_url = body.get("imageUrl")

    if not upload_url or not image_url:
        raise PipelineStageError(
            f"Missing uploadImage or imageUrl: {reply}",
            stage="slot",
            details={"reply": reply}
        )

    return _build(UploadSlot, "slot", upload_url=upload_url, image_url=image_url)


# =============================================================================
# Stage 3: Fetch source bytes
# =============================================================================

@with_logging("fetch")
async def fetch_source_bytes(http_client: httpx.AsyncClient, image_url: str) -> bytes:
    with track_stage_latency("fetch"):
        response = await _send(http_client, "GET", image_url, SOURCE_SERVICE, "fetch")

    if not is_success(response.status_code):
        raise ExternalAPIError(
            f"Failed to GET source image: HTTP {response.status_code}",
            service=SOURCE_SERVICE,
            http_status=response.status_code,
            stage="fetch"
        )

    logger.info("source_image_fetched", size=len(response.content))
    return response.content


# =============================================================================
# Stage 4: Transfer bytes to the slot
# =============================================================================

@with_logging("transfer")
async def transfer_to_slot(
    http_client: httpx.AsyncClient,
    slot: UploadSlot,
    payload: bytes,
    content_type: str
):
    with track_stage_latency("transfer"):
        response = await _send(
            http_client,
            "PUT",
            slot.upload_url,
            STORAGE_SERVICE,
            "transfer",
            content=payload,
            headers={
                "Content-Type": content_type,
                "Content-Length": str(len(payload)),
            }
        )

    if not is_success(response.status_code):
        raise ExternalAPIError(
            f"S3 upload failed: HTTP {response.status_code} {response.reason_phrase}",
            service=STORAGE_SERVICE,
            http_status=response.status_code,
            stage="transfer"
        )

    logger.info("source_image_transferred", size=len(payload))


# =============================================================================
# Stage 5: Invoke tool
# =============================================================================

@with_logging("invoke")
async def invoke_tool(
    client: LightXClient,
    tool: str,
    image_url: str,
    params: Dict[str, Any],
    default_max_retries: int = 5
) -> ToolInvocation:
    """POST /<tool>. Caller params are merged last and win on collision."""
    with track_stage_latency("invoke"):
        reply = await client.post(f"/{tool}", {"imageUrl": image_url, **params})

    body = _body(reply)
    order_id = body.get("orderId")

    max_retries = body.get("maxRetriesAllowed")
    if max_retries is None:
        max_retries = default_max_retries
    max_retries = _poll_budget(max_retries)

    logger.info("tool_invoked", tool=tool, order_id=order_id, max_retries=max_retries)

    return _build(
        ToolInvocation,
        "invoke",
        order_id=str(order_id) if order_id else None,
        max_retries=max_retries,
        raw=reply
    )


# =============================================================================
# Stage 6: Poll order status
# =============================================================================

@with_logging("poll")
async def poll_order_status(
    client: LightXClient,
    order_id: str,
    retries: int,
    interval_seconds: float = 3.0
) -> PollResult:
    """Sleep-then-check up to `retries` times, stopping at a terminal status."""
    result = PollResult()

    with track_stage_latency("poll"):
        for attempt in range(1, retries + 1):
            await asyncio.sleep(interval_seconds)

            reply = await client.post("/order-status", {"orderId": order_id})
            body = _body(reply)

            result = PollResult(
                status=body.get("status"),
                attempts=attempt,
                output=body.get("output"),
                raw=reply
            )
            logger.info("order_polled", order_id=order_id, attempt=attempt, status=result.status)

            if OrderStatus.is_terminal(result.status):
                break

    record_poll_attempts(result.attempts)
    return result


@with_logging("text2image")
async def run_text2image(client: LightXClient, params: Dict[str, Any]) -> Dict[str, Any]:
    """text2image has no source image; the reply is passed back untouched."""
    with track_stage_latency("text2image"):
        return await client.post("/text2image", params)
