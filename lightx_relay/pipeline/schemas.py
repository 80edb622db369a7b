from pydantic import BaseModel, Field
from typing import Dict, Optional, Any
from enum import Enum


class OrderStatus(str, Enum):
    ACTIVE = "active"
    FAILED = "failed"

    @classmethod
    def is_terminal(cls, status: Any) -> bool:
        return isinstance(status, str) and status in (cls.ACTIVE.value, cls.FAILED.value)


class SourceImage(BaseModel):
    """What a HEAD on the caller's image URL told us."""
    size: int = Field(..., ge=0)
    content_type: str


class UploadSlot(BaseModel):
    """Pre-signed write URL and the read URL LightX will serve it from."""
    upload_url: str
    image_url: str


class ToolInvocation(BaseModel):
    """Reply from POST /<tool>."""
    order_id: Optional[str] = None
    max_retries: int = Field(..., ge=0)
    raw: Dict[str, Any] = Field(default_factory=dict)

    @property
    def is_synchronous(self) -> bool:
        return not self.order_id


class PollResult(BaseModel):
    """Outcome of polling /order-status. Status is whatever LightX sent."""
    status: Optional[Any] = None
    attempts: int = 0
    output: Optional[Any] = None
    raw: Optional[Dict[str, Any]] = None

    @property
    def succeeded(self) -> bool:
        return self.status == OrderStatus.ACTIVE.value
