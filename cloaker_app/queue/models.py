"""
Data models for queue messages.
"""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ClickEvent(BaseModel):
    """
    Analytics event for one redirect.

    Published by the redirect dispatcher after a URL was picked; the click
    worker turns it into a click_records row. Counting toward quotas does
    not depend on this event (that goes through the click accumulator).
    """

    campaign_id: int = Field(..., description="Campaign that served the redirect")
    url_id: int = Field(..., description="URL the visitor was sent to")
    redirect_method: Optional[str] = Field(None, description="Redirect style used")
    timestamp: datetime = Field(default_factory=_utcnow, description="When the click occurred")

    # Request metadata
    ip_address: Optional[str] = Field(None, description="Client IP address")
    user_agent: Optional[str] = Field(None, description="User agent string")
    referer: Optional[str] = Field(None, description="HTTP referer")

    # Set by the queue backend on consume, used for acknowledgment
    message_id: Optional[str] = Field(None, exclude=True)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "campaign_id": 3,
                "url_id": 42,
                "redirect_method": "http_307",
                "timestamp": "2025-10-29T10:30:00Z",
                "ip_address": "192.168.1.1",
                "user_agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) Chrome/120.0",
                "referer": "https://twitter.com",
            }
        }
    )
