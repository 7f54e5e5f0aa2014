import re
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import Field, field_validator

from cloaker_app.enums import RedirectMethod
from .base import CamelModel, RecordModel
from .url import URLRecord

CUSTOM_PATH_RE = re.compile(r"^[a-z0-9-]+$")
CUSTOM_PATH_MAX = 50


def normalize_custom_path(value: Optional[str]) -> Optional[str]:
    """Lowercase and validate a custom path. Blank means no path."""
    if value is None:
        return None
    value = value.strip().lower()
    if not value:
        return None
    if len(value) > CUSTOM_PATH_MAX:
        raise ValueError(f"custom path must be at most {CUSTOM_PATH_MAX} characters")
    if not CUSTOM_PATH_RE.match(value):
        raise ValueError("custom path may only contain lowercase letters, digits and hyphens")
    return value


class CampaignRecord(RecordModel):
    id: int
    name: str
    redirect_method: RedirectMethod
    custom_path: Optional[str] = None
    multiplier: Decimal = Decimal("1")
    price_per_thousand: Decimal = Decimal("0")
    trafficstar_campaign_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class CampaignWithUrls(CampaignRecord):
    urls: List[URLRecord] = []


class CampaignCreate(CamelModel):
    name: str = Field(..., min_length=1)
    redirect_method: RedirectMethod = RedirectMethod.DIRECT
    custom_path: Optional[str] = None
    multiplier: Decimal = Field(Decimal("1"), ge=0)
    price_per_thousand: Decimal = Field(Decimal("0"), ge=0)
    trafficstar_campaign_id: Optional[str] = None

    @field_validator("custom_path")
    @classmethod
    def validate_custom_path(cls, value: Optional[str]) -> Optional[str]:
        return normalize_custom_path(value)


class CampaignUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1)
    redirect_method: Optional[RedirectMethod] = None
    custom_path: Optional[str] = None
    multiplier: Optional[Decimal] = Field(None, ge=0)
    price_per_thousand: Optional[Decimal] = Field(None, ge=0)
    trafficstar_campaign_id: Optional[str] = None

    @field_validator("custom_path")
    @classmethod
    def validate_custom_path(cls, value: Optional[str]) -> Optional[str]:
        return normalize_custom_path(value)


class ClickSummary(CamelModel):
    campaign_id: int
    total_clicks: int
    by_url: Dict[int, int]
