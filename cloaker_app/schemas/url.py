from datetime import datetime
from typing import List, Optional

from pydantic import Field, computed_field, field_validator, model_validator

from cloaker_app.enums import BulkAction, UrlStatus
from .base import CamelModel, RecordModel, check_target_url


class URLRecord(RecordModel):
    """Snapshot of a URL row. This is what services, caches and responses pass around.

    is_active is derived, never stored.
    """
    id: int
    campaign_id: Optional[int] = None
    name: str
    target_url: str
    clicks: int = 0
    click_limit: int
    original_click_limit: int
    status: UrlStatus
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @computed_field(alias="isActive")
    @property
    def is_active(self) -> bool:
        return self.status == UrlStatus.ACTIVE and self.clicks < self.click_limit

    @property
    def remaining(self) -> int:
        return max(self.click_limit - self.clicks, 0)


class URLCreate(CamelModel):
    name: str = Field(..., min_length=1)
    target_url: str
    # The un-multiplied quota; the campaign multiplier is applied on create.
    click_limit: int = Field(..., ge=1)
    status: Optional[UrlStatus] = None

    @field_validator("target_url")
    @classmethod
    def validate_target(cls, value: str) -> str:
        return check_target_url(value)

    @field_validator("name")
    @classmethod
    def strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("name must not be blank")
        return value


class URLUpdate(CamelModel):
    """Partial update; only fields the caller sent are applied."""
    name: Optional[str] = Field(None, min_length=1)
    target_url: Optional[str] = None
    status: Optional[UrlStatus] = None
    click_limit: Optional[int] = Field(None, ge=1)
    original_click_limit: Optional[int] = Field(None, ge=1)
    campaign_id: Optional[int] = None

    @field_validator("target_url")
    @classmethod
    def validate_target(cls, value: Optional[str]) -> Optional[str]:
        return check_target_url(value) if value is not None else value


class BulkURLAction(CamelModel):
    """Body of POST /api/urls/bulk. Older clients send urlIds, newer ones ids."""
    ids: Optional[List[int]] = None
    url_ids: Optional[List[int]] = None
    action: BulkAction

    @model_validator(mode="after")
    def require_ids(self):
        if not (self.ids or self.url_ids):
            raise ValueError("ids (or urlIds) must be a non-empty list")
        return self

    @property
    def target_ids(self) -> List[int]:
        merged = list(self.ids or []) + list(self.url_ids or [])
        return list(dict.fromkeys(merged))


class Pagination(CamelModel):
    page: int
    limit: int
    total: int
    total_pages: int


class URLPage(CamelModel):
    urls: List[URLRecord]
    pagination: Pagination


class BulkResult(CamelModel):
    success: bool
    action: BulkAction
    affected: int
