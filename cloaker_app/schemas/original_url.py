from datetime import datetime
from typing import List, Optional

from pydantic import Field, field_validator

from cloaker_app.enums import UrlStatus
from .base import CamelModel, RecordModel, check_target_url
from .url import Pagination


class OriginalURLRecord(RecordModel):
    id: int
    name: str
    target_url: str
    original_click_limit: int
    status: UrlStatus
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class OriginalURLCreate(CamelModel):
    name: str = Field(..., min_length=1)
    target_url: str
    original_click_limit: int = Field(..., ge=1)
    status: UrlStatus = UrlStatus.ACTIVE

    @field_validator("target_url")
    @classmethod
    def validate_target(cls, value: str) -> str:
        return check_target_url(value)


class OriginalURLUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1)
    target_url: Optional[str] = None
    original_click_limit: Optional[int] = Field(None, ge=1)
    status: Optional[UrlStatus] = None

    @field_validator("target_url")
    @classmethod
    def validate_target(cls, value: Optional[str]) -> Optional[str]:
        return check_target_url(value) if value is not None else value


class OriginalURLPage(CamelModel):
    records: List[OriginalURLRecord]
    pagination: Pagination


class SyncResult(CamelModel):
    success: bool
    updated_count: int
