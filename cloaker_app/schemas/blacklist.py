from datetime import datetime
from typing import Optional

from pydantic import Field

from .base import CamelModel, RecordModel


class BlacklistRecord(RecordModel):
    id: int
    name: str
    target_url: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class BlacklistCreate(CamelModel):
    name: str = Field(..., min_length=1)
    # Stored verbatim (apart from trimming): matching is exact.
    target_url: str = Field(..., min_length=1)


class BlacklistUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1)
    target_url: Optional[str] = Field(None, min_length=1)
