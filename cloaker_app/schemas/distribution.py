from typing import List

from pydantic import BaseModel

from .url import URLRecord


class WeightedRange(BaseModel):
    """Half-open slice [start, end) of the unit interval owned by one URL."""
    url_id: int
    weight: float
    start: float
    end: float


class Distribution(BaseModel):
    campaign_id: int
    active_urls: List[URLRecord] = []
    ranges: List[WeightedRange] = []

    @property
    def is_empty(self) -> bool:
        return not self.active_urls
