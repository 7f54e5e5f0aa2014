from typing import Optional

from cloaker_app.enums import UrlStatus
from cloaker_app.services.exceptions import ValidationError


def parse_status_filter(value: Optional[str]) -> Optional[UrlStatus]:
    """Query-string status filter; "all" or empty means no filter."""
    if value in (None, "", "all"):
        return None
    try:
        return UrlStatus(value)
    except ValueError:
        raise ValidationError(f"Unknown status {value!r}")
