"""Status and mode enums shared across the campaign manager."""

from enum import Enum

__all__ = ["UrlStatus", "RedirectMethod", "BulkAction"]


class UrlStatus(str, Enum):
    """Lifecycle states of a URL Record (also used by Original Records)."""

    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    REJECTED = "rejected"
    DELETED = "deleted"


class RedirectMethod(str, Enum):
    """How a campaign answers a redirect request."""

    DIRECT = "direct"
    META_REFRESH = "meta_refresh"
    DOUBLE_META_REFRESH = "double_meta_refresh"
    HTTP_307 = "http_307"
    HTTP2_307_TEMPORARY = "http2_307_temporary"
    HTTP2_FORCED_307 = "http2_forced_307"


class BulkAction(str, Enum):
    ACTIVATE = "activate"
    PAUSE = "pause"
    DELETE = "delete"
    PERMANENT_DELETE = "permanent_delete"
