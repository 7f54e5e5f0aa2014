from .url import URLRecord, URLCreate, URLUpdate, BulkURLAction, URLPage, Pagination, BulkResult
from .campaign import CampaignRecord, CampaignWithUrls, CampaignCreate, CampaignUpdate, ClickSummary
from .original_url import OriginalURLRecord, OriginalURLCreate, OriginalURLUpdate, OriginalURLPage, SyncResult
from .blacklist import BlacklistRecord, BlacklistCreate, BlacklistUpdate

__all__ = [
    "URLRecord", "URLCreate", "URLUpdate", "BulkURLAction", "URLPage", "Pagination", "BulkResult",
    "CampaignRecord", "CampaignWithUrls", "CampaignCreate", "CampaignUpdate", "ClickSummary",
    "OriginalURLRecord", "OriginalURLCreate", "OriginalURLUpdate", "OriginalURLPage", "SyncResult",
    "BlacklistRecord", "BlacklistCreate", "BlacklistUpdate",
]
