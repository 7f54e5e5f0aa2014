"""
Database models for the campaign manager.

Click analytics rows live in their own table with no foreign key to
urls, so they outlive a permanently deleted URL.
"""

from .campaign import Campaign
from .url import URL
from .original_url import OriginalURL
from .blacklist import BlacklistedURL
from .click import ClickRecord

__all__ = ["Campaign", "URL", "OriginalURL", "BlacklistedURL", "ClickRecord"]
