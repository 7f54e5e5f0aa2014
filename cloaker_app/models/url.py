from sqlalchemy import Column, Integer, String, DateTime, ForeignKey

from cloaker_app.database.connection import Base
from cloaker_app.enums import UrlStatus
from ._time import utcnow


class URL(Base):
    """
    One redirect target with its own click quota.

    name is the join key to the Original URL Record. campaign_id is
    cleared when the URL completes, so a finished URL drops out of its
    campaign without losing the row.
    """
    __tablename__ = "urls"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    campaign_id = Column(Integer, ForeignKey("campaigns.id", ondelete="SET NULL"), nullable=True, index=True)
    name = Column(String, nullable=False, index=True)
    target_url = Column(String, nullable=False)
    clicks = Column(Integer, nullable=False, default=0)
    click_limit = Column(Integer, nullable=False)
    original_click_limit = Column(Integer, nullable=False)
    status = Column(String(16), nullable=False, default=UrlStatus.ACTIVE.value, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
