from sqlalchemy import Column, Integer, String, DateTime

from cloaker_app.database.connection import Base
from ._time import utcnow


class ClickRecord(Base):
    """
    One redirect, as recorded by the click worker.

    url_id and campaign_id are plain integers (no foreign keys) so the
    history survives URL and campaign deletion.
    """
    __tablename__ = "click_records"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    campaign_id = Column(Integer, nullable=False, index=True)
    url_id = Column(Integer, nullable=False, index=True)
    redirect_method = Column(String(32), nullable=True)
    ip_address = Column(String, nullable=True)
    user_agent = Column(String, nullable=True)
    referer = Column(String, nullable=True)
    timestamp = Column(DateTime(timezone=True), default=utcnow)
