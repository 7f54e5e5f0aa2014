from sqlalchemy import Column, Integer, String, DateTime

from cloaker_app.database.connection import Base
from ._time import utcnow


class BlacklistedURL(Base):
    __tablename__ = "blacklisted_urls"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String, nullable=False)
    target_url = Column(String, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
