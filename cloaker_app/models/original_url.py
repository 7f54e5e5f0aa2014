from sqlalchemy import Column, Integer, String, DateTime

from cloaker_app.database.connection import Base
from cloaker_app.enums import UrlStatus
from ._time import utcnow


class OriginalURL(Base):
    """Master record: canonical quota and status mirrored by URLs sharing its name."""
    __tablename__ = "original_url_records"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String, unique=True, nullable=False, index=True)
    target_url = Column(String, nullable=False)
    original_click_limit = Column(Integer, nullable=False)
    status = Column(String(16), nullable=False, default=UrlStatus.ACTIVE.value)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
