from sqlalchemy import Column, Integer, String, DateTime, Numeric

from cloaker_app.database.connection import Base
from cloaker_app.enums import RedirectMethod
from ._time import utcnow


class Campaign(Base):
    """
    A named container of redirect targets.

    custom_path is the public segment served under /views/<path>;
    unique=True creates the index.
    """
    __tablename__ = "campaigns"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String, nullable=False)
    redirect_method = Column(String(32), nullable=False, default=RedirectMethod.DIRECT.value)
    custom_path = Column(String(50), unique=True, nullable=True, index=True)
    multiplier = Column(Numeric(10, 2), nullable=False, default=1)
    price_per_thousand = Column(Numeric(10, 4), nullable=False, default=0)
    trafficstar_campaign_id = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
