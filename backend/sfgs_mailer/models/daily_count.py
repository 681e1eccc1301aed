"""Daily send counter model"""
from sqlalchemy import Column, Integer, Date, DateTime
from datetime import datetime, timezone
from sfgs_mailer.models.base import Base


class DailyCount(Base):
    """Emails sent per school-local calendar day (cache of the email_queue count)"""
    __tablename__ = "email_daily_counts"

    id = Column(Integer, primary_key=True, index=True)
    date = Column(Date, unique=True, nullable=False, index=True)
    count = Column(Integer, default=0, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc), nullable=False)
