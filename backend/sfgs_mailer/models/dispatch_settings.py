"""Dispatch settings model"""
from sqlalchemy import Column, Integer, String, Boolean, DateTime, Index
from datetime import datetime, timezone
from sfgs_mailer.models.base import Base


class DispatchSettings(Base):
    """Operator-tunable dispatch limits - the most recently updated row wins"""
    __tablename__ = "system_settings"

    id = Column(Integer, primary_key=True, index=True)
    daily_email_limit = Column(Integer, default=100, nullable=False)
    email_batch_size = Column(Integer, default=10, nullable=False)
    email_interval_minutes = Column(Integer, default=5, nullable=False)
    cron_enabled = Column(Boolean, default=True, nullable=False)
    sender_email = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc), nullable=False)

    __table_args__ = (
        Index('ix_system_settings_updated_at', 'updated_at'),
    )
