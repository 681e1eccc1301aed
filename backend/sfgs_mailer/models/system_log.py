"""Audit log model"""
import enum
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Index
from datetime import datetime, timezone
from sfgs_mailer.models.base import Base


class AuditLogType(str, enum.Enum):
    SUCCESS = "success"
    PARTIAL_SUCCESS = "partial_success"
    INTERVAL_NOT_MET = "interval_not_met"
    DAILY_LIMIT_REACHED = "daily_limit_reached"
    NO_PENDING = "no_pending"
    CRON_DISABLED = "cron_disabled"
    ERROR = "error"


class AuditLogEntry(Base):
    """Append-only record of scheduler and dispatch outcomes"""
    __tablename__ = "system_logs"

    id = Column(Integer, primary_key=True, index=True)
    type = Column(String(30), nullable=False, index=True)
    message = Column(Text, nullable=False)
    queue_id = Column(Integer, ForeignKey("email_queue.id", ondelete="SET NULL"), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)

    __table_args__ = (
        Index('ix_system_logs_created_at', 'created_at'),
    )
