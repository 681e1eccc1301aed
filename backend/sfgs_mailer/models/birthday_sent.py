"""Birthday sent marker model"""
from sqlalchemy import Column, Integer, Date, DateTime, ForeignKey, UniqueConstraint
from datetime import datetime, timezone
from sfgs_mailer.models.base import Base


class BirthdaySentRecord(Base):
    """Marks that a student's birthday greeting went out on a given day"""
    __tablename__ = "birthday_emails_sent"

    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(Integer, ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True)
    sent_date = Column(Date, nullable=False)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)

    __table_args__ = (
        UniqueConstraint('student_id', 'sent_date', name='uq_birthday_emails_sent_student_date'),
    )
