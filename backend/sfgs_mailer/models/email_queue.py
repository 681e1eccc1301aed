"""Email queue model and status lifecycle"""
import enum
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, JSON, Index
from datetime import datetime, timezone
from sfgs_mailer.models.base import Base


class EmailStatus(str, enum.Enum):
    """Closed set of queue entry states"""
    PENDING = "pending"
    PROCESSING = "processing"
    SENT = "sent"
    FAILED = "failed"
    CANCELLED = "cancelled"


class EmailType(str, enum.Enum):
    PDF = "pdf"
    BIRTHDAY = "birthday"


# from-state -> states it may move to
ALLOWED_TRANSITIONS = {
    EmailStatus.PENDING: {EmailStatus.PROCESSING, EmailStatus.CANCELLED},
    EmailStatus.PROCESSING: {EmailStatus.SENT, EmailStatus.FAILED, EmailStatus.PENDING},
    EmailStatus.SENT: set(),
    EmailStatus.FAILED: {EmailStatus.PENDING},
    EmailStatus.CANCELLED: {EmailStatus.PENDING},
}


class InvalidTransitionError(Exception):
    """Raised when a queue entry is moved between states the lifecycle does not allow"""

    def __init__(self, entry_id, current, target):
        self.entry_id = entry_id
        self.current = current
        self.target = target
        super().__init__(f"Email {entry_id} cannot move from {current} to {target}")


def check_transition(current, target) -> None:
    """Raise InvalidTransitionError unless current -> target is allowed"""
    current = EmailStatus(current)
    target = EmailStatus(target)
    if target not in ALLOWED_TRANSITIONS[current]:
        raise InvalidTransitionError(None, current.value, target.value)


class QueueEntry(Base):
    """One outbound email job"""
    __tablename__ = "email_queue"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    student_id = Column(Integer, ForeignKey("students.id", ondelete="SET NULL"), nullable=True, index=True)
    matric_number = Column(String(50), nullable=True)
    file_id = Column(Integer, ForeignKey("uploaded_files.id", ondelete="SET NULL"), nullable=True, index=True)
    recipient_email = Column(String(255), nullable=False, index=True)
    email_type = Column(String(20), default=EmailType.PDF.value, nullable=False)  # pdf, birthday
    subject = Column(Text, nullable=True)
    message = Column(Text, nullable=True)
    attachments = Column(JSON, default=list, nullable=False)  # storage keys or absolute URLs, in order
    status = Column(String(20), default=EmailStatus.PENDING.value, nullable=False)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
    queued_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
    prioritized_at = Column(DateTime(timezone=True), nullable=True)
    claimed_at = Column(DateTime(timezone=True), nullable=True)
    sent_at = Column(DateTime(timezone=True), nullable=True)
    failed_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    error_message = Column(Text, nullable=True)

    __table_args__ = (
        Index('ix_email_queue_status_queued_at', 'status', 'queued_at'),
        Index('ix_email_queue_status_prioritized_at', 'status', 'prioritized_at'),
        Index('ix_email_queue_status_sent_at', 'status', 'sent_at'),
    )

    def transition_to(self, target: EmailStatus, now: datetime = None) -> None:
        """Move to `target`, keeping the timestamp/error columns consistent with the new state"""
        try:
            check_transition(self.status, target)
        except InvalidTransitionError as e:
            raise InvalidTransitionError(self.id, e.current, e.target) from None

        now = now or datetime.now(timezone.utc)
        target = EmailStatus(target)
        self.status = target.value

        if target == EmailStatus.PROCESSING:
            self.claimed_at = now
        elif target == EmailStatus.SENT:
            self.sent_at = now
            self.error_message = None
            self.failed_at = None
        elif target == EmailStatus.FAILED:
            self.failed_at = now
            self.sent_at = None
        elif target == EmailStatus.CANCELLED:
            self.cancelled_at = now
        elif target == EmailStatus.PENDING:
            self.claimed_at = None
            self.sent_at = None
            self.failed_at = None
            self.cancelled_at = None
            self.error_message = None

    @property
    def is_birthday(self) -> bool:
        return self.email_type == EmailType.BIRTHDAY.value
