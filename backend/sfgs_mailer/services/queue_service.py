"""Queue service - operator actions, listings and the queries the scheduler derives state from"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from sfgs_mailer.core.config import settings
from sfgs_mailer.models.email_queue import QueueEntry, EmailStatus, EmailType, InvalidTransitionError
from sfgs_mailer.models.student import Student
from sfgs_mailer.models.system_log import AuditLogEntry
from sfgs_mailer.models.uploaded_file import UploadedFile
from sfgs_mailer.schemas.queue import QueueEntryCreate
from sfgs_mailer.services.rate_policy import effective_limits
from sfgs_mailer.services.settings_service import get_latest_settings
from sfgs_mailer.utils.time import ensure_aware_utc, local_day_bounds

logger = logging.getLogger(__name__)


class QueueEntryNotFound(Exception):
    def __init__(self, entry_id: int):
        self.entry_id = entry_id
        super().__init__(f"Email {entry_id} not found")


class UploadedFileNotFound(Exception):
    def __init__(self, file_id: int):
        self.file_id = file_id
        super().__init__(f"File {file_id} not found")


def get_entry(db: Session, entry_id: int) -> QueueEntry:
    entry = db.query(QueueEntry).filter(QueueEntry.id == entry_id).first()
    if entry is None:
        raise QueueEntryNotFound(entry_id)
    return entry


def enqueue_email(db: Session, data: QueueEntryCreate) -> QueueEntry:
    """Queue an ad-hoc report email

    When file_id is given the file's storage key is added to the attachments
    and the entry inherits the file's student.
    """
    attachments = [a.strip() for a in data.attachments if a and a.strip()]
    student_id = data.student_id
    matric_number = data.matric_number

    if data.file_id is not None:
        uploaded = db.query(UploadedFile).filter(UploadedFile.id == data.file_id).first()
        if uploaded is None:
            raise UploadedFileNotFound(data.file_id)
        if uploaded.storage_path not in attachments:
            attachments.append(uploaded.storage_path)
        if student_id is None:
            student_id = uploaded.student_id
        if matric_number is None:
            matric_number = uploaded.matric_number_parsed

    if student_id is not None and matric_number is None:
        student = db.query(Student).filter(Student.id == student_id).first()
        if student:
            matric_number = student.matric_number

    now = datetime.now(timezone.utc)
    entry = QueueEntry(
        student_id=student_id,
        matric_number=matric_number,
        file_id=data.file_id,
        recipient_email=data.recipient_email.strip(),
        email_type=EmailType.PDF.value,
        subject=data.subject,
        message=data.message,
        attachments=attachments,
        status=EmailStatus.PENDING.value,
        created_at=now,
        queued_at=now,
    )
    db.add(entry)
    db.commit()
    db.refresh(entry)
    logger.info(f"Queued email {entry.id} to {entry.recipient_email} ({len(attachments)} attachment(s))")
    return entry


def retry_entry(db: Session, entry_id: int) -> QueueEntry:
    """Failed or cancelled -> pending, clearing error metadata; keeps its original queue position"""
    entry = get_entry(db, entry_id)
    entry.transition_to(EmailStatus.PENDING)
    db.commit()
    db.refresh(entry)
    logger.info(f"Email {entry_id} returned to the queue")
    return entry


def cancel_entry(db: Session, entry_id: int) -> QueueEntry:
    entry = get_entry(db, entry_id)
    entry.transition_to(EmailStatus.CANCELLED)
    db.commit()
    db.refresh(entry)
    logger.info(f"Email {entry_id} cancelled")
    return entry


def toggle_priority(db: Session, entry_id: int) -> QueueEntry:
    """Boost a pending entry to the front of the queue, or remove its boost"""
    entry = get_entry(db, entry_id)
    if entry.status != EmailStatus.PENDING.value:
        raise InvalidTransitionError(entry_id, entry.status, "prioritized")

    entry.prioritized_at = None if entry.prioritized_at else datetime.now(timezone.utc)
    db.commit()
    db.refresh(entry)
    logger.info(f"Email {entry_id} priority {'set' if entry.prioritized_at else 'cleared'}")
    return entry


def delete_entry(db: Session, entry_id: int) -> None:
    entry = get_entry(db, entry_id)
    db.delete(entry)
    db.commit()
    logger.info(f"Email {entry_id} deleted")


def delete_entries_for_file(db: Session, file_id: int) -> int:
    """Delete every entry delivering the given uploaded file

    Matches by file_id, and by the file's storage key appearing in attachments
    for entries queued without a file reference.

    Returns:
        Number of entries deleted
    """
    uploaded = db.query(UploadedFile).filter(UploadedFile.id == file_id).first()

    # Attachment keys are matched in Python; the JSON text stores non-ASCII keys escaped
    query = db.query(QueueEntry)
    if uploaded is None:
        query = query.filter(QueueEntry.file_id == file_id)
    matched = [
        e for e in query.all()
        if e.file_id == file_id or (uploaded is not None and uploaded.storage_path in (e.attachments or []))
    ]

    for entry in matched:
        db.delete(entry)
    db.commit()
    logger.info(f"Deleted {len(matched)} queued email(s) for file {file_id}")
    return len(matched)


def list_entries(db: Session, status: Optional[str] = None, limit: int = 100, offset: int = 0) -> List[QueueEntry]:
    """Priority-first, newest-first listing"""
    query = db.query(QueueEntry)
    if status:
        query = query.filter(QueueEntry.status == EmailStatus(status).value)
    return query.order_by(
        QueueEntry.prioritized_at.is_(None),
        QueueEntry.prioritized_at.desc(),
        QueueEntry.created_at.desc(),
        QueueEntry.id.desc(),
    ).offset(offset).limit(limit).all()


def list_audit_logs(db: Session, limit: int = 100, log_type: Optional[str] = None) -> List[AuditLogEntry]:
    query = db.query(AuditLogEntry)
    if log_type:
        query = query.filter(AuditLogEntry.type == log_type)
    return query.order_by(AuditLogEntry.created_at.desc(), AuditLogEntry.id.desc()).limit(limit).all()


# ---------------------------------------------------------------------------
# Derived state used by the scheduler
# ---------------------------------------------------------------------------

def get_last_sent_at(db: Session) -> Optional[datetime]:
    last = db.query(func.max(QueueEntry.sent_at)).filter(
        QueueEntry.status == EmailStatus.SENT.value
    ).scalar()
    return ensure_aware_utc(last)


def count_sent_today(db: Session, now: datetime) -> int:
    """Entries sent during the school-local calendar day containing `now`"""
    start, end = local_day_bounds(now)
    return db.query(QueueEntry).filter(
        QueueEntry.status == EmailStatus.SENT.value,
        QueueEntry.sent_at >= start,
        QueueEntry.sent_at < end,
    ).count()


def claim_entry(db: Session, entry_id: int, now: datetime) -> bool:
    """Compare-and-set pending -> processing. Only the caller that flips the row may send it."""
    updated = db.query(QueueEntry).filter(
        QueueEntry.id == entry_id,
        QueueEntry.status == EmailStatus.PENDING.value,
    ).update(
        {QueueEntry.status: EmailStatus.PROCESSING.value, QueueEntry.claimed_at: now},
        synchronize_session=False,
    )
    db.commit()
    return updated == 1


def recover_stale_claims(db: Session, now: datetime) -> int:
    """Return entries stuck in processing (crashed run) to pending"""
    cutoff = now - timedelta(minutes=settings.EMAIL_CLAIM_TIMEOUT_MINUTES)
    recovered = db.query(QueueEntry).filter(
        QueueEntry.status == EmailStatus.PROCESSING.value,
        or_(QueueEntry.claimed_at.is_(None), QueueEntry.claimed_at < cutoff),
    ).update(
        {QueueEntry.status: EmailStatus.PENDING.value, QueueEntry.claimed_at: None},
        synchronize_session=False,
    )
    db.commit()
    if recovered:
        logger.warning(f"Recovered {recovered} email(s) left in processing since before {cutoff.isoformat()}")
    return recovered


def get_queue_stats(db: Session, now: datetime) -> Dict:
    """Dashboard counters"""
    counts = {s.value: 0 for s in EmailStatus}
    for status, count in db.query(QueueEntry.status, func.count(QueueEntry.id)).group_by(QueueEntry.status).all():
        counts[status] = count

    limits = effective_limits(get_latest_settings(db))
    sent_today = count_sent_today(db, now)

    return {
        **counts,
        "sent_today": sent_today,
        "daily_limit": limits.daily_limit,
        "remaining_today": max(limits.daily_limit - sent_today, 0),
        "last_sent_at": get_last_sent_at(db),
    }
