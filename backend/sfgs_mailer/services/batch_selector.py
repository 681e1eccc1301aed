"""Batch selector - next eligible pending entries in priority + FIFO order"""
from typing import List
from sqlalchemy.orm import Session

from sfgs_mailer.models.email_queue import QueueEntry, EmailStatus, EmailType


def dispatch_order():
    """Prioritized first (oldest boost first), then oldest queued, then insertion order"""
    return (
        QueueEntry.prioritized_at.is_(None),
        QueueEntry.prioritized_at.asc(),
        QueueEntry.queued_at.asc(),
        QueueEntry.id.asc(),
    )


def select_batch(db: Session, max_count: int, cron_enabled: bool) -> List[QueueEntry]:
    """Return up to max_count pending entries in dispatch order.

    With cron disabled only birthday entries are eligible; the filter is
    applied before the limit so non-birthday entries never use up the batch.
    """
    if max_count <= 0:
        return []

    query = db.query(QueueEntry).filter(QueueEntry.status == EmailStatus.PENDING.value)
    if not cron_enabled:
        query = query.filter(QueueEntry.email_type == EmailType.BIRTHDAY.value)

    return query.order_by(*dispatch_order()).limit(max_count).all()


def count_waiting_non_birthday(db: Session) -> int:
    """Pending entries that are held back while cron is disabled"""
    return db.query(QueueEntry).filter(
        QueueEntry.status == EmailStatus.PENDING.value,
        QueueEntry.email_type != EmailType.BIRTHDAY.value
    ).count()
