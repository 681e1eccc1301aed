"""Database helper functions - atomic counters, markers and audit writes"""
import logging
from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from sfgs_mailer.models.birthday_sent import BirthdaySentRecord
from sfgs_mailer.models.daily_count import DailyCount
from sfgs_mailer.models.system_log import AuditLogEntry

logger = logging.getLogger(__name__)


def _dialect_insert(db: Session):
    """INSERT construct supporting ON CONFLICT for the session's backend"""
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return pg_insert
    if dialect == "sqlite":
        return sqlite_insert
    raise NotImplementedError(f"Upserts are not supported on {dialect}")


def increment_daily_count(db: Session, day: date, amount: int = 1) -> None:
    """Increment-or-insert the counter row for `day` in a single statement (caller commits)"""
    insert = _dialect_insert(db)
    now = datetime.now(timezone.utc)
    stmt = insert(DailyCount.__table__).values(date=day, count=amount, updated_at=now)
    stmt = stmt.on_conflict_do_update(
        index_elements=["date"],
        set_={"count": DailyCount.__table__.c.count + amount, "updated_at": now},
    )
    db.execute(stmt)


def mark_birthday_sent(db: Session, student_id: int, day: date) -> None:
    """Insert the (student, day) marker unless it already exists (caller commits)"""
    insert = _dialect_insert(db)
    stmt = insert(BirthdaySentRecord.__table__).values(
        student_id=student_id,
        sent_date=day,
        created_at=datetime.now(timezone.utc),
    )
    stmt = stmt.on_conflict_do_nothing(index_elements=["student_id", "sent_date"])
    db.execute(stmt)


def write_audit_log(db: Session, log_type: str, message: str, queue_id: Optional[int] = None) -> bool:
    """Append an audit entry and commit it.

    Audit writes never fail the caller: errors are logged and rolled back.

    Returns:
        True if the entry was committed
    """
    try:
        db.add(AuditLogEntry(type=str(getattr(log_type, "value", log_type)), message=message, queue_id=queue_id))
        db.commit()
        return True
    except SQLAlchemyError as e:
        logger.error(f"Failed to write audit log ({log_type}): {e}", exc_info=True)
        db.rollback()
        return False
