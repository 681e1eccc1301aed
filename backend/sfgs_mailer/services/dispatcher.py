"""Dispatcher - sends one resolved entry and records the outcome"""
import asyncio
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from opentelemetry import trace
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from sfgs_mailer.core.config import settings
from sfgs_mailer.core.logging import dispatch_logger
from sfgs_mailer.core.metrics import emails_sent_counter, emails_failed_counter
from sfgs_mailer.db.helpers import increment_daily_count, mark_birthday_sent, write_audit_log
from sfgs_mailer.models.email_queue import QueueEntry, EmailStatus, EmailType
from sfgs_mailer.models.system_log import AuditLogType
from sfgs_mailer.services.content_resolver import ResolvedContent
from sfgs_mailer.utils.time import local_date

tracer = trace.get_tracer(__name__)


@dataclass
class DispatchOutcome:
    queue_id: int
    recipient: str
    ok: bool
    message_id: Optional[str] = None
    error: Optional[str] = None


async def _send_with_timeout(transport, entry: QueueEntry, content: ResolvedContent):
    """Run the blocking transport call in a worker thread, bounded by EMAIL_SEND_TIMEOUT_SECONDS"""
    return await asyncio.wait_for(
        asyncio.to_thread(
            transport.send_email,
            entry.recipient_email,
            content.subject,
            content.html_body,
            content.text_body,
            content.transport_attachments(),
        ),
        timeout=settings.EMAIL_SEND_TIMEOUT_SECONDS,
    )


async def dispatch(db: Session, entry: QueueEntry, content: ResolvedContent, transport, now: datetime) -> DispatchOutcome:
    """Send one claimed (processing) entry.

    The status change is committed first. Counter, marker and audit writes
    that follow are best effort and cannot change the committed outcome.
    """
    error = None
    message_id = None
    with tracer.start_as_current_span("send_email") as span:
        span.set_attribute("email.queue_id", entry.id)
        span.set_attribute("email.type", entry.email_type)
        try:
            result = await _send_with_timeout(transport, entry, content)
            if result.ok:
                message_id = result.message_id
            else:
                error = result.error or "Unknown error from email provider"
        except asyncio.TimeoutError:
            error = f"Email send timed out after {settings.EMAIL_SEND_TIMEOUT_SECONDS}s"
        except Exception as e:
            dispatch_logger.error(f"Transport raised while sending email {entry.id}: {e}", exc_info=True)
            error = str(e) or e.__class__.__name__
        span.set_attribute("email.ok", error is None)

    if error is None:
        return record_success(db, entry, now, message_id)
    return record_failure(db, entry, now, error)


def record_success(db: Session, entry: QueueEntry, now: datetime, message_id: Optional[str]) -> DispatchOutcome:
    entry.transition_to(EmailStatus.SENT, now)
    db.commit()

    queue_id = entry.id
    recipient = entry.recipient_email
    email_type = entry.email_type
    student_id = entry.student_id
    today = local_date(now)

    dispatch_logger.info(f"Email {queue_id} ({email_type}) sent to {recipient}")
    emails_sent_counter.labels(email_type=email_type).inc()

    try:
        increment_daily_count(db, today)
        db.commit()
    except (SQLAlchemyError, NotImplementedError) as e:
        dispatch_logger.error(f"Failed to update daily count for {today}: {e}", exc_info=True)
        db.rollback()

    if email_type == EmailType.BIRTHDAY.value and student_id is not None:
        try:
            mark_birthday_sent(db, student_id, today)
            db.commit()
        except (SQLAlchemyError, NotImplementedError) as e:
            dispatch_logger.error(f"Failed to record birthday sent for student {student_id}: {e}", exc_info=True)
            db.rollback()

    write_audit_log(db, AuditLogType.SUCCESS, f"Email sent to {recipient}", queue_id=queue_id)
    return DispatchOutcome(queue_id=queue_id, recipient=recipient, ok=True, message_id=message_id)


def record_failure(db: Session, entry: QueueEntry, now: datetime, error: str) -> DispatchOutcome:
    entry.transition_to(EmailStatus.FAILED, now)
    entry.error_message = error
    db.commit()

    queue_id = entry.id
    recipient = entry.recipient_email

    dispatch_logger.warning(f"Email {queue_id} to {recipient} failed: {error}")
    emails_failed_counter.labels(email_type=entry.email_type).inc()

    write_audit_log(db, AuditLogType.ERROR, f"Failed to send email to {recipient}: {error}", queue_id=queue_id)
    return DispatchOutcome(queue_id=queue_id, recipient=recipient, ok=False, error=error)
