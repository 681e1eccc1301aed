"""Email queue scheduler and background tasks"""
import asyncio
import logging
from dataclasses import dataclass, field, asdict
from datetime import date, datetime
from typing import Dict, List, Optional

import redis
from opentelemetry import trace
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from sfgs_mailer.core.config import settings
from sfgs_mailer.core.logging import dispatch_logger
from sfgs_mailer.core.metrics import scheduler_runs_counter
from sfgs_mailer.db.helpers import write_audit_log
from sfgs_mailer.db.redis import acquire_lock, release_lock, EMAIL_QUEUE_LOCK_KEY, BIRTHDAY_LOCK_KEY
from sfgs_mailer.db.session import SessionLocal
from sfgs_mailer.models.system_log import AuditLogType
from sfgs_mailer.services.batch_selector import select_batch, count_waiting_non_birthday
from sfgs_mailer.services.birthday_service import BirthdayRunResult, queue_birthday_emails
from sfgs_mailer.services.content_resolver import ContentResolver
from sfgs_mailer.services.dispatcher import dispatch, record_failure
from sfgs_mailer.services.email_service import ResendTransport
from sfgs_mailer.services.queue_service import (
    claim_entry, count_sent_today, get_last_sent_at, recover_stale_claims
)
from sfgs_mailer.services.rate_policy import can_dispatch, effective_limits
from sfgs_mailer.services.settings_service import get_latest_settings
from sfgs_mailer.utils.time import local_date, utc_now

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


@dataclass
class SchedulerResult:
    status: str
    message: str
    sent: int = 0
    failed: int = 0
    wait_minutes: Optional[float] = None
    settings: Dict = field(default_factory=dict)
    errors: List[Dict] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return asdict(self)


def _finish(db: Session, result: SchedulerResult, log_type: Optional[AuditLogType] = None) -> SchedulerResult:
    if log_type is not None:
        write_audit_log(db, log_type, result.message)
    scheduler_runs_counter.labels(status=result.status).inc()
    dispatch_logger.info(f"Email queue run finished: {result.status} - {result.message}")
    return result


async def _run_email_queue(db: Session, transport, resolver, now: datetime) -> SchedulerResult:
    recover_stale_claims(db, now)

    # Check rate
    dispatch_settings = get_latest_settings(db)
    limits = effective_limits(dispatch_settings)
    cron_enabled = dispatch_settings.cron_enabled if dispatch_settings is not None else True
    settings_echo = {
        "daily_limit": limits.daily_limit,
        "batch_size": limits.batch_size,
        "interval_minutes": limits.interval_minutes,
        "cron_enabled": cron_enabled,
    }

    last_sent_at = get_last_sent_at(db)
    sent_today = count_sent_today(db, now)
    decision = can_dispatch(now, dispatch_settings, last_sent_at, sent_today)

    if not decision.allowed:
        if decision.reason == "daily_limit":
            return _finish(db, SchedulerResult(
                status=AuditLogType.DAILY_LIMIT_REACHED.value,
                message=f"Daily limit reached: {sent_today} of {limits.daily_limit} emails sent today",
                settings=settings_echo,
            ), AuditLogType.DAILY_LIMIT_REACHED)
        return _finish(db, SchedulerResult(
            status=AuditLogType.INTERVAL_NOT_MET.value,
            message=f"Interval not met: wait {decision.wait_minutes} more minute(s) before the next batch",
            wait_minutes=decision.wait_minutes,
            settings=settings_echo,
        ), AuditLogType.INTERVAL_NOT_MET)

    # Select batch
    batch = select_batch(db, decision.max_sends, cron_enabled)
    if not batch:
        if not cron_enabled and count_waiting_non_birthday(db) > 0:
            return _finish(db, SchedulerResult(
                status=AuditLogType.CRON_DISABLED.value,
                message="Cron is disabled: only birthday emails are sent and none are pending",
                settings=settings_echo,
            ), AuditLogType.CRON_DISABLED)
        return _finish(db, SchedulerResult(
            status=AuditLogType.NO_PENDING.value,
            message="No pending emails",
            settings=settings_echo,
        ), AuditLogType.NO_PENDING)

    if transport is None:
        transport = ResendTransport(sender_email=getattr(dispatch_settings, "sender_email", None))
    if resolver is None:
        resolver = ContentResolver(db)

    dispatch_logger.info(f"Dispatching {len(batch)} email(s) (max {decision.max_sends}, {sent_today} sent today)")

    # Dispatch each
    sent = 0
    failed = 0
    errors = []
    entry_ids = [e.id for e in batch]
    for entry_id, entry in zip(entry_ids, batch):
        if not claim_entry(db, entry_id, now):
            dispatch_logger.info(f"Email {entry_id} was claimed by another run - skipping")
            continue
        db.refresh(entry)
        recipient = entry.recipient_email

        try:
            # Attachment downloads block, keep them off the event loop
            content = await asyncio.to_thread(resolver.resolve, entry)
        except Exception as e:
            dispatch_logger.error(f"Failed to resolve content for email {entry_id}: {e}", exc_info=True)
            outcome = record_failure(db, entry, now, f"Content resolution failed: {e}")
        else:
            try:
                outcome = await dispatch(db, entry, content, transport, now)
            except SQLAlchemyError as e:
                # Left in processing; stale-claim recovery returns it to the queue
                dispatch_logger.error(f"Failed to record outcome for email {entry_id}: {e}", exc_info=True)
                db.rollback()
                failed += 1
                errors.append({"queue_id": entry_id, "recipient": recipient, "error": str(e)})
                continue

        if outcome.ok:
            sent += 1
        else:
            failed += 1
            errors.append({"queue_id": outcome.queue_id, "recipient": outcome.recipient, "error": outcome.error})

    # Log batch summary
    summary_type = AuditLogType.SUCCESS if failed == 0 else AuditLogType.PARTIAL_SUCCESS
    summary = (
        f"Batch complete: sentCount={sent}, failedCount={failed}, "
        f"dailyLimit={limits.daily_limit}, batchSize={limits.batch_size}"
    )
    return _finish(db, SchedulerResult(
        status=summary_type.value,
        message=summary,
        sent=sent,
        failed=failed,
        settings=settings_echo,
        errors=errors,
    ), summary_type)


async def process_email_queue(db: Session, transport=None, resolver=None, now: Optional[datetime] = None) -> SchedulerResult:
    """One scheduler invocation: rate check, batch selection, dispatch, summary.

    Always returns a result; unexpected errors are audited and reported with
    status "error". Overlapping runs are serialised with a Redis lock when
    Redis is reachable, and row claims prevent double sends when it is not.
    """
    now = now or utc_now()

    lock_acquired = False
    try:
        lock_acquired = acquire_lock(EMAIL_QUEUE_LOCK_KEY, timeout=settings.DISPATCH_LOCK_TIMEOUT_SECONDS)
        if not lock_acquired:
            dispatch_logger.info("Email queue run skipped - another run holds the lock")
            scheduler_runs_counter.labels(status="already_running").inc()
            return SchedulerResult(status="already_running", message="Another email queue run is in progress")
    except redis.RedisError as e:
        logger.warning(f"Redis unavailable for email queue lock, continuing without it: {e}")

    try:
        with tracer.start_as_current_span("process_email_queue") as span:
            result = await _run_email_queue(db, transport, resolver, now)
            span.set_attribute("dispatch.status", result.status)
            span.set_attribute("dispatch.sent", result.sent)
            span.set_attribute("dispatch.failed", result.failed)
            return result
    except Exception as e:
        logger.error(f"Error in email queue run: {e}", exc_info=True)
        db.rollback()
        return _finish(db, SchedulerResult(
            status=AuditLogType.ERROR.value,
            message=f"Email queue run failed: {e}",
        ), AuditLogType.ERROR)
    finally:
        if lock_acquired:
            try:
                release_lock(EMAIL_QUEUE_LOCK_KEY)
            except redis.RedisError as e:
                logger.warning(f"Failed to release email queue lock: {e}")


def run_birthday_job(db: Session, today: Optional[date] = None) -> BirthdayRunResult:
    """Birthday generator guarded by a Redis lock (best effort, the dedupe checks make it idempotent)"""
    lock_acquired = False
    try:
        lock_acquired = acquire_lock(BIRTHDAY_LOCK_KEY, timeout=settings.DISPATCH_LOCK_TIMEOUT_SECONDS)
        if not lock_acquired:
            logger.info("Birthday run skipped - another run holds the lock")
            return BirthdayRunResult()
    except redis.RedisError as e:
        logger.warning(f"Redis unavailable for birthday lock, continuing without it: {e}")

    try:
        return queue_birthday_emails(db, today)
    finally:
        if lock_acquired:
            try:
                release_lock(BIRTHDAY_LOCK_KEY)
            except redis.RedisError as e:
                logger.warning(f"Failed to release birthday lock: {e}")


async def email_queue_task():
    """Background task that runs the email queue every EMAIL_QUEUE_POLL_SECONDS"""
    logger.info("Starting email queue scheduler task...")

    while True:
        try:
            await asyncio.sleep(settings.EMAIL_QUEUE_POLL_SECONDS)

            db = SessionLocal()
            try:
                await process_email_queue(db)
            finally:
                db.close()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Fatal error in email queue scheduler: {e}", exc_info=True)
            await asyncio.sleep(settings.EMAIL_QUEUE_POLL_SECONDS)


async def birthday_scheduler_task():
    """Background task that queues birthday emails once per school-local day"""
    logger.info("Starting birthday scheduler task...")
    last_run: Optional[date] = None

    while True:
        try:
            today = local_date(utc_now())
            if last_run != today:
                db = SessionLocal()
                try:
                    run_birthday_job(db, today)
                    last_run = today
                except SQLAlchemyError as e:
                    logger.error(f"Error in birthday scheduler: {e}", exc_info=True)
                    db.rollback()
                finally:
                    db.close()

            await asyncio.sleep(3600)  # Check every hour
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Fatal error in birthday scheduler: {e}", exc_info=True)
            await asyncio.sleep(3600)  # Wait before retrying
