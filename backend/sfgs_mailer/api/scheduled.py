"""Scheduled task endpoints - called by an external cron"""
import logging
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from sfgs_mailer.core.security import verify_cron_secret
from sfgs_mailer.db.session import get_db
from sfgs_mailer.tasks.scheduler import process_email_queue, run_birthday_job

router = APIRouter(prefix="/api/scheduled", tags=["scheduled"])
logger = logging.getLogger(__name__)


@router.api_route("/process-email-queue", methods=["GET", "POST"])
async def trigger_process_email_queue(
    db: Session = Depends(get_db),
    _verified: bool = Depends(verify_cron_secret)
):
    """Run one email queue batch.

    Rate-limited and empty runs are normal outcomes and return 200 with the
    reason in `status`.

    Example cron config:
    - Schedule: */5 * * * *
    - Target: POST https://api.example.com/api/scheduled/process-email-queue
    - Headers: X-Cron-Secret: <your-secret>
    """
    result = await process_email_queue(db)
    return result.to_dict()


@router.api_route("/birthday", methods=["GET", "POST"])
def trigger_birthday(
    db: Session = Depends(get_db),
    _verified: bool = Depends(verify_cron_secret)
):
    """Queue today's birthday greetings. Safe to call more than once a day."""
    result = run_birthday_job(db)
    return {
        "queued": result.queued,
        "skipped": result.skipped,
        "students": result.students,
        "message": f"Queued {result.queued} birthday emails.",
    }
