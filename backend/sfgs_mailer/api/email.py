"""Email endpoints"""
import logging
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from sfgs_mailer.core.security import require_admin
from sfgs_mailer.db.session import get_db
from sfgs_mailer.schemas.queue import TestEmailRequest
from sfgs_mailer.services.email_service import ResendTransport, send_test_email
from sfgs_mailer.services.settings_service import get_latest_settings

router = APIRouter(prefix="/api/email", tags=["email"], dependencies=[Depends(require_admin)])
logger = logging.getLogger(__name__)


@router.post("/test")
def test_email(request: TestEmailRequest, db: Session = Depends(get_db)):
    """Send a test message directly, bypassing the queue"""
    row = get_latest_settings(db)
    transport = ResendTransport(sender_email=row.sender_email if row else None)
    result = send_test_email(request.to, transport)
    if not result.ok:
        logger.warning(f"Test email to {request.to} failed: {result.error}")
        raise HTTPException(502, f"Failed to send test email: {result.error}")
    return {"ok": True, "message_id": result.message_id}
