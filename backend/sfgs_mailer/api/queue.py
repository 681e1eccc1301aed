"""Email queue admin endpoints"""
import logging
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from sfgs_mailer.core.security import require_admin
from sfgs_mailer.db.session import get_db
from sfgs_mailer.models.email_queue import EmailStatus, InvalidTransitionError
from sfgs_mailer.schemas.queue import (
    AuditLogResponse, QueueEntryCreate, QueueEntryResponse, QueueStatsResponse
)
from sfgs_mailer.services import queue_service
from sfgs_mailer.services.queue_service import QueueEntryNotFound, UploadedFileNotFound
from sfgs_mailer.utils.time import utc_now

router = APIRouter(prefix="/api/queue", tags=["queue"], dependencies=[Depends(require_admin)])
logs_router = APIRouter(prefix="/api/logs", tags=["logs"], dependencies=[Depends(require_admin)])
logger = logging.getLogger(__name__)


def _run_entry_action(action, db: Session, entry_id: int):
    try:
        return action(db, entry_id)
    except QueueEntryNotFound as e:
        raise HTTPException(404, str(e))
    except InvalidTransitionError as e:
        raise HTTPException(409, str(e))


@router.get("", response_model=List[QueueEntryResponse])
def list_queue(
    status: Optional[EmailStatus] = None,
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db)
):
    """List queue entries, prioritized first then newest first"""
    return queue_service.list_entries(db, status.value if status else None, limit=limit, offset=offset)


@router.get("/stats", response_model=QueueStatsResponse)
def queue_stats(db: Session = Depends(get_db)):
    return queue_service.get_queue_stats(db, utc_now())


@router.post("", response_model=QueueEntryResponse, status_code=201)
def create_queue_entry(data: QueueEntryCreate, db: Session = Depends(get_db)):
    """Queue an ad-hoc report email"""
    try:
        return queue_service.enqueue_email(db, data)
    except UploadedFileNotFound as e:
        raise HTTPException(404, str(e))


@router.post("/{entry_id}/retry", response_model=QueueEntryResponse)
def retry_queue_entry(entry_id: int, db: Session = Depends(get_db)):
    return _run_entry_action(queue_service.retry_entry, db, entry_id)


@router.post("/{entry_id}/cancel", response_model=QueueEntryResponse)
def cancel_queue_entry(entry_id: int, db: Session = Depends(get_db)):
    return _run_entry_action(queue_service.cancel_entry, db, entry_id)


@router.post("/{entry_id}/prioritize", response_model=QueueEntryResponse)
def prioritize_queue_entry(entry_id: int, db: Session = Depends(get_db)):
    """Toggle the priority boost on a pending entry"""
    return _run_entry_action(queue_service.toggle_priority, db, entry_id)


@router.delete("/files/{file_id}")
def delete_file_entries(file_id: int, db: Session = Depends(get_db)):
    """Remove every queued email delivering an uploaded file (called when the file is deleted)"""
    deleted = queue_service.delete_entries_for_file(db, file_id)
    return {"deleted": deleted}


@router.delete("/{entry_id}")
def delete_queue_entry(entry_id: int, db: Session = Depends(get_db)):
    _run_entry_action(queue_service.delete_entry, db, entry_id)
    return {"ok": True}


@logs_router.get("", response_model=List[AuditLogResponse])
def list_logs(
    type: Optional[str] = None,
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db)
):
    """Recent audit log entries, newest first"""
    return queue_service.list_audit_logs(db, limit=limit, log_type=type)
