"""Dispatch settings endpoints"""
import logging
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from sfgs_mailer.core.security import require_admin
from sfgs_mailer.db.session import get_db
from sfgs_mailer.schemas.settings import DispatchSettingsResponse, DispatchSettingsUpdate
from sfgs_mailer.services.settings_service import get_dispatch_settings, update_dispatch_settings

router = APIRouter(prefix="/api/settings", tags=["settings"], dependencies=[Depends(require_admin)])
logger = logging.getLogger(__name__)


@router.get("", response_model=DispatchSettingsResponse)
def get_settings(db: Session = Depends(get_db)):
    return get_dispatch_settings(db)


@router.put("", response_model=DispatchSettingsResponse)
def put_settings(update: DispatchSettingsUpdate, db: Session = Depends(get_db)):
    """Update dispatch limits; omitted fields keep their current value"""
    return update_dispatch_settings(db, update)
