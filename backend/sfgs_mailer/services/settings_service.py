"""Settings service - dispatch limits read/update"""
import logging
from datetime import datetime, timezone
from sqlalchemy.orm import Session

from sfgs_mailer.core.config import settings
from sfgs_mailer.models.dispatch_settings import DispatchSettings
from sfgs_mailer.schemas.settings import DispatchSettingsUpdate

logger = logging.getLogger(__name__)


def get_latest_settings(db: Session):
    """Most recently updated settings row, or None"""
    return db.query(DispatchSettings).order_by(
        DispatchSettings.updated_at.desc(), DispatchSettings.id.desc()
    ).first()


def get_dispatch_settings(db: Session) -> DispatchSettings:
    """Latest settings row, creating the default row on first use"""
    row = get_latest_settings(db)
    if row is None:
        row = DispatchSettings(
            daily_email_limit=settings.DEFAULT_DAILY_EMAIL_LIMIT,
            email_batch_size=settings.DEFAULT_EMAIL_BATCH_SIZE,
            email_interval_minutes=settings.DEFAULT_EMAIL_INTERVAL_MINUTES,
            cron_enabled=True,
        )
        db.add(row)
        db.commit()
        db.refresh(row)
        logger.info("Created default dispatch settings")
    return row


def update_dispatch_settings(db: Session, update: DispatchSettingsUpdate) -> DispatchSettings:
    """Apply the provided fields and stamp updated_at"""
    row = get_dispatch_settings(db)
    changes = update.model_dump(exclude_unset=True)
    if "sender_email" in changes and changes["sender_email"] is not None:
        changes["sender_email"] = changes["sender_email"].strip() or None

    for key, value in changes.items():
        # Only sender_email is nullable
        if value is None and key != "sender_email":
            continue
        setattr(row, key, value)
    row.updated_at = datetime.now(timezone.utc)

    db.commit()
    db.refresh(row)
    logger.info(f"Dispatch settings updated: {changes}")
    return row
