"""Security dependencies for trigger and admin endpoints"""
import secrets
from typing import Optional
from fastapi import Header, HTTPException
from sfgs_mailer.core.config import settings
from sfgs_mailer.core.logging import security_logger


def _matches(provided: Optional[str], expected: str) -> bool:
    if not expected or not provided:
        return False
    return secrets.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))


def verify_cron_secret(
    x_cron_secret: Optional[str] = Header(None, alias="X-Cron-Secret"),
    authorization: Optional[str] = Header(None),
) -> bool:
    """Dependency: scheduled-job authentication

    Accepts X-Cron-Secret, or "Authorization: Bearer <secret>" as sent by Vercel cron.
    """
    bearer = None
    if authorization and authorization.lower().startswith("bearer "):
        bearer = authorization[7:].strip()

    if _matches(x_cron_secret, settings.CRON_SECRET) or _matches(bearer, settings.CRON_SECRET):
        return True

    security_logger.warning("Rejected scheduled-task request with missing or invalid cron secret")
    raise HTTPException(status_code=403, detail="Invalid cron secret")


def require_admin(x_admin_key: Optional[str] = Header(None, alias="X-Admin-Key")) -> bool:
    """Dependency: admin dashboard authentication"""
    if _matches(x_admin_key, settings.ADMIN_API_KEY):
        return True

    security_logger.warning("Rejected admin request with missing or invalid admin key")
    raise HTTPException(status_code=401, detail="Invalid admin key")
