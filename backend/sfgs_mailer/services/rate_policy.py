"""Rate policy - decides whether the scheduler may send now, and how many"""
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sfgs_mailer.core.config import settings as app_settings
from sfgs_mailer.utils.time import ensure_aware_utc


@dataclass(frozen=True)
class EffectiveLimits:
    daily_limit: int
    batch_size: int
    interval_minutes: int


@dataclass(frozen=True)
class RateDecision:
    allowed: bool
    max_sends: int
    wait_minutes: float
    reason: Optional[str]  # "interval" | "daily_limit" | None
    limits: EffectiveLimits


def ceil_one_decimal(value: float) -> float:
    """Round up to one decimal place (2.01 -> 2.1)"""
    return math.ceil(round(value * 10, 6)) / 10


def effective_limits(dispatch_settings) -> EffectiveLimits:
    """Normalise a settings row (or None) into usable limits.

    A missing or non-positive daily limit / batch size falls back to the
    configured default, never to unlimited. A missing interval uses the default,
    a negative one is treated as zero.
    """
    daily_limit = getattr(dispatch_settings, "daily_email_limit", None)
    batch_size = getattr(dispatch_settings, "email_batch_size", None)
    interval = getattr(dispatch_settings, "email_interval_minutes", None)

    if not daily_limit or daily_limit <= 0:
        daily_limit = app_settings.DEFAULT_DAILY_EMAIL_LIMIT
    if not batch_size or batch_size <= 0:
        batch_size = app_settings.DEFAULT_EMAIL_BATCH_SIZE
    if interval is None:
        interval = app_settings.DEFAULT_EMAIL_INTERVAL_MINUTES
    elif interval < 0:
        interval = 0

    return EffectiveLimits(daily_limit=int(daily_limit), batch_size=int(batch_size), interval_minutes=int(interval))


def can_dispatch(now: datetime, dispatch_settings, last_sent_at: Optional[datetime], sent_count_today: int) -> RateDecision:
    """Pure rate decision. The daily cap is checked before the interval."""
    limits = effective_limits(dispatch_settings)

    if sent_count_today >= limits.daily_limit:
        return RateDecision(allowed=False, max_sends=0, wait_minutes=0.0, reason="daily_limit", limits=limits)

    if last_sent_at is not None:
        elapsed_minutes = (ensure_aware_utc(now) - ensure_aware_utc(last_sent_at)).total_seconds() / 60
        if elapsed_minutes < limits.interval_minutes:
            wait = ceil_one_decimal(limits.interval_minutes - elapsed_minutes)
            return RateDecision(allowed=False, max_sends=0, wait_minutes=wait, reason="interval", limits=limits)

    max_sends = min(limits.batch_size, limits.daily_limit - sent_count_today)
    return RateDecision(allowed=True, max_sends=max_sends, wait_minutes=0.0, reason=None, limits=limits)
