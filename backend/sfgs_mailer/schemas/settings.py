"""Pydantic schemas for dispatch settings API"""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


class DispatchSettingsUpdate(BaseModel):
    """Schema for updating dispatch settings - only the named fields are accepted"""
    model_config = ConfigDict(extra="forbid")

    daily_email_limit: Optional[int] = Field(None, ge=0)
    email_batch_size: Optional[int] = Field(None, ge=1)
    email_interval_minutes: Optional[int] = Field(None, ge=0)
    cron_enabled: Optional[bool] = None
    sender_email: Optional[str] = Field(None, max_length=255)


class DispatchSettingsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    daily_email_limit: int
    email_batch_size: int
    email_interval_minutes: int
    cron_enabled: bool
    sender_email: Optional[str] = None
    updated_at: Optional[datetime] = None
