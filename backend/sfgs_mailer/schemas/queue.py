"""Pydantic schemas for queue API"""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, EmailStr


class QueueEntryCreate(BaseModel):
    """Schema for queuing an ad-hoc report email"""
    recipient_email: EmailStr
    subject: Optional[str] = Field(None, max_length=500)
    message: Optional[str] = None
    attachments: List[str] = Field(default_factory=list)
    file_id: Optional[int] = None
    student_id: Optional[int] = None
    matric_number: Optional[str] = Field(None, max_length=50)


class QueueEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    student_id: Optional[int] = None
    matric_number: Optional[str] = None
    file_id: Optional[int] = None
    recipient_email: str
    email_type: str
    subject: Optional[str] = None
    message: Optional[str] = None
    attachments: List[str] = Field(default_factory=list)
    status: str
    created_at: datetime
    queued_at: datetime
    prioritized_at: Optional[datetime] = None
    sent_at: Optional[datetime] = None
    failed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    error_message: Optional[str] = None


class QueueStatsResponse(BaseModel):
    pending: int
    processing: int
    sent: int
    failed: int
    cancelled: int
    sent_today: int
    daily_limit: int
    remaining_today: int
    last_sent_at: Optional[datetime] = None


class AuditLogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    type: str
    message: str
    queue_id: Optional[int] = None
    created_at: datetime


class TestEmailRequest(BaseModel):
    to: EmailStr
