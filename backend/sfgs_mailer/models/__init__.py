"""SQLAlchemy models package - imports all models so they register with Base.metadata"""
from sfgs_mailer.models.base import Base
from sfgs_mailer.models.student import Student
from sfgs_mailer.models.uploaded_file import UploadedFile
from sfgs_mailer.models.email_queue import QueueEntry, EmailStatus, EmailType, InvalidTransitionError
from sfgs_mailer.models.dispatch_settings import DispatchSettings
from sfgs_mailer.models.daily_count import DailyCount
from sfgs_mailer.models.system_log import AuditLogEntry, AuditLogType
from sfgs_mailer.models.birthday_sent import BirthdaySentRecord

# Export all for convenience
__all__ = [
    "Base", "Student", "UploadedFile", "QueueEntry", "EmailStatus", "EmailType",
    "InvalidTransitionError", "DispatchSettings", "DailyCount",
    "AuditLogEntry", "AuditLogType", "BirthdaySentRecord"
]
