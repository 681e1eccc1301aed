"""Uploaded file model"""
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from datetime import datetime, timezone
from sfgs_mailer.models.base import Base


class UploadedFile(Base):
    """Metadata for a report stored in object storage"""
    __tablename__ = "uploaded_files"

    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(Integer, ForeignKey("students.id", ondelete="SET NULL"), nullable=True, index=True)
    matric_number_raw = Column(String(100), nullable=True)
    matric_number_parsed = Column(String(50), nullable=True, index=True)
    original_file_name = Column(String(255), nullable=False)
    storage_path = Column(String(512), unique=True, nullable=False, index=True)  # R2 object key
    status = Column(String(50), default="uploaded", nullable=False)
    uploaded_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
