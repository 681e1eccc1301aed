"""Student model"""
from sqlalchemy import Column, Integer, String, Date, DateTime, Index
from datetime import datetime, timezone
from sfgs_mailer.models.base import Base


class Student(Base):
    """Student record - parent contacts and date of birth"""
    __tablename__ = "students"

    id = Column(Integer, primary_key=True, index=True)
    matric_number = Column(String(50), unique=True, nullable=False, index=True)
    student_name = Column(String(255), nullable=False)
    date_of_birth = Column(Date, nullable=True)
    parent_email_1 = Column(String(255), nullable=True)
    parent_email_2 = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)

    __table_args__ = (
        Index('ix_students_date_of_birth', 'date_of_birth'),
    )
