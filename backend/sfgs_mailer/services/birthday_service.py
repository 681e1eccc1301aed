"""Birthday service - queues the day's birthday greetings"""
import calendar
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from sfgs_mailer.core.logging import birthday_logger
from sfgs_mailer.core.metrics import birthday_entries_queued_counter
from sfgs_mailer.models.birthday_sent import BirthdaySentRecord
from sfgs_mailer.models.email_queue import QueueEntry, EmailStatus, EmailType
from sfgs_mailer.models.student import Student
from sfgs_mailer.utils.time import day_bounds, local_date, utc_now


@dataclass
class BirthdayRunResult:
    queued: int = 0
    skipped: int = 0
    students: int = 0
    recipients: List[str] = field(default_factory=list)


def is_birthday(date_of_birth: Optional[date], today: date) -> bool:
    """Month/day match, with Feb 29 birthdays celebrated on Feb 28 in non-leap years"""
    if date_of_birth is None:
        return False
    if date_of_birth.month == 2 and date_of_birth.day == 29 and not calendar.isleap(today.year):
        return today.month == 2 and today.day == 28
    return date_of_birth.month == today.month and date_of_birth.day == today.day


def parent_recipients(student: Student) -> List[str]:
    """Distinct non-blank parent addresses, trimmed, first spelling kept"""
    recipients = []
    seen = set()
    for email in (student.parent_email_1, student.parent_email_2):
        email = (email or "").strip()
        if email and email.lower() not in seen:
            seen.add(email.lower())
            recipients.append(email)
    return recipients


def queue_birthday_emails(db: Session, today: Optional[date] = None) -> BirthdayRunResult:
    """Create one pending birthday entry per (student, parent address) for today.

    Running it again on the same day queues nothing new: a recipient is skipped
    when the student's greeting already went out today or a birthday entry for
    that recipient was created today.
    """
    today = today or local_date(utc_now())
    start, end = day_bounds(today)
    result = BirthdayRunResult()

    students = db.query(Student).filter(Student.date_of_birth.isnot(None)).all()
    birthday_students = [s for s in students if is_birthday(s.date_of_birth, today)]
    result.students = len(birthday_students)

    for student in birthday_students:
        recipients = parent_recipients(student)
        if not recipients:
            birthday_logger.warning(f"No parent email for {student.student_name} ({student.matric_number}) - skipping birthday")
            continue

        already_sent = db.query(BirthdaySentRecord).filter(
            BirthdaySentRecord.student_id == student.id,
            BirthdaySentRecord.sent_date == today,
        ).first() is not None

        for recipient in recipients:
            if already_sent:
                result.skipped += 1
                continue

            existing = db.query(QueueEntry).filter(
                QueueEntry.student_id == student.id,
                QueueEntry.email_type == EmailType.BIRTHDAY.value,
                func.lower(QueueEntry.recipient_email) == recipient.lower(),
                QueueEntry.created_at >= start,
                QueueEntry.created_at < end,
            ).first()
            if existing is not None:
                result.skipped += 1
                continue

            now = datetime.now(timezone.utc)
            if not (start <= now < end):
                # Backfill run for another day: stamp inside that day so reruns see it
                now = start
            db.add(QueueEntry(
                student_id=student.id,
                matric_number=student.matric_number,
                recipient_email=recipient,
                email_type=EmailType.BIRTHDAY.value,
                subject="",
                message="",
                attachments=[],
                status=EmailStatus.PENDING.value,
                created_at=now,
                queued_at=now,
            ))
            db.commit()
            result.queued += 1
            result.recipients.append(recipient)
            birthday_entries_queued_counter.inc()
            birthday_logger.info(f"Queued birthday email for {student.student_name} to {recipient}")

    birthday_logger.info(
        f"Birthday run for {today.isoformat()}: {result.students} student(s), "
        f"{result.queued} queued, {result.skipped} skipped"
    )
    return result
