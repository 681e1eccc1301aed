"""Dispatcher tests - send one entry and record the outcome"""
import asyncio
import time
import pytest
from unittest.mock import MagicMock, patch
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from conftest import NOW, FakeTransport, RESEND_TEST_BOUNCED, RESEND_TEST_DELIVERED
from sfgs_mailer.core.config import settings
from sfgs_mailer.db.helpers import increment_daily_count, write_audit_log
from sfgs_mailer.models.birthday_sent import BirthdaySentRecord
from sfgs_mailer.models.daily_count import DailyCount
from sfgs_mailer.models.email_queue import EmailStatus, EmailType
from sfgs_mailer.models.system_log import AuditLogEntry, AuditLogType
from sfgs_mailer.services.content_resolver import AttachmentBytes, ResolvedContent
from sfgs_mailer.services.dispatcher import dispatch
from sfgs_mailer.services.email_service import SendResult
from sfgs_mailer.utils.time import ensure_aware_utc, local_date


def make_content(attachments=None):
    return ResolvedContent(
        subject="Term report",
        html_body="<p>Report attached</p>",
        text_body="Report attached",
        attachments=attachments or [],
    )


def processing_entry(make_entry, **kwargs):
    return make_entry(status=EmailStatus.PROCESSING.value, claimed_at=NOW, **kwargs)


class SlowTransport:
    def send_email(self, to, subject, html, text, attachments=None):
        time.sleep(0.5)
        return SendResult(ok=True, message_id="too_late")


@pytest.mark.critical
class TestDispatchSuccess:
    """Successful sends"""

    def test_marks_sent_and_counts(self, make_entry, db_session):
        entry = processing_entry(make_entry)
        transport = FakeTransport()

        outcome = asyncio.run(dispatch(db_session, entry, make_content(), transport, NOW))

        assert outcome.ok is True
        assert outcome.message_id == "msg_1"
        db_session.refresh(entry)
        assert entry.status == EmailStatus.SENT.value
        assert ensure_aware_utc(entry.sent_at) == NOW
        assert entry.error_message is None

        count = db_session.query(DailyCount).filter(DailyCount.date == local_date(NOW)).first()
        assert count.count == 1

        log = db_session.query(AuditLogEntry).filter(AuditLogEntry.queue_id == entry.id).one()
        assert log.type == AuditLogType.SUCCESS.value

    def test_passes_content_and_attachments_to_transport(self, make_entry, db_session):
        entry = processing_entry(make_entry)
        transport = FakeTransport()
        content = make_content([AttachmentBytes(name="report.pdf", content=b"%PDF", mime_type="application/pdf")])

        asyncio.run(dispatch(db_session, entry, content, transport, NOW))

        sent = transport.sent[0]
        assert sent["to"] == RESEND_TEST_DELIVERED
        assert sent["subject"] == "Term report"
        assert sent["text"] == "Report attached"
        assert sent["attachments"] == [{"filename": "report.pdf", "content": b"%PDF", "content_type": "application/pdf"}]

    def test_birthday_send_records_marker(self, make_entry, make_student, db_session):
        student = make_student()
        entry = processing_entry(make_entry, email_type=EmailType.BIRTHDAY.value, student_id=student.id)

        asyncio.run(dispatch(db_session, entry, make_content(), FakeTransport(), NOW))

        marker = db_session.query(BirthdaySentRecord).filter(BirthdaySentRecord.student_id == student.id).one()
        assert marker.sent_date == local_date(NOW)

    def test_bookkeeping_failure_does_not_change_outcome(self, make_entry, db_session):
        entry = processing_entry(make_entry)

        with patch('sfgs_mailer.services.dispatcher.increment_daily_count', side_effect=OperationalError("UPDATE", {}, Exception("locked"))):
            outcome = asyncio.run(dispatch(db_session, entry, make_content(), FakeTransport(), NOW))

        assert outcome.ok is True
        db_session.refresh(entry)
        assert entry.status == EmailStatus.SENT.value

    def test_audit_failure_does_not_change_outcome(self, make_entry, db_session):
        entry = processing_entry(make_entry)

        with patch('sfgs_mailer.services.dispatcher.write_audit_log', return_value=False) as mock_audit:
            outcome = asyncio.run(dispatch(db_session, entry, make_content(), FakeTransport(), NOW))

        assert outcome.ok is True
        mock_audit.assert_called_once()
        db_session.refresh(entry)
        assert entry.status == EmailStatus.SENT.value


@pytest.mark.critical
class TestDispatchFailure:
    """Failed sends"""

    def test_provider_error_marks_failed(self, make_entry, db_session):
        entry = processing_entry(make_entry, recipient=RESEND_TEST_BOUNCED)
        transport = FakeTransport(fail_for=[RESEND_TEST_BOUNCED])

        outcome = asyncio.run(dispatch(db_session, entry, make_content(), transport, NOW))

        assert outcome.ok is False
        assert outcome.error == "Mailbox rejected message"
        db_session.refresh(entry)
        assert entry.status == EmailStatus.FAILED.value
        assert entry.error_message == "Mailbox rejected message"
        assert ensure_aware_utc(entry.failed_at) == NOW
        assert entry.sent_at is None
        assert db_session.query(DailyCount).count() == 0

        log = db_session.query(AuditLogEntry).filter(AuditLogEntry.queue_id == entry.id).one()
        assert log.type == AuditLogType.ERROR.value
        assert RESEND_TEST_BOUNCED in log.message

    def test_transport_exception_marks_failed(self, make_entry, db_session):
        entry = processing_entry(make_entry)
        transport = FakeTransport(raise_for=[RESEND_TEST_DELIVERED])

        outcome = asyncio.run(dispatch(db_session, entry, make_content(), transport, NOW))

        assert outcome.ok is False
        assert outcome.error == "provider unreachable"

    def test_timeout_marks_failed(self, make_entry, db_session, monkeypatch):
        monkeypatch.setattr(settings, "EMAIL_SEND_TIMEOUT_SECONDS", 0.05)
        entry = processing_entry(make_entry)

        outcome = asyncio.run(dispatch(db_session, entry, make_content(), SlowTransport(), NOW))

        assert outcome.ok is False
        assert "timed out" in outcome.error
        db_session.refresh(entry)
        assert entry.status == EmailStatus.FAILED.value


@pytest.mark.high
class TestDbHelpers:
    """Counter upsert and audit writes"""

    def test_increment_daily_count_upserts(self, db_session):
        day = local_date(NOW)
        increment_daily_count(db_session, day)
        increment_daily_count(db_session, day, amount=2)
        db_session.commit()

        rows = db_session.query(DailyCount).all()
        assert len(rows) == 1
        assert rows[0].count == 3

    def test_write_audit_log_swallows_database_errors(self):
        db = MagicMock()
        db.commit.side_effect = SQLAlchemyError("disk full")

        assert write_audit_log(db, AuditLogType.ERROR, "boom") is False
        db.rollback.assert_called_once()

    def test_write_audit_log_accepts_plain_strings(self, db_session):
        assert write_audit_log(db_session, "no_pending", "No pending emails") is True
        assert db_session.query(AuditLogEntry).one().type == "no_pending"
