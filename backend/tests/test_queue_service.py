"""Queue operations and status lifecycle tests"""
import pytest
from datetime import timedelta

from conftest import NOW, RESEND_TEST_DELIVERED
from sfgs_mailer.models.email_queue import (
    QueueEntry, EmailStatus, InvalidTransitionError, check_transition
)
from sfgs_mailer.models.uploaded_file import UploadedFile
from sfgs_mailer.schemas.queue import QueueEntryCreate
from sfgs_mailer.services import queue_service
from sfgs_mailer.services.queue_service import QueueEntryNotFound, UploadedFileNotFound


@pytest.mark.critical
class TestStatusLifecycle:
    """Allowed and rejected transitions"""

    @pytest.mark.parametrize("current,target", [
        ("pending", "processing"),
        ("pending", "cancelled"),
        ("processing", "sent"),
        ("processing", "failed"),
        ("processing", "pending"),
        ("failed", "pending"),
        ("cancelled", "pending"),
    ])
    def test_allowed(self, current, target):
        check_transition(current, target)

    @pytest.mark.parametrize("current,target", [
        ("sent", "pending"),
        ("sent", "failed"),
        ("pending", "sent"),
        ("failed", "sent"),
        ("cancelled", "processing"),
    ])
    def test_rejected(self, current, target):
        with pytest.raises(InvalidTransitionError):
            check_transition(current, target)

    def test_failed_then_sent_clears_failure_metadata(self, make_entry):
        entry = make_entry(status=EmailStatus.PROCESSING.value, claimed_at=NOW)
        entry.transition_to(EmailStatus.FAILED, NOW)
        entry.error_message = "timeout"
        entry.transition_to(EmailStatus.PENDING, NOW)
        entry.transition_to(EmailStatus.PROCESSING, NOW)
        entry.transition_to(EmailStatus.SENT, NOW)

        assert entry.error_message is None
        assert entry.failed_at is None
        assert entry.sent_at == NOW


@pytest.mark.high
class TestOperatorActions:
    """Retry, cancel, prioritise, delete"""

    def test_retry_failed_entry(self, make_entry, db_session):
        entry = make_entry(status=EmailStatus.FAILED.value, failed_at=NOW, error_message="bounced")
        queued_at = entry.queued_at

        retried = queue_service.retry_entry(db_session, entry.id)

        assert retried.status == EmailStatus.PENDING.value
        assert retried.error_message is None
        assert retried.failed_at is None
        assert retried.queued_at == queued_at

    def test_retry_sent_entry_rejected(self, make_entry, db_session):
        entry = make_entry(status=EmailStatus.SENT.value, sent_at=NOW)

        with pytest.raises(InvalidTransitionError):
            queue_service.retry_entry(db_session, entry.id)

    def test_cancel_pending_entry(self, make_entry, db_session):
        entry = make_entry()

        cancelled = queue_service.cancel_entry(db_session, entry.id)

        assert cancelled.status == EmailStatus.CANCELLED.value
        assert cancelled.cancelled_at is not None

    def test_cancel_processing_entry_rejected(self, make_entry, db_session):
        entry = make_entry(status=EmailStatus.PROCESSING.value, claimed_at=NOW)

        with pytest.raises(InvalidTransitionError):
            queue_service.cancel_entry(db_session, entry.id)

    def test_toggle_priority(self, make_entry, db_session):
        entry = make_entry()

        assert queue_service.toggle_priority(db_session, entry.id).prioritized_at is not None
        assert queue_service.toggle_priority(db_session, entry.id).prioritized_at is None

    def test_toggle_priority_requires_pending(self, make_entry, db_session):
        entry = make_entry(status=EmailStatus.SENT.value, sent_at=NOW)

        with pytest.raises(InvalidTransitionError):
            queue_service.toggle_priority(db_session, entry.id)

    def test_unknown_entry(self, db_session):
        with pytest.raises(QueueEntryNotFound):
            queue_service.cancel_entry(db_session, 999)

    def test_delete_entry(self, make_entry, db_session):
        entry = make_entry()

        queue_service.delete_entry(db_session, entry.id)

        assert db_session.query(QueueEntry).count() == 0

    def test_delete_entries_for_file(self, make_entry, db_session):
        uploaded = UploadedFile(original_file_name="report.pdf", storage_path="reports/ada-term1.pdf")
        db_session.add(uploaded)
        db_session.commit()
        make_entry(file_id=uploaded.id, attachments=["reports/ada-term1.pdf"])
        make_entry(attachments=["reports/ada-term1.pdf", "reports/extra.pdf"])
        make_entry(attachments=["reports/ada-term1.pdf.bak"])
        keep = make_entry(attachments=["reports/other.pdf"])

        deleted = queue_service.delete_entries_for_file(db_session, uploaded.id)

        assert deleted == 2
        remaining = {e.id for e in db_session.query(QueueEntry).all()}
        assert keep.id in remaining
        assert len(remaining) == 2

    def test_delete_entries_for_file_with_non_ascii_key(self, make_entry, db_session):
        uploaded = UploadedFile(original_file_name="Adébáyọ̀.pdf", storage_path="reports/Adébáyọ̀.pdf")
        db_session.add(uploaded)
        db_session.commit()
        make_entry(attachments=["reports/Adébáyọ̀.pdf"])
        keep = make_entry(attachments=["reports/Adebayo.pdf"])

        deleted = queue_service.delete_entries_for_file(db_session, uploaded.id)

        assert deleted == 1
        assert [e.id for e in db_session.query(QueueEntry).all()] == [keep.id]


@pytest.mark.high
class TestEnqueue:

    def test_enqueue_plain_email(self, db_session):
        entry = queue_service.enqueue_email(db_session, QueueEntryCreate(
            recipient_email=RESEND_TEST_DELIVERED,
            subject="Fees reminder",
            message="<p>Second term fees are due.</p>",
            attachments=["https://cdn.example.com/fees.pdf", "  "],
        ))

        assert entry.status == EmailStatus.PENDING.value
        assert entry.email_type == "pdf"
        assert entry.attachments == ["https://cdn.example.com/fees.pdf"]

    def test_enqueue_with_file_inherits_student(self, make_student, db_session):
        student = make_student()
        uploaded = UploadedFile(student_id=student.id, original_file_name="Term 1.pdf", storage_path="reports/t1.pdf")
        db_session.add(uploaded)
        db_session.commit()

        entry = queue_service.enqueue_email(db_session, QueueEntryCreate(
            recipient_email=RESEND_TEST_DELIVERED, file_id=uploaded.id
        ))

        assert entry.attachments == ["reports/t1.pdf"]
        assert entry.student_id == student.id
        assert entry.matric_number == student.matric_number

    def test_enqueue_unknown_file(self, db_session):
        with pytest.raises(UploadedFileNotFound):
            queue_service.enqueue_email(db_session, QueueEntryCreate(recipient_email=RESEND_TEST_DELIVERED, file_id=42))


@pytest.mark.medium
class TestListingsAndStats:

    def test_list_entries_priority_then_newest(self, make_entry, db_session):
        old = make_entry(recipient="old@resend.dev", created_at=NOW - timedelta(days=1))
        new = make_entry(recipient="new@resend.dev", created_at=NOW)
        boosted = make_entry(recipient="vip@resend.dev", created_at=NOW - timedelta(days=2), prioritized_at=NOW)

        ids = [e.id for e in queue_service.list_entries(db_session)]
        assert ids == [boosted.id, new.id, old.id]

    def test_list_entries_by_status(self, make_entry, db_session):
        make_entry()
        failed = make_entry(status=EmailStatus.FAILED.value)

        assert [e.id for e in queue_service.list_entries(db_session, "failed")] == [failed.id]

    def test_queue_stats(self, make_entry, dispatch_settings, db_session):
        dispatch_settings(daily_email_limit=10)
        make_entry()
        make_entry(status=EmailStatus.SENT.value, sent_at=NOW - timedelta(minutes=30))
        make_entry(status=EmailStatus.SENT.value, sent_at=NOW - timedelta(days=2))
        make_entry(status=EmailStatus.FAILED.value)

        stats = queue_service.get_queue_stats(db_session, NOW)

        assert stats["pending"] == 1
        assert stats["sent"] == 2
        assert stats["failed"] == 1
        assert stats["cancelled"] == 0
        assert stats["sent_today"] == 1
        assert stats["remaining_today"] == 9
        assert stats["last_sent_at"] == NOW - timedelta(minutes=30)
