"""Batch selection order and cron filtering"""
import pytest
from datetime import timedelta

from conftest import NOW
from sfgs_mailer.models.email_queue import EmailStatus, EmailType
from sfgs_mailer.services.batch_selector import count_waiting_non_birthday, select_batch


@pytest.mark.critical
class TestSelectBatch:
    """Priority first, then FIFO"""

    def test_fifo_by_queued_at(self, make_entry, db_session):
        late = make_entry(recipient="late@resend.dev", queued_at=NOW - timedelta(minutes=1))
        early = make_entry(recipient="early@resend.dev", queued_at=NOW - timedelta(minutes=30))

        batch = select_batch(db_session, 10, cron_enabled=True)
        assert [e.id for e in batch] == [early.id, late.id]

    def test_prioritized_entries_go_first_oldest_boost_first(self, make_entry, db_session):
        plain = make_entry(recipient="plain@resend.dev", queued_at=NOW - timedelta(hours=2))
        boosted_late = make_entry(
            recipient="b2@resend.dev", queued_at=NOW, prioritized_at=NOW - timedelta(minutes=1)
        )
        boosted_early = make_entry(
            recipient="b1@resend.dev", queued_at=NOW, prioritized_at=NOW - timedelta(minutes=10)
        )

        batch = select_batch(db_session, 10, cron_enabled=True)
        assert [e.id for e in batch] == [boosted_early.id, boosted_late.id, plain.id]

    def test_ties_broken_by_insertion_order(self, make_entry, db_session):
        first = make_entry(recipient="a@resend.dev", queued_at=NOW)
        second = make_entry(recipient="b@resend.dev", queued_at=NOW)

        batch = select_batch(db_session, 10, cron_enabled=True)
        assert [e.id for e in batch] == [first.id, second.id]

    def test_respects_max_count(self, make_entry, db_session):
        for i in range(5):
            make_entry(recipient=f"p{i}@resend.dev", queued_at=NOW - timedelta(minutes=10 - i))

        assert len(select_batch(db_session, 3, cron_enabled=True)) == 3
        assert select_batch(db_session, 0, cron_enabled=True) == []

    def test_only_pending_entries(self, make_entry, db_session):
        pending = make_entry()
        make_entry(status=EmailStatus.SENT.value, sent_at=NOW)
        make_entry(status=EmailStatus.FAILED.value)
        make_entry(status=EmailStatus.CANCELLED.value)
        make_entry(status=EmailStatus.PROCESSING.value, claimed_at=NOW)

        batch = select_batch(db_session, 10, cron_enabled=True)
        assert [e.id for e in batch] == [pending.id]

    def test_cron_disabled_selects_only_birthdays(self, make_entry, db_session):
        """Filter applies before the limit so report emails never use up the batch"""
        for i in range(3):
            make_entry(recipient=f"r{i}@resend.dev", queued_at=NOW - timedelta(hours=1))
        birthday = make_entry(recipient="bd@resend.dev", email_type=EmailType.BIRTHDAY.value, queued_at=NOW)

        batch = select_batch(db_session, 1, cron_enabled=False)
        assert [e.id for e in batch] == [birthday.id]
        assert count_waiting_non_birthday(db_session) == 3
