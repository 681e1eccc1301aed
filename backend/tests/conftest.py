"""Shared pytest fixtures for test suite"""
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Generator, List, Optional
from unittest.mock import Mock, patch

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool
import fakeredis

# Add backend directory to Python path
backend_dir = Path(__file__).parent.parent
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

# Settings are read at import time - configure before importing the app
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["REDIS_URL"] = "redis://localhost:6379/15"
os.environ["ENVIRONMENT"] = "test"
os.environ["SCHOOL_TIMEZONE"] = "Africa/Lagos"
os.environ["CRON_SECRET"] = "test-cron-secret"
os.environ["ADMIN_API_KEY"] = "test-admin-key"
os.environ["RESEND_API_KEY"] = "re_test_key"
os.environ["R2_PUBLIC_DOMAIN"] = ""

from sfgs_mailer.main import app
from sfgs_mailer.db.session import get_db
from sfgs_mailer.db import redis as redis_module
from sfgs_mailer.models import Base
from sfgs_mailer.models.dispatch_settings import DispatchSettings
from sfgs_mailer.models.email_queue import QueueEntry, EmailStatus, EmailType
from sfgs_mailer.models.student import Student
from sfgs_mailer.services.email_service import SendResult
from sfgs_mailer.services.storage.r2_service import ObjectNotFound


# SQLite in-memory database for testing
TEST_DATABASE_URL = "sqlite:///:memory:"

# Create test engine with StaticPool for in-memory database
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

# Create test session factory
TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)

# Fixed clock for scheduler tests: 13:00 in Lagos on 10 March 2026
NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)

# Resend test email addresses - use these in ALL tests to avoid fake addresses
# See: https://resend.com/docs/dashboard/emails/send-test-emails
RESEND_TEST_DELIVERED = "delivered@resend.dev"
RESEND_TEST_BOUNCED = "bounced@resend.dev"

ADMIN_HEADERS = {"X-Admin-Key": "test-admin-key"}
CRON_HEADERS = {"X-Cron-Secret": "test-cron-secret"}


@pytest.fixture(scope="function")
def db_session() -> Generator[Session, None, None]:
    """Create a fresh SQLite in-memory database session for each test"""
    # Create all tables
    Base.metadata.create_all(bind=test_engine)

    # Create session
    session = TestSessionLocal()

    try:
        yield session
    finally:
        session.close()
        # Drop all tables after test
        Base.metadata.drop_all(bind=test_engine)


@pytest.fixture(scope="function", autouse=True)
def mock_redis():
    """Mock Redis client using fakeredis - no test ever reaches a real server"""
    fake_redis = fakeredis.FakeStrictRedis(decode_responses=True)
    with patch.object(redis_module, '_client', fake_redis):
        yield fake_redis


@pytest.fixture(scope="function")
def client(db_session: Session, mock_redis) -> Generator[TestClient, None, None]:
    """FastAPI test client with test database and mocked Redis"""

    # Override get_db dependency to use test database
    def override_get_db():
        try:
            yield db_session
        finally:
            pass  # Don't close session here, handled by fixture

    app.dependency_overrides[get_db] = override_get_db

    try:
        with patch('sfgs_mailer.main.init_db'):
            with TestClient(app) as test_client:
                yield test_client
    finally:
        # Cleanup - always clear overrides
        app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def mock_email_service():
    """Mock email service (Resend) to avoid sending actual emails"""
    with patch('sfgs_mailer.services.email_service.resend') as mock_resend:
        mock_resend.Emails.send = Mock(return_value={"id": "email_test123"})
        yield mock_resend


class FakeTransport:
    """Records every send; recipients listed in `fail_for` get an error result"""

    def __init__(self, fail_for: Optional[List[str]] = None, raise_for: Optional[List[str]] = None):
        self.fail_for = set(fail_for or [])
        self.raise_for = set(raise_for or [])
        self.sent = []

    def send_email(self, to, subject, html, text, attachments=None):
        self.sent.append({
            "to": to, "subject": subject, "html": html, "text": text,
            "attachments": attachments or [],
        })
        if to in self.raise_for:
            raise ConnectionError("provider unreachable")
        if to in self.fail_for:
            return SendResult(ok=False, error="Mailbox rejected message")
        return SendResult(ok=True, message_id=f"msg_{len(self.sent)}")

    @property
    def recipients(self):
        return [s["to"] for s in self.sent]


class FakeStorage:
    """In-memory object storage; keys in `broken` fail with a non-404 error"""

    def __init__(self, objects=None, broken=None):
        self.objects = dict(objects or {})
        self.broken = set(broken or [])
        self.downloads = []

    def download_object(self, object_key):
        self.downloads.append(object_key)
        if object_key in self.broken:
            raise RuntimeError("connection reset by peer")
        if object_key not in self.objects:
            raise ObjectNotFound(object_key)
        return self.objects[object_key]


@pytest.fixture(scope="function")
def make_entry(db_session: Session):
    """Factory for queue entries"""
    def _make(recipient=RESEND_TEST_DELIVERED, email_type=EmailType.PDF.value, status=EmailStatus.PENDING.value,
              queued_at=None, **kwargs) -> QueueEntry:
        queued_at = queued_at or NOW
        entry = QueueEntry(
            recipient_email=recipient,
            email_type=email_type,
            status=status,
            subject=kwargs.pop("subject", "Term report"),
            message=kwargs.pop("message", "<p>Please find the report attached.</p>"),
            attachments=kwargs.pop("attachments", []),
            created_at=kwargs.pop("created_at", queued_at),
            queued_at=queued_at,
            **kwargs
        )
        db_session.add(entry)
        db_session.commit()
        db_session.refresh(entry)
        return entry
    return _make


@pytest.fixture(scope="function")
def make_student(db_session: Session):
    """Factory for students"""
    counter = {"n": 0}

    def _make(name="Ada Obi", date_of_birth=None, parent_email_1=RESEND_TEST_DELIVERED, parent_email_2=None) -> Student:
        counter["n"] += 1
        student = Student(
            matric_number=f"SFGS/{counter['n']:04d}",
            student_name=name,
            date_of_birth=date_of_birth,
            parent_email_1=parent_email_1,
            parent_email_2=parent_email_2,
        )
        db_session.add(student)
        db_session.commit()
        db_session.refresh(student)
        return student
    return _make


@pytest.fixture(scope="function")
def dispatch_settings(db_session: Session):
    """Factory for the dispatch settings row"""
    def _make(daily_email_limit=100, email_batch_size=10, email_interval_minutes=5, cron_enabled=True, **kwargs) -> DispatchSettings:
        row = DispatchSettings(
            daily_email_limit=daily_email_limit,
            email_batch_size=email_batch_size,
            email_interval_minutes=email_interval_minutes,
            cron_enabled=cron_enabled,
            **kwargs
        )
        db_session.add(row)
        db_session.commit()
        db_session.refresh(row)
        return row
    return _make
