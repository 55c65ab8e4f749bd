"""Shared pytest fixtures for test suite"""
import json
import time
import pytest
import sys
from pathlib import Path
from typing import Generator
from unittest.mock import Mock, patch
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool
import fakeredis

# Add backend directory to Python path
backend_dir = Path(__file__).parent.parent
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

from mailflow.main import app
from mailflow.core.config import settings
from mailflow.core.security import compute_webhook_signature, sign_payload
from mailflow.db import session as session_module
from mailflow.db import redis as redis_module
from mailflow.db import email_queue as queue_module
from mailflow.db.session import get_db
from mailflow.models import Base
from mailflow.models.user import User
from mailflow.models.email_log import EmailLog, EmailStatus
from mailflow.services import delivery as delivery_module
from mailflow.services.delivery import BaseDeliveryProvider, ResendProvider


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

ORCHESTRATOR_TEST_SECRET = "orchestrator-test-secret"
WEBHOOK_TEST_SECRET = "whsec_dGVzdC13ZWJob29rLXNlY3JldC1rZXk="


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


@pytest.fixture(scope="function")
def file_session_factory(tmp_path) -> Generator[sessionmaker, None, None]:
    """File-backed SQLite database wired into SessionLocal()

    Batch processing opens one session per message on worker threads, which
    a single shared in-memory connection cannot serve.
    """
    engine = create_engine(
        f"sqlite:///{tmp_path / 'mailflow_test.db'}",
        connect_args={"check_same_thread": False, "timeout": 15},
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    with patch.object(session_module, '_engine', engine):
        with patch.object(session_module, '_session_factory', factory):
            yield factory

    engine.dispose()


@pytest.fixture(scope="function")
def mock_redis():
    """Fake Redis (with Lua support) for both the cache and the email queue"""
    fake_redis = fakeredis.FakeStrictRedis(decode_responses=True)

    with patch.object(redis_module, '_client', fake_redis):
        with patch.object(queue_module, '_client', fake_redis):
            yield fake_redis


@pytest.fixture(scope="function", autouse=True)
def auto_mock_resend():
    """Automatically mock the Resend SDK so no test sends real email"""
    with patch('mailflow.services.delivery.resend_provider.resend') as mock_resend_module:
        mock_resend_module.Emails.send = Mock(return_value={"id": "re_test123"})
        with patch.object(delivery_module, '_provider', ResendProvider(api_key="re_test_key")):
            yield mock_resend_module


@pytest.fixture(scope="function")
def mock_provider() -> Mock:
    """Delivery provider double that accepts every email"""
    provider = Mock(spec=BaseDeliveryProvider)
    provider.send.return_value = "re_provider123"
    return provider


@pytest.fixture(scope="function")
def orchestrator_secret():
    """Require signed orchestrator requests"""
    with patch.object(settings, 'ORCHESTRATOR_SECRET', ORCHESTRATOR_TEST_SECRET):
        yield ORCHESTRATOR_TEST_SECRET


@pytest.fixture(scope="function")
def webhook_secret():
    """Require signed webhooks"""
    with patch.object(settings, 'RESEND_WEBHOOK_SECRET', WEBHOOK_TEST_SECRET):
        yield WEBHOOK_TEST_SECRET


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
        # Disable OpenTelemetry and the background worker in tests
        with patch('mailflow.core.otel.initialize_otel', return_value=False):
            with patch('mailflow.core.otel.setup_otel_logging', return_value=False):
                with patch.object(settings, 'START_QUEUE_WORKER', False):
                    with patch.object(session_module, '_engine', test_engine):
                        with TestClient(app) as test_client:
                            yield test_client
    finally:
        # Cleanup - always clear overrides
        app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def test_user(db_session: Session) -> User:
    """Create a test user using the Resend test address"""
    user = User(id="user_123", email="delivered@resend.dev", first_name="Ada", last_name="Lovelace")
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture(scope="function")
def sent_email_log(db_session: Session, test_user: User) -> EmailLog:
    """A welcome email the provider has accepted as re_sent123"""
    email_log = EmailLog(
        message_id="1700000000000-user_123-welcome",
        user_id=test_user.id,
        email_type="welcome",
        to_email=test_user.email,
        from_email="CloudDojo <welcome@clouddojo.tech>",
        subject="Welcome to CloudDojo! 🚀",
        status=EmailStatus.SENT.value,
        resend_id="re_sent123",
        template_data={"username": "Ada"}
    )
    db_session.add(email_log)
    db_session.commit()
    db_session.refresh(email_log)
    return email_log


def signed_orchestrator_request(event: dict, secret: str = ORCHESTRATOR_TEST_SECRET) -> tuple:
    """Serialize an event and sign it as a producer would"""
    body = json.dumps(event).encode("utf-8")
    return body, sign_payload(body, secret)


def signed_webhook_headers(body: bytes, svix_id: str = "msg_test1", secret: str = WEBHOOK_TEST_SECRET) -> dict:
    """Svix headers for a webhook body signed with the test secret"""
    timestamp = str(int(time.time()))
    signature = compute_webhook_signature(body, secret, svix_id, timestamp)
    return {
        "svix-id": svix_id,
        "svix-timestamp": timestamp,
        "svix-signature": f"v1,{signature}",
    }
