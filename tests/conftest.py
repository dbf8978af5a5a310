from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from vocabdrop.auth import SCOPE_ADMIN, SCOPE_JOBS, create_service_token
from vocabdrop.config import settings
from vocabdrop.db import Base, get_db
from vocabdrop.main import app
from vocabdrop.models.subscription import Subscription
from vocabdrop.models.vocabulary_word import VocabularyWord

# Background jobs must not run against the test database
settings.enable_scheduler = False

# 2026-03-10 00:05 in Asia/Kolkata (UTC+5:30)
SCHEDULE_RUN_AT = datetime(2026, 3, 9, 18, 35, tzinfo=timezone.utc)


@pytest.fixture
def db_session():
    """Create an in-memory SQLite database for testing."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db_session):
    """Create a test client with database session override."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def service_client(client):
    """Test client carrying a token allowed to trigger jobs."""
    token = create_service_token("cron", scope=SCOPE_JOBS)
    client.headers["Authorization"] = f"Bearer {token}"
    return client


@pytest.fixture
def admin_client(client):
    """Test client carrying an admin token."""
    token = create_service_token("admin@example.com", scope=SCOPE_ADMIN)
    client.headers["Authorization"] = f"Bearer {token}"
    return client


@pytest.fixture
def make_subscription(db_session):
    """Factory for subscriptions; defaults to a running trial."""
    counter = {"n": 0}

    def _make(**kwargs):
        counter["n"] += 1
        data = {
            "phone_number": f"+9198765432{counter['n']:02d}",
            "user_id": f"user-{counter['n']}",
            "first_name": "Asha",
            "is_pro": False,
            "trial_ends_at": SCHEDULE_RUN_AT + timedelta(days=3),
            "subscription_status": "trial",
            "category": "general",
            "delivery_time": "10:00",
        }
        data.update(kwargs)
        subscription = Subscription(**data)
        db_session.add(subscription)
        db_session.commit()
        db_session.refresh(subscription)
        return subscription

    return _make


@pytest.fixture
def add_words(db_session):
    """Factory adding `count` curated words to a category."""

    def _add(category="general", count=5, prefix="word"):
        words = []
        for i in range(count):
            word = VocabularyWord(
                word=f"{prefix}{i + 1}",
                definition=f"Definition of {prefix}{i + 1}",
                example=f"An example using {prefix}{i + 1}.",
                pronunciation=f"{prefix.upper()}-{i + 1}",
                part_of_speech="noun",
                memory_hook=f"Hook for {prefix}{i + 1}",
                category=category,
            )
            db_session.add(word)
            words.append(word)
        db_session.commit()
        return words

    return _add
