"""
Test configuration and fixtures for the AImpactScanner API.

Tests run against a throwaway SQLite file shared by the async API engine and
the synchronous worker sessions. The browser and Stripe are replaced with
in-process fakes.
"""

import os
import tempfile
from typing import Generator

from dotenv import load_dotenv

load_dotenv()

test_db_url = os.getenv("TEST_DATABASE_URL")
if test_db_url:
    if "postgresql://" in test_db_url and "asyncpg" not in test_db_url:
        test_db_url = test_db_url.replace("postgresql://", "postgresql+asyncpg://")
    os.environ["DATABASE_URL"] = test_db_url
else:
    test_db_path = os.path.join(tempfile.mkdtemp(), "aimpact_test.db")
    os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{test_db_path}"

os.environ["LOG_TO_FILE"] = "false"
os.environ["PUBLISH_PROGRESS_EVENTS"] = "false"
os.environ["STRIPE_SECRET_KEY"] = "sk_test_123"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test_123"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from selenium.common.exceptions import WebDriverException  # noqa: E402

from app.features.analysis.models.analysis import Analysis, AnalysisStatus  # noqa: E402
from app.features.users.models.user import User, UserTier  # noqa: E402
from app.platform.db.base import Base  # noqa: E402
from app.platform.db import models  # noqa: E402,F401
from app.platform.db.session import build_sync_session_factory  # noqa: E402
from tests.fakes import FakeDriver, FakeStripe, context_for  # noqa: E402


@pytest.fixture(scope="session")
def session_factory():
    factory = build_sync_session_factory(os.environ["DATABASE_URL"])
    engine = factory.kw["bind"]
    Base.metadata.create_all(bind=engine)
    yield factory
    engine.dispose()


@pytest.fixture(autouse=True)
def clean_db(session_factory):
    yield
    engine = session_factory.kw["bind"]
    with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())


@pytest.fixture
def make_user(session_factory):
    def _make_user(user_id="user-1", email=None, tier=UserTier.free, **fields):
        db = session_factory()
        try:
            user = User(
                id=user_id,
                email=email or f"{user_id}@example.com",
                tier=tier,
                monthly_analyses_used=fields.pop("monthly_analyses_used", 0),
                **fields,
            )
            db.add(user)
            db.commit()
            return user
        finally:
            db.close()

    return _make_user


@pytest.fixture
def make_analysis(session_factory):
    def _make_analysis(user_id="user-1", url="https://example.com/article", status=AnalysisStatus.pending):
        db = session_factory()
        try:
            analysis = Analysis(user_id=user_id, url=url, status=status)
            db.add(analysis)
            db.commit()
            return analysis
        finally:
            db.close()

    return _make_analysis


@pytest.fixture
def fake_driver():
    return FakeDriver(
        title="How to Write the Complete Guide to AI Search in 2025",
        description=(
            "Learn how AI search engines pick sources. Discover 7 practical steps to make your pages "
            "citable, with examples, checklists and tools you can try today for free."
        ),
        body="Written by Jane Doe. About the author: Jane is a certified search specialist. Contact her on LinkedIn.",
    )


@pytest.fixture
def worker_context(session_factory, fake_driver):
    return context_for(session_factory, fake_driver)


@pytest.fixture
def browser_launch_error():
    return WebDriverException("chrome not reachable")


@pytest.fixture(scope="session")
def test_app():
    """Create FastAPI test application."""
    from app.main import app

    return app


@pytest.fixture(scope="function")
def client(test_app) -> Generator[TestClient, None, None]:
    with TestClient(test_app) as test_client:
        yield test_client
    test_app.dependency_overrides.clear()


@pytest.fixture
def fake_stripe(test_app):
    from app.features.billing.services.stripe_client import get_stripe_client

    stripe = FakeStripe()
    test_app.dependency_overrides[get_stripe_client] = lambda: stripe
    yield stripe
    test_app.dependency_overrides.pop(get_stripe_client, None)
