"""
Pytest configuration and fixtures
"""
import itertools
import os
from datetime import datetime, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

# Ensure default: do not run real LLM tests unless explicitly enabled
os.environ.setdefault("RUN_REAL_LLM_TESTS", "0")

from casequery.core.config import Settings
from casequery.core.database import Base
from casequery.models import ArbitrationCase
from casequery.utils.datetime_utils import fixed_clock


@pytest.fixture(scope="function")
def settings() -> Settings:
    """Settings with AI escalation off so unit tests never reach the network"""
    return Settings(
        database_url="sqlite://",
        enable_ai_escalation=False,
        ollama_url="",
        ollama_model="",
        log_format="text",
    )


@pytest.fixture(scope="function")
def engine():
    """In-memory SQLite shared by every session of one test"""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture(scope="function")
def db(engine) -> Session:
    """Create a database session for testing"""
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture(scope="function")
def seed_cases(db):
    """Factory inserting cases; unspecified columns get harmless defaults"""
    numbers = itertools.count(1)

    def _seed(*rows):
        cases = []
        for row in rows:
            values = {
                "case_id": f"AAA-{next(numbers):05d}",
                "forum": "AAA",
                "source_file": "fixtures.xlsx",
            }
            values.update(row)
            cases.append(ArbitrationCase(**values))
        db.add_all(cases)
        db.commit()
        return cases

    return _seed


@pytest.fixture
def clock():
    """Clock frozen in the middle of 2024"""
    return fixed_clock(datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc))


# ---------------------------------------------------------------------------
# Test-run safety: skip `real_llm` marked tests by default unless explicit flag
# ---------------------------------------------------------------------------
def pytest_collection_modifyitems(config, items):
    """Skip real-LLM tests unless RUN_REAL_LLM_TESTS=1 is set in env."""
    run_real = os.environ.get("RUN_REAL_LLM_TESTS", "0") == "1"
    if run_real:
        return
    skip_marker = pytest.mark.skip(reason="Real LLM tests disabled. Set RUN_REAL_LLM_TESTS=1 to enable.")
    for item in items:
        if "real_llm" in getattr(item, "keywords", {}):
            item.add_marker(skip_marker)
