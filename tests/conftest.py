"""
Pytest fixtures for the panel billing test suite.

Provides:
- In-memory SQLite engine and session factory (one connection, shared
  across sessions and threads through StaticPool)
- DeterministicClock pinned to 2025-03-15
- Seeded standard rates and a panel factory
- JSON log capture
"""

import json
import logging
from decimal import Decimal
from io import StringIO
from itertools import count
from uuid import uuid4

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import billing_kernel.models  # noqa: F401
from billing_kernel.db.base import Base
from billing_kernel.db.engine import session_scope
from billing_kernel.domain.clock import DeterministicClock
from billing_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from billing_kernel.services.rate_service import RateService
from billing_services import BillingOrchestrator

# Test actor ID for all test operations
TEST_ACTOR_ID = uuid4()

STANDARD_RATES = {
    2024: Decimal("36.50"),
    2025: Decimal("37.70"),
    2026: Decimal("39.00"),
}


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture billing_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, orchestrator):
            orchestrator.recalculate_month(panel_id, "2025-03")
            logs = captured_logs()
            assert any(r["message"] == "recalculation_completed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("billing_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Database
# =============================================================================


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
def session(session_factory):
    """
    A session for flush-only kernel service tests.

    Do not mix with orchestrator fixtures in one test: StaticPool shares a
    single connection, so an orchestrator commit would commit this session's
    work too.
    """
    session = session_factory()
    yield session
    session.rollback()
    session.close()


@pytest.fixture
def clock() -> DeterministicClock:
    return DeterministicClock()


@pytest.fixture
def test_actor_id():
    return TEST_ACTOR_ID


# =============================================================================
# Seed data
# =============================================================================


@pytest.fixture
def rates(session):
    """Standard rates 2024-2026 flushed into ``session``."""
    RateService(session).seed_rates(STANDARD_RATES, TEST_ACTOR_ID)
    return STANDARD_RATES


@pytest.fixture
def committed_rates(session_factory):
    """Standard rates 2024-2026 committed for orchestrator tests."""
    with session_scope(session_factory) as session:
        RateService(session).seed_rates(STANDARD_RATES, TEST_ACTOR_ID)
    return STANDARD_RATES


@pytest.fixture
def orchestrator(session_factory, clock, committed_rates) -> BillingOrchestrator:
    return BillingOrchestrator(session_factory, clock)


@pytest.fixture
def create_panel(orchestrator):
    """
    Factory registering a panel through the orchestrator.

    Returns ``(panel_info, intake_result)``.
    """
    codes = count(1)

    def _create(
        intake_date: str = "2025-01-01",
        municipality_ref: str = "MAD",
        code: str | None = None,
        base_rate: Decimal | None = None,
    ):
        return orchestrator.create_panel(
            code or f"PNL-{next(codes):04d}",
            municipality_ref,
            intake_date,
            TEST_ACTOR_ID,
            base_rate=base_rate,
        )

    return _create
