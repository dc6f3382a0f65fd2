"""
Pytest fixtures for the review workflow test suite.

Provides:
- Database sessions (SQLite file database by default, PostgreSQL via DATABASE_URL)
- Reference data factories (rooms, ministries, fiscal years)
- Draft / orchestrator service fixtures wired to a deterministic clock
- Recording notification dispatchers

Environment Variables:
- DATABASE_URL: SQLAlchemy URL.  If not set, a temporary SQLite file is used.
"""

import json
import logging
import os
from collections.abc import Mapping
from datetime import date, datetime, timedelta, timezone
from io import StringIO
from typing import Any, Generator
from uuid import UUID, uuid4

import pytest
from sqlalchemy.orm import Session

from review_config import get_active_config
from review_kernel.db.base import Base
from review_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from review_kernel.domain.clock import DeterministicClock
from review_kernel.exceptions import NotificationDeliveryError
from review_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from review_kernel.services.auditor_service import AuditorService
from review_modules.reference.orm import FiscalYearModel, MinistryModel, RoomModel
from review_services.drafts import DraftService
from review_services.notifications import DeliveryReceipt
from review_services.review_orchestrator import ReviewOrchestrator, all_notification_templates

# Organization every fixture-created record belongs to
TEST_ORG_ID = uuid4()

REQUESTER_ID = uuid4()
ADMIN_ID = uuid4()
LEADER_ID = uuid4()
TREASURY_ID = uuid4()
FINANCE_ID = uuid4()

REQUESTER_EMAIL = "requester@example.org"
LEADER_EMAIL = "leader@example.org"


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG, stream=StringIO())
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
    Capture review_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, orchestrator):
            orchestrator.review(...)
            logs = captured_logs()
            assert any(r["message"] == "review_transition" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("review_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "postgres: mark test as requiring PostgreSQL"
    )
    config.addinivalue_line(
        "markers", "slow_locks: mark test as simulating concurrent reviewers"
    )


# =============================================================================
# Database infrastructure
# =============================================================================


def get_database_url(tmp_dir) -> str:
    """Database URL from the environment, or a SQLite file under ``tmp_dir``."""
    return os.environ.get("DATABASE_URL", f"sqlite:///{tmp_dir / 'review_test.db'}")


@pytest.fixture(scope="session")
def db_engine(tmp_path_factory):
    """Single engine for the entire test session."""
    url = get_database_url(tmp_path_factory.mktemp("db"))
    eng = init_engine_from_url(url, echo=False)
    yield eng
    reset_engine()


@pytest.fixture(scope="session")
def db_tables(db_engine):
    """Create all tables once per session, drop once at end."""
    drop_tables()
    create_tables()
    yield
    drop_tables()


def _clear_all_tables(engine):
    """Delete every row, children first.  Core DELETE bypasses ORM listeners."""
    with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())


@pytest.fixture(scope="function")
def session(db_engine, db_tables) -> Generator[Session, None, None]:
    """
    Provide a session that performs real commits.

    Services own their transactions, so isolation comes from clearing all
    tables at teardown rather than from an outer rollback.
    """
    sess = get_session()
    try:
        yield sess
    finally:
        sess.rollback()
        sess.close()
        _clear_all_tables(db_engine)


@pytest.fixture(scope="function")
def session_factory(db_engine, db_tables):
    """
    Factory for extra sessions (simulated concurrent reviewers).

    Every created session is closed at teardown.
    """
    factory = get_session_factory()
    created: list[Session] = []

    def _make() -> Session:
        s = factory()
        created.append(s)
        return s

    yield _make

    for s in created:
        s.rollback()
        s.close()


# =============================================================================
# Clock and identity fixtures
# =============================================================================


@pytest.fixture
def deterministic_clock():
    """Provide a deterministic clock for testing."""
    return DeterministicClock()


@pytest.fixture
def org_id() -> UUID:
    return TEST_ORG_ID


@pytest.fixture
def requester_id() -> UUID:
    return REQUESTER_ID


@pytest.fixture
def admin_id() -> UUID:
    return ADMIN_ID


# =============================================================================
# Notification dispatchers
# =============================================================================


class RecordingDispatcher:
    """Dispatcher that records every send and always succeeds."""

    def __init__(self):
        self.sent: list[tuple[str, str, dict]] = []

    def send(self, recipient_email: str, template: str, fields: Mapping[str, Any]) -> DeliveryReceipt:
        self.sent.append((recipient_email, template, dict(fields)))
        return DeliveryReceipt(success=True)

    @property
    def templates(self) -> list[str]:
        return [t for _, t, _ in self.sent]


class FailingDispatcher(RecordingDispatcher):
    """Dispatcher that fails until ``recover()`` is called."""

    def __init__(self, raise_error: bool = False):
        super().__init__()
        self.failing = True
        self.raise_error = raise_error
        self.attempts = 0

    def recover(self) -> None:
        self.failing = False

    def send(self, recipient_email: str, template: str, fields: Mapping[str, Any]) -> DeliveryReceipt:
        self.attempts += 1
        if self.failing:
            if self.raise_error:
                raise NotificationDeliveryError(recipient_email, template, "smtp unreachable")
            return DeliveryReceipt(success=False, error="mailbox unavailable")
        return super().send(recipient_email, template, fields)


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture
def failing_dispatcher() -> FailingDispatcher:
    return FailingDispatcher()


@pytest.fixture
def raising_dispatcher() -> FailingDispatcher:
    return FailingDispatcher(raise_error=True)


# =============================================================================
# Configuration and service fixtures
# =============================================================================


@pytest.fixture(scope="session")
def review_config():
    """The default configuration set, validated against every workflow template."""
    return get_active_config(required_templates=all_notification_templates())


@pytest.fixture
def auditor_service(session: Session, deterministic_clock):
    """Provide an AuditorService instance."""
    return AuditorService(session, deterministic_clock)


@pytest.fixture
def drafts(session: Session, org_id, deterministic_clock) -> DraftService:
    return DraftService(session, org_id, deterministic_clock)


@pytest.fixture
def make_orchestrator(session: Session, org_id, review_config, deterministic_clock):
    """Factory for orchestrators with a chosen dispatcher / session."""

    def _make(dispatcher, sess: Session | None = None, organization_id=None) -> ReviewOrchestrator:
        return ReviewOrchestrator(
            sess or session,
            organization_id or org_id,
            dispatcher,
            config=review_config,
            clock=deterministic_clock,
        )

    return _make


@pytest.fixture
def orchestrator(make_orchestrator, dispatcher) -> ReviewOrchestrator:
    return make_orchestrator(dispatcher)


# =============================================================================
# Reference data fixtures
# =============================================================================


@pytest.fixture
def room(session: Session, org_id) -> RoomModel:
    row = RoomModel(organization_id=org_id, name="Fellowship Hall", capacity=120)
    session.add(row)
    session.commit()
    return row


@pytest.fixture
def ministry(session: Session, org_id) -> MinistryModel:
    row = MinistryModel(
        organization_id=org_id,
        name="Youth Ministry",
        leader_id=LEADER_ID,
        leader_email=LEADER_EMAIL,
    )
    session.add(row)
    session.commit()
    return row


@pytest.fixture
def fiscal_year(session: Session, org_id) -> FiscalYearModel:
    row = FiscalYearModel(
        organization_id=org_id,
        name="FY2024",
        starts_on=date(2024, 1, 1),
        ends_on=date(2024, 12, 31),
    )
    session.add(row)
    session.commit()
    return row


# =============================================================================
# Request factories
# =============================================================================


EVENT_START = datetime(2024, 3, 3, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def create_event(drafts: DraftService, room):
    """Factory fixture for event drafts."""

    def _create(title: str = "Sunday Brunch", offset_days: int = 0, **kwargs):
        starts_at = EVENT_START + timedelta(days=offset_days)
        kwargs.setdefault("requester_email", REQUESTER_EMAIL)
        return drafts.create_event_request(
            REQUESTER_ID,
            "Pat Requester",
            title,
            starts_at,
            starts_at + timedelta(hours=2),
            room_id=room.id,
            **kwargs,
        )

    return _create


@pytest.fixture
def create_series(drafts: DraftService, room):
    """Factory fixture for a weekly recurring series (root first)."""

    def _create(count: int = 3, title: str = "Bible Study"):
        occurrences = [
            (EVENT_START + timedelta(weeks=i), EVENT_START + timedelta(weeks=i, hours=1))
            for i in range(count)
        ]
        return drafts.create_event_series(
            REQUESTER_ID,
            "Pat Requester",
            title,
            occurrences,
            room_id=room.id,
            requester_email=REQUESTER_EMAIL,
        )

    return _create


@pytest.fixture
def create_expense(drafts: DraftService, ministry):
    """Factory fixture for expense drafts."""

    def _create(amount="250.00", title: str = "Retreat supplies", **kwargs):
        kwargs.setdefault("requester_email", REQUESTER_EMAIL)
        return drafts.create_expense_request(
            REQUESTER_ID,
            "Pat Requester",
            ministry.id,
            title,
            amount,
            "Snacks and craft materials",
            **kwargs,
        )

    return _create


@pytest.fixture
def create_allocation(drafts: DraftService, ministry, fiscal_year):
    """Factory fixture for quarterly allocation drafts totalling 1000."""

    def _create(breakdown=None, period_type: str = "quarterly", **kwargs):
        if breakdown is None and period_type != "annual":
            breakdown = [("Q1", "250"), ("Q2", "250"), ("Q3", "250"), ("Q4", "250")]
        kwargs.setdefault("requester_email", REQUESTER_EMAIL)
        return drafts.create_allocation_request(
            REQUESTER_ID,
            "Pat Requester",
            fiscal_year.id,
            ministry.id,
            period_type,
            period_breakdown=breakdown or (),
            **kwargs,
        )

    return _create
