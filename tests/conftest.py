"""Shared test fixtures for all test modules."""

import contextlib
import json
from typing import Any

import httpx
import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from estate_settlement.core import database as db_module
from estate_settlement.core.config import settings
from estate_settlement.core.database import Base
from estate_settlement.models import SettlementInvoice, SettlementRun  # noqa: F401
from estate_settlement.services.assignment_store import assignment_store
from estate_settlement.services.backend_client import BackendClient

# Create an in-memory SQLite engine with StaticPool so all connections
# share the same database state and there are no file-locking issues.
_test_engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
_TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=_test_engine)


@pytest.fixture(autouse=True)
def setup_database():
    """Create tables before each test and truncate all data after.

    Patches the module-level engine and session factory so all application
    code uses the in-memory test database.
    """
    original_engine = db_module.engine
    original_session = db_module.SessionLocal
    db_module.engine = _test_engine
    db_module.SessionLocal = _TestSessionLocal

    Base.metadata.create_all(bind=_test_engine)

    yield
    with _test_engine.connect() as conn:
        conn.execute(text("PRAGMA foreign_keys = OFF"))
        for table in reversed(Base.metadata.sorted_tables):
            with contextlib.suppress(OperationalError):
                conn.execute(table.delete())
        conn.execute(text("PRAGMA foreign_keys = ON"))
        conn.commit()

    db_module.engine = original_engine
    db_module.SessionLocal = original_session


@pytest.fixture(autouse=True)
def fast_retries(monkeypatch):
    """No real sleeping between retries, and no SMTP unless a test sets it."""
    monkeypatch.setattr(settings, "EMAIL_RETRY_BACKOFF_SECONDS", 0.0)
    monkeypatch.setattr(settings, "PAYMENT_RECORD_RETRY_BACKOFF_SECONDS", 0.0)
    monkeypatch.setattr(settings, "SMTP_HOST", "")


@pytest.fixture(autouse=True)
def reset_assignment_store():
    assignment_store.invalidate()
    yield
    assignment_store.invalidate()


BACKEND_URL = "http://backend.test"

AGENT_ID = "agent-0001"
PROPERTY_ID = "prop-0001"
SELLER_ID = "64f1c2ab9e77d1"


def property_payload(**overrides: Any) -> dict[str, Any]:
    """A property as the marketplace backend returns it."""
    payload: dict[str, Any] = {
        "_id": PROPERTY_ID,
        "title": "12 Harbour Street",
        "address": {"street": "12 Harbour Street", "city": "Sydney", "state": "NSW"},
        "price": 1000000,
        "status": "active",
        "salesStatus": "unconditional",
        "seller": {"_id": SELLER_ID, "name": "Sam Seller", "email": "sam@example.com"},
    }
    payload.update(overrides)
    return payload


class FakeBackend:
    """Canned marketplace responses routed by method and path.

    Each route holds a queue of ``(status, json)`` tuples or exceptions; the
    last entry repeats once the queue is drained. Unrouted calls get a 404.
    """

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], list[Any]] = {}
        self.requests: list[httpx.Request] = []

    def on(self, method: str, path: str, *responses: Any) -> None:
        self.routes[(method, path)] = list(responses)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queue = self.routes.get((request.method, request.url.path))
        if not queue:
            return httpx.Response(404, json={"message": "Not found"})
        response = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(response, Exception):
            raise response
        status, body = response
        return httpx.Response(status, json=body)

    def client(self) -> BackendClient:
        return BackendClient(
            base_url=BACKEND_URL,
            api_url=BACKEND_URL,
            transport=httpx.MockTransport(self.handler),
        )

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == path]

    @staticmethod
    def body(request: httpx.Request) -> Any:
        return json.loads(request.content)


@pytest.fixture
def fake_backend() -> FakeBackend:
    return FakeBackend()
