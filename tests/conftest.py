"""Pytest configuration and fixtures for API and workflow tests."""
import os
import re

# Set test env BEFORE any imports that use config
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["INITIAL_ADMIN_PASSWORD"] = "testpass123"
os.environ["INITIAL_ADMIN_USERNAME"] = "admin"
os.environ["RESEND_API_KEY"] = ""

from datetime import timedelta

import pytest
from httpx import ASGITransport, AsyncClient

from quizreg.models import Event, Registration
from quizreg.models.base import async_session_factory, drop_db, init_db, utcnow
from quizreg.services import catalog
from quizreg.services.notifications import Notifier
from quizreg.services.workflow import RegistrationWorkflow
from web.api.deps import get_notifier, get_workflow
from web.api.main import app


class RecordingNotifier(Notifier):
    """Keeps (kind, team_name, status) for every notification; can be told to fail."""

    def __init__(self):
        self.sent = []
        self.fail = False

    async def _record(self, kind, registration, event):
        if self.fail:
            raise RuntimeError("mail server down")
        self.sent.append((kind, registration.team_name, registration.status.value))

    async def notify_registration_outcome(self, registration, event):
        await self._record("outcome", registration, event)

    async def notify_promotion(self, registration, event):
        await self._record("promotion", registration, event)

    async def send_reminder(self, registration, event):
        await self._record("reminder", registration, event)


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
async def _init_db():
    """Fresh tables for every test (ASGI lifespan doesn't run with httpx)."""
    await drop_db()
    await init_db()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def workflow(notifier):
    """A workflow per test, also served to the API through dependency overrides."""
    wf = RegistrationWorkflow(async_session_factory, notifier)
    app.dependency_overrides[get_workflow] = lambda: wf
    app.dependency_overrides[get_notifier] = lambda: notifier
    yield wf
    app.dependency_overrides.clear()


@pytest.fixture
async def client(workflow):
    """Async HTTP client for testing the API."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest.fixture
async def auth_headers(client):
    """Login as admin and return Authorization headers for protected endpoints."""
    r = await client.post(
        "/api/auth/login",
        json={"username": "admin", "password": "testpass123"},
    )
    assert r.status_code == 200, f"Login failed: {r.text}"
    token = r.json()["access_token"]
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def make_event():
    """Create an event directly in the database and return its id."""

    async def _make(**overrides) -> int:
        data = {
            "title": "Quiz Night",
            "description": "General knowledge",
            "date": utcnow() + timedelta(days=7),
            "start_time": "19:00",
            "duration": 120,
            "max_teams": 2,
            "min_team_size": 2,
            "max_team_size": 4,
            "location": "The Crown",
            "price": 0,
        }
        data.update(overrides)
        async with async_session_factory() as session:
            event = await catalog.create_event(session, data)
            await session.commit()
            return event.id

    return _make


def team(name: str, size: int = 2, **overrides) -> dict:
    """Registration fields for a team."""
    mailbox = re.sub(r"\W+", "", name.lower())
    fields = {
        "team_name": name,
        "team_size": size,
        "captain_first_name": "Anna",
        "captain_last_name": "Petrova",
        "captain_email": f"{mailbox}@quizteams.org",
        "captain_phone": "+375291234567",
    }
    fields.update(overrides)
    return fields


async def load_event(event_id: int) -> Event:
    async with async_session_factory() as session:
        return await session.get(Event, event_id)


async def load_registration(registration_id: int) -> Registration:
    async with async_session_factory() as session:
        return await session.get(Registration, registration_id)
