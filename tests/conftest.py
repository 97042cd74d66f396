"""
Pytest configuration for FloWorx tests

Every test gets its own SQLite file (via FLOWORX_DB_PATH), fresh telemetry
counters and an empty token cache. API tests run against ``create_app()``
with authentication and the Gmail label provider swapped out through
FastAPI dependency overrides.
"""

from __future__ import annotations

from typing import Any

import pytest
from fastapi.testclient import TestClient

from floworx.api.app import create_app
from floworx.api.dependencies import get_label_provider
from floworx.api.middleware.user_auth import AuthenticatedUser, clear_token_cache, get_current_user
from floworx.config import CSRF_HEADER_NAME, DEFAULT_TEMPLATES_DIR, Settings
from floworx.infrastructure.database import init_database, reset_pool
from floworx.mailbox.provider import MailboxProviderError
from floworx.observability import telemetry

TEST_USER = AuthenticatedUser(id="user-1", email="owner@acmehvac.com", name="Owner")
OTHER_USER = AuthenticatedUser(id="user-2", email="someone@elsewhere.com", name="Someone")

SYSTEM_LABELS = [
    {"id": "INBOX", "name": "INBOX", "type": "system"},
    {"id": "SENT", "name": "SENT", "type": "system"},
]


class FakeLabelProvider:
    """
    In-memory Gmail label store

    Names are unique case-insensitively, like Gmail. Creating a name listed in
    ``fail_on`` raises MailboxProviderError.
    """

    def __init__(self, labels: list[dict[str, Any]] | None = None, fail_on: tuple[str, ...] = ()):
        self.labels = [dict(label) for label in (labels if labels is not None else SYSTEM_LABELS)]
        self.fail_on = {name.lower() for name in fail_on}
        self.create_calls: list[str] = []
        self.list_calls = 0
        self._next_id = 1

    def list_labels(self) -> list[dict[str, Any]]:
        self.list_calls += 1
        return [dict(label) for label in self.labels]

    def create_label(self, name: str, color: str | None = None) -> dict[str, Any]:
        self.create_calls.append(name)

        if name.lower() in self.fail_on:
            raise MailboxProviderError(f"Gmail label create failed: {name}", status=500)
        if any(label["name"].lower() == name.lower() for label in self.labels):
            raise MailboxProviderError("Label name exists or conflicts", status=409, code="LABEL_EXISTS")

        label: dict[str, Any] = {"id": f"Label_{self._next_id}", "name": name, "type": "user"}
        if color:
            label["color"] = {"backgroundColor": color, "textColor": "#ffffff"}
        self._next_id += 1
        self.labels.append(label)
        return dict(label)

    def user_label_names(self) -> list[str]:
        return [label["name"] for label in self.labels if label.get("type", "user") == "user"]


@pytest.fixture(autouse=True)
def temp_db(tmp_path, monkeypatch):
    """Fresh database, counters and token cache for every test."""
    db_path = tmp_path / "floworx.db"
    monkeypatch.setenv("FLOWORX_DB_PATH", str(db_path))
    reset_pool()
    init_database()
    telemetry.reset()
    clear_token_cache()

    yield db_path

    reset_pool()


@pytest.fixture
def other_user():
    """A signed-in user who owns none of the test clients."""
    return OTHER_USER


@pytest.fixture
def settings():
    return Settings(templates_dir=DEFAULT_TEMPLATES_DIR)


@pytest.fixture
def make_label_provider():
    """Factory for FakeLabelProvider with custom starting labels or failures."""
    return FakeLabelProvider


@pytest.fixture
def label_provider():
    return FakeLabelProvider()


@pytest.fixture
def acme_config() -> dict[str, Any]:
    """A complete, valid config document as the dashboard would send it."""
    return {
        "client": {
            "name": "Acme HVAC",
            "timezone": "America/New_York",
            "website": "https://www.acmehvac.com",
            "phones": ["+1 555 0100"],
            "address": "1 Main St, Springfield",
            "hours": {"mon-fri": "08:00-17:00"},
        },
        "channels": {"email": {"provider": "gmail"}},
        "people": {
            "managers": [{"name": "Alex Smith", "email": "alex@acmehvac.com"}],
            "suppliers": ["Ferguson.com", "@ferguson.com", " johnstone.com "],
        },
        "labelMap": {"service": ["Service"], "SALES": "Sales"},
        "signature": "default",
        "signatureLocked": True,
        # clients can't set these; the server overwrites them
        "ai": {"model": "gpt-5-ultra", "temperature": 1.5, "maxTokens": 99999},
    }


@pytest.fixture
def app(settings, label_provider):
    app = create_app(settings)
    app.dependency_overrides[get_current_user] = lambda: TEST_USER
    app.dependency_overrides[get_label_provider] = lambda: label_provider
    return app


@pytest.fixture
def raw_client(app):
    """Authenticated client without a CSRF token."""
    return TestClient(app)


@pytest.fixture
def client(app):
    """Authenticated client that fetched a CSRF token and echoes it on every request."""
    test_client = TestClient(app)
    token = test_client.get("/api/auth/csrf").json()["csrf"]
    test_client.headers[CSRF_HEADER_NAME] = token
    return test_client
