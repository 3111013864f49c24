"""Integration tests for the interview API endpoints.

Uses the in-memory doubles wired onto app.state and an httpx AsyncClient
against a minimal app with auth overridden. Covers scheduling (clean,
degraded, invalid input), listing, reading, transitions including 409s,
scorecard completion, and 503 when services are not initialized.
"""

from __future__ import annotations

import uuid

import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from src.app.api.deps import get_current_user
from src.app.api.v1.interviews import register_exception_handlers, router
from src.app.core.security import CurrentUser
from src.app.interviews.errors import ProviderError, ProviderErrorKind
from src.app.interviews.schemas import MeetingProviderId
from tests.doubles import APPLICATION_ID, ORG_ID, Harness, StaticProvider

BASE = "/v1/interviews"


def _make_app() -> FastAPI:
    app = FastAPI()
    app.include_router(router, prefix="/v1")
    register_exception_handlers(app)
    return app


def _mock_get_current_user() -> CurrentUser:
    return CurrentUser(
        user_id="recruiter-1",
        org_id=ORG_ID,
        email="recruiter@acme.com",
        name="Rita Recruiter",
        role="recruiter",
    )


def _body(**overrides) -> dict:
    body = {
        "application_id": str(APPLICATION_ID),
        "title": "Technical Interview",
        "scheduled_date": "2026-03-02",
        "scheduled_time": "10:00",
        "timezone": "Asia/Riyadh",
        "duration_minutes": 60,
        "meeting_provider": "zoom",
        "interviewer_ids": ["user-a"],
    }
    body.update(overrides)
    return body


def _wire(app: FastAPI, harness: Harness) -> None:
    app.state.orchestrator = harness.orchestrator
    app.state.lifecycle_manager = harness.lifecycle
    app.state.interview_repository = harness.repository


@pytest_asyncio.fixture
async def client_and_harness(harness):
    app = _make_app()
    app.dependency_overrides[get_current_user] = _mock_get_current_user
    _wire(app, harness)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client, harness
    await harness.dispatcher.drain()


# ── Scheduling ───────────────────────────────────────────────────────────────


async def test_schedule_interview(client_and_harness):
    """POST /v1/interviews -> 201 with interview and clean outcome."""
    client, harness = client_and_harness

    response = await client.post(BASE, json=_body())

    assert response.status_code == 201
    data = response.json()
    assert data["interview"]["status"] == "scheduled"
    assert data["interview"]["meeting_link"] == "https://zoom.us/j/987654321"
    assert data["interview"]["org_id"] == ORG_ID
    assert data["interview"]["created_by"] == "recruiter-1"
    assert data["outcome"]["warnings"] == []
    assert data["outcome"]["calendar_sync_status"] == "skipped"

    await harness.dispatcher.drain()
    assert harness.activity_log.entries[0]["user_id"] == "recruiter-1"


async def test_schedule_with_provider_failure_is_partial_success():
    """Provider failure -> 201 with a warning, never an error status."""
    failing = Harness(
        providers=[
            StaticProvider(
                MeetingProviderId.ZOOM,
                error=ProviderError(ProviderErrorKind.RATE_LIMITED, "zoom", "HTTP 429"),
            )
        ]
    )
    app = _make_app()
    app.dependency_overrides[get_current_user] = _mock_get_current_user
    _wire(app, failing)

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.post(BASE, json=_body())

    assert response.status_code == 201
    data = response.json()
    assert data["interview"]["meeting_link"] is None
    assert [w["code"] for w in data["outcome"]["warnings"]] == ["provider_failed"]
    await failing.dispatcher.drain()


async def test_schedule_invalid_guest_returns_422(client_and_harness):
    client, harness = client_and_harness

    response = await client.post(BASE, json=_body(external_guests=["nope"]))

    assert response.status_code == 422
    assert response.json() == {
        "reason": "invalid_email",
        "value": "nope",
        "detail": "Invalid guest email address: nope",
    }
    assert harness.repository.all() == []


async def test_schedule_missing_title_returns_422(client_and_harness):
    client, harness = client_and_harness
    body = _body()
    del body["title"]

    response = await client.post(BASE, json=body)

    assert response.status_code == 422
    assert harness.repository.all() == []


async def test_schedule_unknown_timezone_returns_422(client_and_harness):
    client, _ = client_and_harness

    response = await client.post(BASE, json=_body(timezone="Mars/Olympus"))

    assert response.status_code == 422


async def test_schedule_non_positive_duration_returns_422(client_and_harness):
    client, _ = client_and_harness

    response = await client.post(BASE, json=_body(duration_minutes=0))

    assert response.status_code == 422


# ── Reading ──────────────────────────────────────────────────────────────────


async def test_get_and_list_interviews(client_and_harness):
    client, _ = client_and_harness
    created = (await client.post(BASE, json=_body())).json()["interview"]
    await client.post(BASE, json=_body(application_id=str(uuid.uuid4())))

    single = await client.get(f"{BASE}/{created['id']}")
    assert single.status_code == 200
    assert single.json()["id"] == created["id"]

    all_rows = await client.get(BASE)
    assert len(all_rows.json()) == 2

    filtered = await client.get(BASE, params={"application_id": str(APPLICATION_ID)})
    assert [row["id"] for row in filtered.json()] == [created["id"]]

    by_status = await client.get(BASE, params={"status": "cancelled"})
    assert by_status.json() == []


async def test_get_unknown_interview_returns_404(client_and_harness):
    client, _ = client_and_harness

    response = await client.get(f"{BASE}/{uuid.uuid4()}")

    assert response.status_code == 404


# ── Transitions ──────────────────────────────────────────────────────────────


async def test_transition_to_cancelled(client_and_harness):
    client, _ = client_and_harness
    created = (await client.post(BASE, json=_body())).json()["interview"]

    response = await client.post(
        f"{BASE}/{created['id']}/transition",
        json={"target_status": "cancelled", "expected_status": "scheduled"},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "cancelled"
    assert data["cancelled_at"] is not None


async def test_transition_from_terminal_returns_409(client_and_harness):
    client, _ = client_and_harness
    created = (await client.post(BASE, json=_body())).json()["interview"]
    await client.post(f"{BASE}/{created['id']}/transition", json={"target_status": "completed"})

    response = await client.post(f"{BASE}/{created['id']}/transition", json={"target_status": "confirmed"})

    assert response.status_code == 409
    body = response.json()
    assert body["from"] == "completed"
    assert body["to"] == "confirmed"


async def test_transition_with_stale_expected_status_returns_409(client_and_harness):
    client, _ = client_and_harness
    created = (await client.post(BASE, json=_body())).json()["interview"]
    await client.post(f"{BASE}/{created['id']}/transition", json={"target_status": "confirmed"})

    response = await client.post(
        f"{BASE}/{created['id']}/transition",
        json={"target_status": "no_show", "expected_status": "scheduled"},
    )

    assert response.status_code == 409
    assert response.json()["from"] == "confirmed"


async def test_transition_unknown_interview_returns_404(client_and_harness):
    client, _ = client_and_harness

    response = await client.post(f"{BASE}/{uuid.uuid4()}/transition", json={"target_status": "confirmed"})

    assert response.status_code == 404


# ── Scorecard Completion ─────────────────────────────────────────────────────


async def test_scorecard_completion(client_and_harness):
    client, harness = client_and_harness
    ids = []
    for _ in range(3):
        created = (await client.post(BASE, json=_body())).json()["interview"]
        await client.post(f"{BASE}/{created['id']}/transition", json={"target_status": "completed"})
        ids.append(created["id"])
    harness.repository.scorecards[(ORG_ID, "user-a")] = {ids[1]}

    response = await client.get(f"{BASE}/scorecard-completion/user-a")

    assert response.status_code == 200
    data = response.json()
    assert data["interviewer_id"] == "user-a"
    assert data["submitted"] == 1
    assert data["pending"] == 2
    assert sorted(data["pending_interview_ids"]) == sorted([ids[0], ids[2]])


# ── Auth / Wiring ────────────────────────────────────────────────────────────


async def test_requires_bearer_token():
    app = _make_app()

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.get(BASE)

    assert response.status_code == 401


async def test_api_503_when_not_initialized():
    """app.state services = None -> 503."""
    app = _make_app()
    app.dependency_overrides[get_current_user] = _mock_get_current_user
    app.state.orchestrator = None
    app.state.interview_repository = None

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.get(BASE)
        assert response.status_code == 503
        assert "not initialized" in response.json()["detail"]

        response = await client.post(BASE, json=_body())
        assert response.status_code == 503
