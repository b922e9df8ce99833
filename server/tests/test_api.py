"""Test the per-channel race HTTP API."""

from unittest.mock import AsyncMock, patch

import pytest
from httpx import ASGITransport, AsyncClient

from duck_racing import messages
from duck_racing.errors import Busy, StoreUnavailable
from duck_racing.main import app

BASE = "/api/channels/chan-1"


async def _start(client, name: str = "derby", spots: int = 3):
    resp = await client.post(f"{BASE}/races", json={"name": name, "total_spots": spots})
    assert resp.status_code == 201
    return resp.json()


async def _claim(client, holder: str, count: int, **extra):
    return await client.post(
        f"{BASE}/claims",
        json={"acting_holder": holder, "display_name": holder.title(), "count": count, **extra},
    )


# =============================================================================
# Auth and health
# =============================================================================


@pytest.mark.asyncio
async def test_health():
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


@pytest.mark.asyncio
async def test_requires_api_token(client):
    resp = await client.get(f"{BASE}/races/latest", headers={"Authorization": ""})
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_rejects_wrong_api_token(client):
    resp = await client.get(f"{BASE}/races/latest", headers={"Authorization": "Bearer nope"})
    assert resp.status_code == 401
    assert resp.json()["detail"] == "Invalid API token"


# =============================================================================
# Races
# =============================================================================


@pytest.mark.asyncio
async def test_start_and_get_race(client):
    created = await _start(client, "Derby", 4)
    assert created["name"] == "derby"
    assert created["race_number"] == 1
    assert created["state"] == "open"
    assert created["remaining_spots"] == 4

    resp = await client.get(f"{BASE}/races/DERBY")
    assert resp.status_code == 200
    assert resp.json()["id"] == created["id"]

    latest = await client.get(f"{BASE}/races/latest")
    assert latest.json()["id"] == created["id"]


@pytest.mark.asyncio
async def test_duplicate_race_conflict(client):
    await _start(client)
    resp = await client.post(f"{BASE}/races", json={"name": "derby", "total_spots": 2})
    assert resp.status_code == 409
    body = resp.json()
    assert body["kind"] == "conflict"
    assert body["retryable"] is False


@pytest.mark.asyncio
async def test_invalid_capacity(client):
    resp = await client.post(f"{BASE}/races", json={"name": "derby", "total_spots": 0})
    assert resp.status_code == 400
    assert resp.json()["kind"] == "invalid_argument"


@pytest.mark.asyncio
async def test_unknown_race(client):
    assert (await client.get(f"{BASE}/races/latest")).status_code == 404
    resp = await client.get(f"{BASE}/races/nope")
    assert resp.status_code == 404
    assert resp.json()["kind"] == "not_found"


@pytest.mark.asyncio
async def test_cancel_force_close_and_reset(client):
    await _start(client, "derby", 3)
    with patch("duck_racing.api.races.fire_announcements") as mock_fire:
        closed = await client.post(f"{BASE}/races/derby/force-close")
    assert closed.status_code == 200
    assert closed.json()["race"]["state"] == "closed"
    assert closed.json()["became_ready"] is False
    mock_fire.assert_not_called()

    # Only open races can be cancelled
    assert (await client.post(f"{BASE}/races/derby/cancel")).status_code == 404

    reset = await client.post(f"{BASE}/races/derby/reset")
    assert reset.json()["state"] == "open"
    assert reset.json()["remaining_spots"] == 3

    cancelled = await client.post(f"{BASE}/races/derby/cancel")
    assert cancelled.json()["state"] == "closed"


# =============================================================================
# Claims
# =============================================================================


@pytest.mark.asyncio
async def test_claim_clamps_and_announces_full(client):
    await _start(client, spots=3)
    with patch("duck_racing.api.races.fire_announcements") as mock_fire:
        first = await _claim(client, "alice", 2)
        second = await _claim(client, "bob", 5)

    assert first.status_code == 200
    assert first.json()["remaining_spots"] == 1
    body = second.json()
    assert body["actual_claimed"] == 1
    assert body["was_limited"] is True
    assert body["just_closed"] is True
    assert body["race"]["state"] == "closed"
    mock_fire.assert_called_once_with("chan-1", [messages.RACE_FULL_ANNOUNCEMENT])


@pytest.mark.asyncio
async def test_closing_claim_of_covered_race_announces_ready(client):
    await _start(client, spots=3)
    await _claim(client, "alice", 1)
    await client.post(f"{BASE}/vouches", json={"vouched_by": "carol", "participant": "alice"})

    with patch("duck_racing.api.races.fire_announcements") as mock_fire:
        resp = await _claim(client, "alice", 2)

    body = resp.json()
    assert body["just_closed"] is True
    assert body["became_ready"] is True
    assert body["race"]["ready_notified"] is True
    mock_fire.assert_called_once_with(
        "chan-1", [messages.RACE_FULL_ANNOUNCEMENT, messages.RACE_READY_ANNOUNCEMENT]
    )


@pytest.mark.asyncio
async def test_claim_into_closed_race(client):
    await _start(client, spots=1)
    await _claim(client, "alice", 1)
    resp = await _claim(client, "bob", 1)
    assert resp.status_code == 409
    assert resp.json()["kind"] == "race_full"


@pytest.mark.asyncio
async def test_claim_without_race(client):
    resp = await _claim(client, "alice", 1)
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_claim_for_retired_holder(client):
    await _start(client)
    resp = await _claim(client, "alice", 1, target_holder="retired-1")
    assert resp.status_code == 403
    assert resp.json()["kind"] == "holder_ineligible"


@pytest.mark.asyncio
async def test_claim_all_remaining(client):
    await _start(client, spots=3)
    resp = await client.post(
        f"{BASE}/claims",
        json={"acting_holder": "alice", "display_name": "Alice", "all_remaining": True},
    )
    assert resp.json()["actual_claimed"] == 3


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload",
    [
        {"acting_holder": "alice", "display_name": "Alice"},
        {"acting_holder": "alice", "display_name": "Alice", "count": 1, "all_remaining": True},
        {
            "acting_holder": "alice",
            "target_holder": "bob",
            "display_name": "Bob",
            "all_remaining": True,
        },
    ],
)
async def test_claim_request_validation(client, payload):
    resp = await client.post(f"{BASE}/claims", json=payload)
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_claim_busy_maps_to_429(client, services):
    await _start(client)
    mock_claim = AsyncMock(side_effect=Busy())
    with patch.object(services.coordinator, "claim_spots", new=mock_claim):
        resp = await _claim(client, "alice", 1)
    assert resp.status_code == 429
    assert resp.json()["kind"] == "busy"
    assert resp.headers["Retry-After"] == "1"


@pytest.mark.asyncio
async def test_store_unavailable_maps_to_503(client, services):
    await _start(client)
    mock_claim = AsyncMock(side_effect=StoreUnavailable())
    with patch.object(services.coordinator, "claim_spots", new=mock_claim):
        resp = await _claim(client, "alice", 1)
    assert resp.status_code == 503
    assert resp.json()["retryable"] is True


@pytest.mark.asyncio
async def test_remove_holder(client):
    await _start(client, spots=2)
    await _claim(client, "alice", 2)

    resp = await client.delete(f"{BASE}/holders/alice")
    assert resp.status_code == 200
    body = resp.json()
    assert body["spots_freed"] == 2
    assert body["reopened"] is True

    again = await client.delete(f"{BASE}/holders/alice")
    assert again.status_code == 404


# =============================================================================
# Sips, vouches and queries
# =============================================================================


@pytest.mark.asyncio
async def test_sip_vouch_and_ready_announcement(client):
    await _start(client, spots=3)
    await _claim(client, "alice", 2)
    await _claim(client, "bob", 1)

    with patch("duck_racing.api.races.fire_announcements") as mock_fire:
        sip = await client.post(f"{BASE}/sips", json={"participant": "alice"})
        vouch = await client.post(
            f"{BASE}/vouches", json={"vouched_by": "carol", "participant": "bob"}
        )

    assert sip.json()["became_ready"] is False
    assert vouch.json()["became_ready"] is True
    assert vouch.json()["race"]["ready_notified"] is True
    mock_fire.assert_called_once_with("chan-1", [messages.RACE_READY_ANNOUNCEMENT])

    dup = await client.post(f"{BASE}/sips", json={"participant": "alice"})
    assert dup.status_code == 409


@pytest.mark.asyncio
async def test_self_vouch_rejected(client):
    await _start(client)
    await _claim(client, "alice", 1)
    resp = await client.post(
        f"{BASE}/vouches", json={"vouched_by": "alice", "participant": "alice"}
    )
    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_status_entries_and_uncovered(client):
    await _start(client, spots=3)
    await _claim(client, "alice", 2)
    await _claim(client, "bob", 1)
    await client.post(f"{BASE}/sips", json={"participant": "bob"})

    status = (await client.get(f"{BASE}/races/derby/status")).json()
    assert status["remaining_spots"] == 0
    assert [(h["holder_id"], h["spots"], h["sipped"]) for h in status["holders"]] == [
        ("alice", 2, False),
        ("bob", 1, True),
    ]

    entries = (await client.get(f"{BASE}/races/derby/entries")).json()
    assert [e["holder_id"] for e in entries] == ["alice", "alice", "bob"]

    uncovered = (await client.get(f"{BASE}/races/derby/uncovered")).json()
    assert uncovered["holder_ids"] == ["alice"]


# =============================================================================
# Admin
# =============================================================================


@pytest.mark.asyncio
async def test_admin_wipe(client):
    await _start(client)
    resp = await client.delete("/api/admin/data")
    assert resp.status_code == 200
    assert resp.json() == {"status": "wiped"}
    assert (await client.get(f"{BASE}/races/latest")).status_code == 404
