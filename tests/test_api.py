"""
Integration tests for the REST API endpoints.

The app is built around an in-memory reservation core (see ``conftest``)
injected through ``create_app``, so no Postgres or Redis is needed.  The
PostGIS nearby-station query is replaced by a fake repository and the DB
session dependency yields nothing.
"""

from __future__ import annotations

from unittest.mock import patch

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from bikeshare.api.app import create_app
from bikeshare.api.dependencies import get_db
from bikeshare.api.middleware import limiter
from tests.conftest import wait_until

ALICE = {"X-User-Id": "alice"}
BOB = {"X-User-Id": "bob"}
PAT = {"X-User-Id": "pat", "X-User-Plan": "PREMIUM"}


class _FakeStationRepository:
    """Stands in for the PostGIS radius query; nearest first."""

    def __init__(self, session):
        self.session = session

    async def find_nearby_ids(self, lat, lng, radius_km):
        return ["st-b", "st-a", "st-decommissioned"]


# ── Fixture ───────────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def client(machine):
    limiter.reset()

    async def _no_db():
        yield None

    with patch(
        "bikeshare.api.routes.stations.StationRepository",
        _FakeStationRepository,
    ):
        app = create_app(machine)
        app.dependency_overrides[get_db] = _no_db

        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            yield ac


async def reserve(client: AsyncClient, headers=ALICE, **body):
    payload = {"stationId": "st-a", "durationMinutes": 30}
    payload.update(body)
    return await client.post("/api/v1/reservations", json=payload, headers=headers)


# ── Health / admin ────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    resp = await client.get("/api/v1/admin/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


@pytest.mark.asyncio
async def test_admin_lists_live_reservations(client: AsyncClient):
    await reserve(client)
    await reserve(client, headers=BOB, stationId="st-b")
    resp = await client.get("/api/v1/admin/reservations")
    assert resp.status_code == 200
    assert {r["userId"] for r in resp.json()} == {"alice", "bob"}


# ── Reservations ──────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_create_reservation_returns_201_and_unlocks(client: AsyncClient):
    resp = await reserve(client)
    assert resp.status_code == 201
    data = resp.json()
    assert data["status"] == "ACTIVE"
    assert data["bikeId"] == "std-1"
    assert data["bikeType"] == "STANDARD"
    assert data["startStationId"] == "st-a"
    assert data["planName"] == "Standard"
    assert data["estimate"]["totalCost"] == 4.75
    assert data["costBreakdown"] is None
    assert data["remainingSeconds"] == 30 * 60
    assert data["startTime"] is not None


@pytest.mark.asyncio
async def test_create_without_unlock(client: AsyncClient):
    resp = await reserve(client, unlock=False)
    assert resp.status_code == 201
    assert resp.json()["status"] == "RESERVED"
    assert resp.json()["startTime"] is None


@pytest.mark.asyncio
async def test_premium_rider_first_ride_is_free(client: AsyncClient):
    resp = await reserve(client, headers=PAT, bikeType="ELECTRIC")
    data = resp.json()
    assert data["planName"] == "Premium"
    assert data["bikeId"] == "ele-1"
    assert data["estimate"]["totalCost"] == 0


@pytest.mark.asyncio
async def test_last_bike_taken_returns_409(client: AsyncClient):
    assert (await reserve(client, stationId="st-b")).status_code == 201
    resp = await reserve(client, headers=BOB, stationId="st-b")
    assert resp.status_code == 409
    assert resp.json()["detail"] == "Please choose another bike"


@pytest.mark.asyncio
async def test_specific_bike_already_held_returns_409(client: AsyncClient):
    await reserve(client, bikeId="std-2")
    resp = await reserve(client, headers=BOB, bikeId="std-2")
    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_second_live_reservation_is_rejected(client: AsyncClient):
    await reserve(client)
    resp = await reserve(client, stationId="st-b")
    assert resp.status_code == 422


@pytest.mark.asyncio
@pytest.mark.parametrize("minutes", [0, 24 * 60 + 1])
async def test_invalid_duration(client: AsyncClient, minutes):
    resp = await reserve(client, durationMinutes=minutes)
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_unknown_station_returns_404(client: AsyncClient):
    resp = await reserve(client, stationId="st-nowhere")
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_missing_identity_header(client: AsyncClient):
    resp = await reserve(client, headers={})
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_unknown_plan_header(client: AsyncClient):
    resp = await reserve(client, headers={"X-User-Id": "alice", "X-User-Plan": "GOLD"})
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_get_reservation(client: AsyncClient):
    rid = (await reserve(client)).json()["id"]
    resp = await client.get(f"/api/v1/reservations/{rid}", headers=ALICE)
    assert resp.status_code == 200
    assert resp.json()["id"] == rid


@pytest.mark.asyncio
async def test_other_riders_reservation_is_hidden(client: AsyncClient):
    rid = (await reserve(client)).json()["id"]
    resp = await client.get(f"/api/v1/reservations/{rid}", headers=BOB)
    assert resp.status_code == 404
    resp = await client.post(f"/api/v1/reservations/{rid}/cancel", headers=BOB)
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_get_reservation_not_found(client: AsyncClient):
    resp = await client.get("/api/v1/reservations/9999", headers=ALICE)
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_active_reservation(client: AsyncClient):
    resp = await client.get("/api/v1/reservations/active", headers=ALICE)
    assert resp.status_code == 200
    assert resp.json() is None

    rid = (await reserve(client)).json()["id"]
    resp = await client.get("/api/v1/reservations/active", headers=ALICE)
    assert resp.json()["id"] == rid


@pytest.mark.asyncio
async def test_unlock_then_unlock_again(client: AsyncClient):
    rid = (await reserve(client, unlock=False)).json()["id"]
    resp = await client.post(f"/api/v1/reservations/{rid}/unlock", headers=ALICE)
    assert resp.status_code == 200
    assert resp.json()["status"] == "ACTIVE"
    resp = await client.post(f"/api/v1/reservations/{rid}/unlock", headers=ALICE)
    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_end_settles_on_actual_minutes(client: AsyncClient, clock):
    rid = (await reserve(client)).json()["id"]
    clock.advance(minutes=45)

    resp = await client.post(
        f"/api/v1/reservations/{rid}/end",
        json={"returnStationId": "st-b"},
        headers=ALICE,
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "ENDED"
    assert data["endStationId"] == "st-b"
    assert data["actualMinutes"] == 45
    assert data["estimate"]["totalCost"] == 4.75
    assert data["costBreakdown"] == {
        "baseRate": 1.0,
        "minutesCost": 6.0,
        "discount": 0.0,
        "totalCost": 7.0,
    }
    assert data["remainingSeconds"] is None

    station = (await client.get("/api/v1/stations/st-b")).json()
    assert station["availableStandardBikes"] == 2


@pytest.mark.asyncio
async def test_end_reserved_ride_returns_409(client: AsyncClient):
    rid = (await reserve(client, unlock=False)).json()["id"]
    resp = await client.post(
        f"/api/v1/reservations/{rid}/end",
        json={"returnStationId": "st-b"},
        headers=ALICE,
    )
    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_end_at_full_station_is_internal_error(client: AsyncClient):
    rid = (await reserve(client)).json()["id"]
    resp = await client.post(
        f"/api/v1/reservations/{rid}/end",
        json={"returnStationId": "st-full"},
        headers=ALICE,
    )
    assert resp.status_code == 500
    assert resp.json() == {"detail": "Internal error"}

    resp = await client.get(f"/api/v1/reservations/{rid}", headers=ALICE)
    assert resp.json()["status"] == "ACTIVE"


@pytest.mark.asyncio
async def test_expired_reservation_can_still_be_ended(client: AsyncClient, clock, machine):
    rid = (await reserve(client, durationMinutes=10)).json()["id"]
    clock.advance(minutes=15)
    await wait_until(lambda: machine.registry.get_by_id(rid).overdue)

    resp = await client.get(f"/api/v1/reservations/{rid}", headers=ALICE)
    assert resp.json()["status"] == "EXPIRED"
    assert resp.json()["overdue"] is True
    assert resp.json()["remainingSeconds"] == -5 * 60

    resp = await client.post(
        f"/api/v1/reservations/{rid}/end",
        json={"returnStationId": "st-a"},
        headers=ALICE,
    )
    assert resp.json()["status"] == "ENDED"


@pytest.mark.asyncio
async def test_cancel_reserved(client: AsyncClient):
    rid = (await reserve(client, unlock=False)).json()["id"]
    resp = await client.post(f"/api/v1/reservations/{rid}/cancel", headers=ALICE)
    assert resp.status_code == 200
    assert resp.json()["status"] == "CANCELLED"
    assert resp.json()["costBreakdown"]["totalCost"] == 0

    station = (await client.get("/api/v1/stations/st-a")).json()
    assert station["availableStandardBikes"] == 2


@pytest.mark.asyncio
async def test_cancel_already_cancelled_fails(client: AsyncClient):
    rid = (await reserve(client, unlock=False)).json()["id"]
    await client.post(f"/api/v1/reservations/{rid}/cancel", headers=ALICE)
    resp = await client.post(f"/api/v1/reservations/{rid}/cancel", headers=ALICE)
    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_history_newest_first(client: AsyncClient, clock):
    first = (await reserve(client, unlock=False)).json()["id"]
    await client.post(f"/api/v1/reservations/{first}/cancel", headers=ALICE)
    clock.advance(minutes=1)
    second = (await reserve(client)).json()["id"]
    clock.advance(minutes=10)
    await client.post(
        f"/api/v1/reservations/{second}/end",
        json={"returnStationId": "st-a"},
        headers=ALICE,
    )

    resp = await client.get("/api/v1/reservations/history", headers=ALICE)
    assert resp.status_code == 200
    assert [r["id"] for r in resp.json()] == [second, first]
    resp = await client.get("/api/v1/reservations/history", headers=BOB)
    assert resp.json() == []


# ── Stations ──────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_list_stations(client: AsyncClient):
    resp = await client.get("/api/v1/stations")
    assert resp.status_code == 200
    by_id = {s["id"]: s for s in resp.json()}
    assert set(by_id) == {"st-a", "st-b", "st-full"}
    assert by_id["st-a"]["availableElectricBikes"] == 1
    assert by_id["st-full"]["availableDocks"] == 0
    assert by_id["st-a"]["distanceKm"] is None


@pytest.mark.asyncio
async def test_nearby_stations_keep_query_order(client: AsyncClient):
    resp = await client.get("/api/v1/stations", params={"lat": 10.775, "lng": 106.705})
    assert resp.status_code == 200
    data = resp.json()
    assert [s["id"] for s in data] == ["st-b", "st-a"]
    assert all(s["distanceKm"] < 1.0 for s in data)


@pytest.mark.asyncio
async def test_nearby_needs_both_coordinates(client: AsyncClient):
    resp = await client.get("/api/v1/stations", params={"lat": 10.775})
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_station_counts_follow_reservations(client: AsyncClient):
    await reserve(client)
    station = (await client.get("/api/v1/stations/st-a")).json()
    assert station["availableStandardBikes"] == 1
    assert station["availableDocks"] == 2


@pytest.mark.asyncio
async def test_unknown_station(client: AsyncClient):
    resp = await client.get("/api/v1/stations/st-nowhere")
    assert resp.status_code == 404


# ── Pricing ───────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_pricing_plans(client: AsyncClient):
    resp = await client.get("/api/v1/pricing/plans")
    assert resp.status_code == 200
    plans = {p["key"]: p for p in resp.json()}
    assert plans["STANDARD"]["freeMinutes"] == 5
    assert plans["PREMIUM"]["maxFreeRidesPerDay"] == 2
    assert "free" in plans["PREMIUM"]["explanation"]


@pytest.mark.asyncio
async def test_estimate(client: AsyncClient):
    resp = await client.get(
        "/api/v1/pricing/estimate", params={"durationMinutes": 15, "plan": "standard"}
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["plan"] == "Standard"
    assert data["breakdown"]["totalCost"] == 2.5
    assert data["formattedTotal"] == "$2.50"


@pytest.mark.asyncio
async def test_estimate_premium_after_quota(client: AsyncClient):
    resp = await client.get(
        "/api/v1/pricing/estimate",
        params={"durationMinutes": 30, "plan": "PREMIUM", "ridesCompletedToday": 2},
    )
    assert resp.json()["breakdown"]["totalCost"] == 0.45


@pytest.mark.asyncio
async def test_estimate_rejects_negative_duration(client: AsyncClient):
    resp = await client.get("/api/v1/pricing/estimate", params={"durationMinutes": -1})
    assert resp.status_code == 422


@pytest.mark.asyncio
@pytest.mark.parametrize("duration", ["nan", "inf"])
async def test_estimate_rejects_non_finite_duration(client: AsyncClient, duration):
    resp = await client.get(
        "/api/v1/pricing/estimate", params={"durationMinutes": duration}
    )
    assert resp.status_code == 422


# ── Rate limiting ─────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_rate_limit(client: AsyncClient):
    for _ in range(100):
        assert (await client.get("/api/v1/pricing/plans")).status_code == 200
    resp = await client.get("/api/v1/pricing/plans")
    assert resp.status_code == 429
