"""Tests for the dispatch API endpoints."""
import pytest
import requests
from fastapi.testclient import TestClient

from api import dispatch_api
from api.dispatch_api import app, get_coordinator
from configurations.config import Config
from core.hazard_model import HazardModel
from models.hazard import flood
from models.mission import Mission, MissionStatus
from services.dispatch_coordinator import DispatchCoordinator
from services.hazard_feed import HazardFeedClient
from services.notification_service import NotificationService
from storage.mission_store import InMemoryMissionStore, SQLMissionStore
from routing_fakes import EAST, FLOOD_RING, WEST, ScriptedOracle, rectilinear, wait_for

@pytest.fixture
def coordinator():
    store = InMemoryMissionStore([
        Mission("m1", pickup=(13.09, 80.27), dropoff=(13.1, 80.28), servings=30, donor_id="donor-1"),
        Mission("m2", pickup=EAST, dropoff=(0.005, 0.03), servings=10),
    ])
    coordinator = DispatchCoordinator(
        store=store,
        hazard_model=HazardModel([flood("flood-1", FLOOD_RING, severity=5)]),
        oracle=ScriptedOracle(rectilinear),
        notifier=NotificationService(webhook_url=""),
    )
    yield coordinator
    coordinator.shutdown()

@pytest.fixture
def client(coordinator):
    app.dependency_overrides[get_coordinator] = lambda: coordinator
    yield TestClient(app)
    app.dependency_overrides.clear()

def test_second_claim_conflicts(client):
    first = client.patch("/api/missions/m1/claim", json={"claimant_id": "ngo-1"})
    second = client.patch("/api/missions/m1/claim", json={"claimant_id": "ngo-2"})
    
    assert first.status_code == 200
    assert first.json()["data"]["status"] == MissionStatus.WAITING_FOR_DELIVERY
    assert second.status_code == 409

def test_unknown_mission_is_404(client):
    response = client.patch("/api/missions/nope/claim", json={"claimant_id": "ngo-1"})
    assert response.status_code == 404

def test_release_by_other_party_is_403(client):
    client.patch("/api/missions/m1/claim", json={"claimant_id": "ngo-1"})
    
    response = client.patch("/api/missions/m1/release", json={"claimant_id": "ngo-2"})
    
    assert response.status_code == 403

def test_ranked_lists_claimed_missions(client):
    client.patch("/api/missions/m1/claim", json={"claimant_id": "ngo-1"})
    client.patch("/api/missions/m2/claim", json={"claimant_id": "ngo-1"})
    
    response = client.get("/api/missions/ranked", params={"lat": 13.08, "lng": 80.27})
    
    body = response.json()
    assert body["count"] == 2
    assert [item["rank"] for item in body["data"]] == [1, 2]

def test_accept_and_advance(client):
    client.patch("/api/missions/m1/claim", json={"claimant_id": "ngo-1"})
    client.patch("/api/missions/m1/accept", json={"agent_id": "agent-1"})
    
    conflict = client.patch("/api/missions/m1/accept", json={"agent_id": "agent-2"})
    picked = client.patch("/api/missions/m1/status", json={"agent_id": "agent-1", "status": "picked_up"})
    wrong_agent = client.patch("/api/missions/m1/status", json={"agent_id": "agent-2", "status": "delivered"})
    
    assert conflict.status_code == 409
    assert picked.json()["data"]["status"] == MissionStatus.PICKED_UP
    assert wrong_agent.status_code == 403

def test_route_detours_around_flood(client):
    response = client.post("/api/missions/m2/route", json={"agent_lat": WEST[0], "agent_lng": WEST[1]})
    
    data = response.json()["data"]
    assert response.status_code == 200
    assert data["leg1"]["rerouted"]
    assert data["warning"] == "Rerouted to avoid flood zone"

def test_route_without_agent_location_is_422(client):
    response = client.post("/api/missions/m1/route", json={})
    assert response.status_code == 422

def test_invalid_agent_location_is_400(client):
    response = client.patch("/api/agents/agent-1/location", json={"lat": 123.0, "lng": 80.0})
    assert response.status_code == 400

def test_hazards_listing(client):
    response = client.get("/api/hazards")
    
    data = response.json()["data"]
    assert data[0]["id"] == "flood-1"
    assert data[0]["blocking"]

FEED_FLOOD = {
    "_id": "feed-flood",
    "type": "flood",
    "geometry": {"type": "Polygon", "coordinates": [FLOOD_RING]},
    "severity": 5,
    "isActive": True,
}

class FeedResponse:
    status_code = 200
    text = ""
    
    def __init__(self, records):
        self.records = records
    
    def json(self):
        return self.records

def test_create_mission_then_claim(client):
    created = client.post("/api/missions", json={
        "mission_id": "m3", "pickup_lat": 13.2, "pickup_lng": 80.3,
        "dropoff_lat": 13.25, "dropoff_lng": 80.31, "servings": 8, "food_name": "Dal",
    })
    duplicate = client.post("/api/missions", json={"mission_id": "m3"})
    claimed = client.patch("/api/missions/m3/claim", json={"claimant_id": "ngo-1"})
    
    assert created.status_code == 201
    assert created.json()["data"]["pickup"] == [13.2, 80.3]
    assert duplicate.status_code == 409
    assert claimed.status_code == 200

def test_pushed_hazard_events(client):
    created = client.post("/api/hazards/events", json={"action": "created", "hazard": FEED_FLOOD})
    deleted = client.post("/api/hazards/events", json={"action": "deleted", "hazard": FEED_FLOOD})
    unknown = client.post("/api/hazards/events", json={"action": "exploded", "hazard": FEED_FLOOD})
    malformed = client.post("/api/hazards/events", json={"action": "created", "hazard": {"_id": "x"}})
    
    assert created.json()["count"] == 2
    assert deleted.json()["count"] == 1
    assert unknown.status_code == 400
    assert malformed.status_code == 422

def test_location_report_is_timestamped_in_utc(client):
    response = client.patch("/api/agents/agent-1/location", json={"lat": 13.08, "lng": 80.27})
    
    assert response.status_code == 200
    assert response.json()["reported_at"].endswith("+00:00")

def test_tracking_endpoints_follow_the_delivery(client):
    client.patch("/api/missions/m1/claim", json={"claimant_id": "ngo-1"})
    client.patch("/api/missions/m1/accept", json={"agent_id": "agent-1"})
    client.patch("/api/agents/agent-1/location", json={"lat": 13.08, "lng": 80.27})
    
    wrong_agent = client.post("/api/missions/m1/tracking", json={"agent_id": "agent-2"})
    started = client.post("/api/missions/m1/tracking", json={"agent_id": "agent-1"})
    
    assert wrong_agent.status_code == 403
    assert started.status_code == 200
    assert wait_for(lambda: client.get("/api/agents/agent-1/tracking").json()["data"]["route_generation"] >= 1)
    
    client.patch("/api/missions/m1/status", json={"agent_id": "agent-1", "status": "picked_up"})
    assert wait_for(lambda: client.get("/api/agents/agent-1/tracking").json()["data"]["leg"] == 2)
    
    client.patch("/api/missions/m1/status", json={"agent_id": "agent-1", "status": "delivered"})
    assert client.get("/api/agents/agent-1/tracking").status_code == 404

def test_get_coordinator_builds_from_config(monkeypatch, tmp_path):
    monkeypatch.setattr(Config, "DATABASE_URL", f"sqlite:///{tmp_path / 'api.db'}")
    monkeypatch.setattr(Config, "HAZARD_FEED_URL", "http://hazards.test/active")
    monkeypatch.setattr(dispatch_api, "_coordinator", None)
    
    coordinator = get_coordinator()
    try:
        assert coordinator.hazard_feed is not None
        assert isinstance(coordinator.store, SQLMissionStore)
        assert get_coordinator() is coordinator
    finally:
        coordinator.shutdown()

def test_startup_polls_hazard_feed(monkeypatch):
    monkeypatch.setattr(Config, "HAZARD_POLL_SECONDS", 0.05)
    monkeypatch.setattr(requests, "get", lambda url, headers=None, timeout=None: FeedResponse([FEED_FLOOD]))
    coordinator = DispatchCoordinator(
        store=InMemoryMissionStore([Mission("m2", pickup=EAST, dropoff=(0.005, 0.03), servings=10)]),
        oracle=ScriptedOracle(rectilinear),
        notifier=NotificationService(webhook_url=""),
        hazard_feed=HazardFeedClient("http://hazards.test/active"),
    )
    app.dependency_overrides[get_coordinator] = lambda: coordinator
    try:
        with TestClient(app) as polled:
            assert wait_for(lambda: polled.get("/api/hazards").json()["count"] == 1)
            route = polled.post("/api/missions/m2/route", json={"agent_lat": WEST[0], "agent_lng": WEST[1]})
            assert route.json()["data"]["leg1"]["rerouted"]
    finally:
        app.dependency_overrides.clear()
        coordinator.shutdown()
