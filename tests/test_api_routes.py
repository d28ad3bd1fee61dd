"""
Tests for the HTTP surface: authentication, status codes and error envelopes
"""

import io
import pytest
import pandas as pd
from datetime import datetime, timedelta
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from main import app
from app.core.config import settings
from app.core.db import Base, get_db
from app.models import Event, Guest, TravelRecord, Vehicle
from app.services.repositories import EventRepo

# Test database setup
SQLALCHEMY_DATABASE_URL = "sqlite:///./test_api.db"
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

AUTH = {"Authorization": f"Bearer {settings.ADMIN_TOKEN}"}
BASE = datetime(2025, 6, 1, 10, 0)

def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()

@pytest.fixture
def client():
    """Test client bound to a fresh database"""
    Base.metadata.create_all(bind=engine)
    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
        Base.metadata.drop_all(bind=engine)

@pytest.fixture
def seeded(client):
    """Event with three travelling guests and two vehicles"""
    db = TestingSessionLocal()
    try:
        event = Event(
            name="City Wedding",
            date=datetime(2025, 6, 2),
            organizer_email="planner@example.com",
            public_code="CITY123",
            arrival_buffer_time="01:00"
        )
        db.add(event)
        db.flush()

        guest_ids = []
        for name, offset, plus_one in (("Anil", 0, True), ("Bea", 30, False), ("Cyrus", 200, False)):
            guest = Guest(
                event_id=event.id,
                name=name,
                email=f"{name.lower()}@example.com",
                needs_flight_assistance=True,
                plus_one_confirmed=plus_one,
                children_count=0
            )
            db.add(guest)
            db.flush()
            guest_ids.append(guest.id)
            db.add(TravelRecord(
                guest_id=guest.id,
                event_id=event.id,
                flight_number=f"UK{guest.id}",
                scheduled_arrival=BASE + timedelta(minutes=offset),
                arrival_location="BOM",
                status="scheduled",
                needs_transportation=True
            ))

        vehicle_ids = []
        for capacity in (2, 6):
            vehicle = Vehicle(event_id=event.id, vehicle_type="car", capacity=capacity, status="available")
            db.add(vehicle)
            db.flush()
            vehicle_ids.append(vehicle.id)

        db.commit()
        return {"event_id": event.id, "guest_ids": guest_ids, "vehicle_ids": vehicle_ids}
    finally:
        db.close()

def test_health(client):
    """Health check needs no token"""
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}

def test_admin_requires_token(client, seeded):
    """Admin routes reject missing and wrong tokens"""
    url = f"/admin/events/{seeded['event_id']}/flight-coordination-status"

    assert client.get(url).status_code in (401, 403)
    assert client.get(url, headers={"Authorization": "Bearer wrong"}).status_code == 401

def test_coordination_status_route(client, seeded):
    response = client.get(f"/admin/events/{seeded['event_id']}/flight-coordination-status", headers=AUTH)

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["total_guests_needing_assistance"] == 3
    assert data["guests_with_flight_info"] == 3
    assert data["workflow_completion"] == 50

def test_unknown_event_returns_404(client):
    """Domain not-found errors use the error envelope"""
    response = client.get("/admin/events/999/flight-coordination-status", headers=AUTH)

    assert response.status_code == 404
    body = response.json()
    assert body["success"] is False
    assert body["error_code"] == "NOT_FOUND"

def test_regenerate_route(client, seeded):
    """Regeneration reports its summary"""
    response = client.post(
        f"/admin/events/{seeded['event_id']}/regenerate-transport-from-flights", headers=AUTH
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["groups_created"] == 2
    assert data["total_guests_processed"] == 3
    assert data["unmatched_groups"] == 0

    groups = client.get(f"/admin/events/{seeded['event_id']}/transport-groups", headers=AUTH).json()["data"]
    assert [g["total_guests"] for g in groups] == [3, 1]
    assert groups[0]["vehicle_id"] == seeded["vehicle_ids"][1]

def test_regenerate_rejects_unknown_direction(client, seeded):
    response = client.post(
        f"/admin/events/{seeded['event_id']}/regenerate-transport-from-flights?direction=sideways",
        headers=AUTH
    )

    assert response.status_code == 422

def test_regenerate_conflict_returns_409(client, seeded, monkeypatch):
    """A lost regeneration race maps to 409"""
    monkeypatch.setattr(EventRepo, "bump_transport_version", staticmethod(lambda db, event_id, expected: False))

    response = client.post(
        f"/admin/events/{seeded['event_id']}/regenerate-transport-from-flights", headers=AUTH
    )

    assert response.status_code == 409
    assert response.json()["error_code"] == "CONCURRENT_REGENERATION"

def test_assign_vehicle_errors(client, seeded):
    """Capacity, availability and missing resources map to 400 and 404"""
    event_id = seeded["event_id"]
    small, large = seeded["vehicle_ids"]
    anil = seeded["guest_ids"][0]

    created = client.post(
        f"/admin/events/{event_id}/transport-groups",
        json={"guest_ids": [anil], "direction": "departure"},
        headers=AUTH
    )
    assert created.status_code == 201
    group_id = created.json()["data"]["id"]

    response = client.post(
        f"/admin/events/{event_id}/vehicles/{large}/assign",
        json={"transport_group_id": 999},
        headers=AUTH
    )
    assert response.status_code == 404

    response = client.post(
        f"/admin/events/{event_id}/vehicles/999/assign",
        json={"transport_group_id": group_id},
        headers=AUTH
    )
    assert response.status_code == 404

    # Anil travels with a plus-one: two seats fit the small car exactly
    response = client.post(
        f"/admin/events/{event_id}/vehicles/{small}/assign",
        json={"transport_group_id": group_id},
        headers=AUTH
    )
    assert response.status_code == 200
    assert response.json()["data"]["status"] == "assigned"

    other = client.post(
        f"/admin/events/{event_id}/transport-groups",
        json={"guest_ids": seeded["guest_ids"][1:], "direction": "departure"},
        headers=AUTH
    ).json()["data"]["id"]

    response = client.post(
        f"/admin/events/{event_id}/vehicles/{small}/assign",
        json={"transport_group_id": other},
        headers=AUTH
    )
    assert response.status_code == 400
    assert response.json()["error_code"] == "VEHICLE_NOT_AVAILABLE"

def test_assign_vehicle_capacity_exceeded(client, seeded):
    event_id = seeded["event_id"]
    small = seeded["vehicle_ids"][0]

    group_id = client.post(
        f"/admin/events/{event_id}/transport-groups",
        json={"guest_ids": seeded["guest_ids"], "direction": "departure"},
        headers=AUTH
    ).json()["data"]["id"]

    response = client.post(
        f"/admin/events/{event_id}/vehicles/{small}/assign",
        json={"transport_group_id": group_id},
        headers=AUTH
    )

    assert response.status_code == 400
    body = response.json()
    assert body["error_code"] == "CAPACITY_EXCEEDED"
    assert body["details"] == {"vehicle_capacity": 2, "group_size": 4}

def test_vehicle_crud(client, seeded):
    """Vehicles can be created, updated, status-changed and deleted"""
    event_id = seeded["event_id"]

    created = client.post(
        f"/admin/events/{event_id}/vehicles",
        json={"vehicle_type": "bus", "capacity": 30, "driver_name": "Ravi"},
        headers=AUTH
    )
    assert created.status_code == 201
    vehicle_id = created.json()["data"]["id"]

    assert client.post(
        f"/admin/events/{event_id}/vehicles",
        json={"vehicle_type": "bus", "capacity": 0},
        headers=AUTH
    ).status_code == 422

    updated = client.put(
        f"/admin/events/{event_id}/vehicles/{vehicle_id}",
        json={"plate_number": "MH01AB1234"},
        headers=AUTH
    )
    assert updated.json()["data"]["plate_number"] == "MH01AB1234"

    assert client.patch(
        f"/admin/events/{event_id}/vehicles/{vehicle_id}/status",
        json={"status": "parked"},
        headers=AUTH
    ).status_code == 422

    status = client.patch(
        f"/admin/events/{event_id}/vehicles/{vehicle_id}/status",
        json={"status": "maintenance"},
        headers=AUTH
    )
    assert status.json()["data"]["status"] == "maintenance"

    idle_assigned = client.patch(
        f"/admin/events/{event_id}/vehicles/{vehicle_id}/status",
        json={"status": "in_transit"},
        headers=AUTH
    )
    assert idle_assigned.status_code == 400
    assert idle_assigned.json()["error_code"] == "VEHICLE_NOT_HELD"

    assert client.delete(f"/admin/events/{event_id}/vehicles/{vehicle_id}", headers=AUTH).status_code == 200
    assert client.get(f"/admin/events/{event_id}/vehicles/{vehicle_id}", headers=AUTH).status_code == 404

def test_group_lifecycle_routes(client, seeded):
    """Status changes and pickups through the API"""
    event_id = seeded["event_id"]
    anil, bea = seeded["guest_ids"][:2]
    client.post(f"/admin/events/{event_id}/regenerate-transport-from-flights", headers=AUTH)
    group_id = client.get(f"/admin/events/{event_id}/transport-groups", headers=AUTH).json()["data"][0]["id"]

    response = client.patch(
        f"/admin/events/{event_id}/transport-groups/{group_id}/status",
        json={"status": "in_transit"},
        headers=AUTH
    )
    assert response.status_code == 200

    response = client.patch(
        f"/admin/events/{event_id}/transport-groups/{group_id}/status",
        json={"status": "assigned"},
        headers=AUTH
    )
    assert response.status_code == 400
    assert response.json()["error_code"] == "INVALID_STATUS_TRANSITION"

    for guest_id in (anil, bea):
        response = client.post(
            f"/admin/events/{event_id}/transport-groups/{group_id}/pickups",
            json={"guest_id": guest_id},
            headers=AUTH
        )
    assert response.json()["data"]["status"] == "completed"

def test_export_import_round_trip_route(client, seeded):
    """Exported rows re-imported unchanged create and update nothing"""
    event_id = seeded["event_id"]

    exported = client.post(f"/admin/events/{event_id}/export-flight-list", headers=AUTH).json()["data"]
    assert exported["total"] == 3

    first = client.post(
        f"/admin/events/{event_id}/import-flight-details",
        json={"flight_data": exported["rows"]},
        headers=AUTH
    ).json()["data"]
    assert first["updated_count"] == 3

    exported = client.post(f"/admin/events/{event_id}/export-flight-list", headers=AUTH).json()["data"]
    second = client.post(
        f"/admin/events/{event_id}/import-flight-details",
        json={"flight_data": exported["rows"]},
        headers=AUTH
    ).json()["data"]
    assert second["updated_count"] == 0
    assert second["created_count"] == 0
    assert second["unchanged_count"] == 3

def test_flight_list_download_and_upload(client, seeded):
    """The downloaded CSV can be uploaded back"""
    event_id = seeded["event_id"]

    download = client.get(f"/admin/events/{event_id}/export/flight-list.csv", headers=AUTH)
    assert download.status_code == 200
    assert download.headers["content-type"].startswith("text/csv")

    df = pd.read_csv(io.BytesIO(download.content), dtype=str, keep_default_na=False)
    df.loc[df["Guest Name"] == "Bea", "Flight Number"] = "UK999"
    upload = df.to_csv(index=False).encode("utf-8")

    response = client.post(
        f"/admin/events/{event_id}/import-flight-details/upload",
        files={"file": ("flights.csv", upload, "text/csv")},
        headers=AUTH
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["updated_count"] == 3
    assert data["file_errors"] == []

def test_upload_rejects_other_files(client, seeded):
    response = client.post(
        f"/admin/events/{seeded['event_id']}/import-flight-details/upload",
        files={"file": ("flights.txt", b"hello", "text/plain")},
        headers=AUTH
    )

    assert response.status_code == 400

def test_travel_settings_validation(client, seeded):
    """Malformed buffers are rejected with CONFIG_ERROR"""
    event_id = seeded["event_id"]

    ok = client.patch(
        f"/admin/events/{event_id}/travel-settings",
        json={"arrival_buffer_time": "00:30"},
        headers=AUTH
    )
    assert ok.status_code == 200
    assert ok.json()["data"]["arrival_buffer_time"] == "00:30"

    bad = client.patch(
        f"/admin/events/{event_id}/travel-settings",
        json={"arrival_buffer_time": "00:75"},
        headers=AUTH
    )
    assert bad.status_code == 422
    assert bad.json()["error_code"] == "CONFIG_ERROR"

def test_guest_self_service(client, seeded):
    """Guests submit travel details with the event code and their name"""
    response = client.post(
        "/guest/travel",
        json={"public_code": "CITY123", "name": "bea", "flight_number": "AI777", "terminal": "T2"}
    )

    assert response.status_code == 200
    assert response.json()["data"]["flight_number"] == "AI777"

    missing = client.post("/guest/travel", json={"public_code": "CITY123", "name": "Nobody"})
    assert missing.status_code == 422
    assert missing.json()["error_code"] == "GUEST_NOT_FOUND"

def test_manifest_template_download(client):
    response = client.get("/template/flight_manifest_template.xlsx")

    assert response.status_code == 200
    df = pd.read_excel(io.BytesIO(response.content))
    assert "Flight Number" in df.columns
