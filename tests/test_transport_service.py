"""
Tests for transport group regeneration, vehicle assignment and lifecycle
"""

import pytest
from datetime import datetime, timedelta
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.core.db import Base
from app.core.exceptions import (
    CapacityExceeded,
    ConcurrentRegenerationConflict,
    InvalidStatusTransition,
    ResourceNotFound,
    TransportCoordinationError,
    VehicleNotAvailable,
)
from app.models import Event, Guest, TravelRecord, Vehicle, TransportAllocation
from app.services.coordination_service import CoordinationService
from app.services.repositories import EventRepo, VehicleRepo, TransportGroupRepo
from app.services.transport_service import TransportService

# Test database setup
SQLALCHEMY_DATABASE_URL = "sqlite:///./test_transport.db"
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

BASE = datetime(2025, 6, 1, 10, 0)

@pytest.fixture
def db_session():
    """Create test database session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)

@pytest.fixture
def transport_event(db_session):
    """Event with four travelling guests and a fleet of 4, 8, 12 and 15 seats"""
    event = Event(
        name="Beach Wedding",
        date=datetime(2025, 6, 2),
        organizer_email="planner@example.com",
        public_code="BEACH123",
        arrival_buffer_time="01:00"
    )
    db_session.add(event)
    db_session.flush()

    guests_data = [
        # name, plus one, arrival
        ("Asha", True, BASE),
        ("Ben", False, BASE + timedelta(minutes=45)),
        ("Chitra", False, BASE + timedelta(hours=2, minutes=30)),
        ("Dev", False, None),
    ]
    guest_ids = []
    for name, plus_one, arrival in guests_data:
        guest = Guest(
            event_id=event.id,
            name=name,
            email=f"{name.lower()}@example.com",
            needs_flight_assistance=True,
            plus_one_confirmed=plus_one,
            children_count=0
        )
        db_session.add(guest)
        db_session.flush()
        guest_ids.append(guest.id)

        db_session.add(TravelRecord(
            guest_id=guest.id,
            event_id=event.id,
            flight_number=f"AI{guest.id}00",
            scheduled_arrival=arrival,
            arrival_location="GOI",
            status="scheduled",
            needs_transportation=True
        ))

    vehicle_ids = []
    for capacity in (4, 8, 12, 15):
        vehicle = Vehicle(event_id=event.id, vehicle_type="van", capacity=capacity, status="available")
        db_session.add(vehicle)
        db_session.flush()
        vehicle_ids.append(vehicle.id)

    db_session.commit()
    return {"event_id": event.id, "guest_ids": guest_ids, "vehicle_ids": vehicle_ids}

def group_snapshot(db_session, event_id):
    """Membership, pickup time and vehicle of every group"""
    return [
        (sorted(a.guest_id for a in g.allocations), g.pickup_time, g.vehicle_id, g.status)
        for g in TransportGroupRepo.list_for_event(db_session, event_id)
    ]

def test_regenerate_builds_groups(db_session, transport_event):
    """Arrivals are windowed and each window gets the best-fitting vehicle"""
    event_id = transport_event["event_id"]
    asha, ben, chitra, dev = transport_event["guest_ids"]
    v4, v8, v12, v15 = transport_event["vehicle_ids"]

    result = TransportService.regenerate_transport_groups(db_session, event_id)

    assert result["groups_created"] == 2
    assert result["total_guests_processed"] == 4
    assert result["ungroupable_count"] == 1
    assert result["unmatched_groups"] == 0
    assert result["buffer_minutes"] == 60

    groups = TransportGroupRepo.list_for_event(db_session, event_id)
    assert [sorted(a.guest_id for a in g.allocations) for g in groups] == [[asha, ben], [chitra]]
    assert groups[0].total_guests == 3
    assert groups[0].vehicle_id == v4
    assert groups[1].vehicle_id == v8
    assert groups[0].name == "Arrival GOI 10:00"
    assert all(g.status == "assigned" and g.is_auto_generated for g in groups)

    assert VehicleRepo.get(db_session, event_id, v4).status == "assigned"
    assert VehicleRepo.get(db_session, event_id, v12).status == "available"
    assert EventRepo.get_by_id(db_session, event_id).transport_version == 1

def test_regenerate_is_idempotent(db_session, transport_event):
    """Running twice with unchanged travel data yields the same groups"""
    event_id = transport_event["event_id"]

    TransportService.regenerate_transport_groups(db_session, event_id)
    first = group_snapshot(db_session, event_id)

    TransportService.regenerate_transport_groups(db_session, event_id)
    second = group_snapshot(db_session, event_id)

    assert first == second
    assert db_session.query(TransportAllocation).count() == 3
    assert EventRepo.get_by_id(db_session, event_id).transport_version == 2

def test_regenerate_rolls_back_on_failure(db_session, transport_event, monkeypatch):
    """A failure mid-rebuild leaves the previous groups untouched"""
    event_id = transport_event["event_id"]
    TransportService.regenerate_transport_groups(db_session, event_id)
    before = group_snapshot(db_session, event_id)
    version = EventRepo.get_by_id(db_session, event_id).transport_version

    def failing_persist(*args, **kwargs):
        raise RuntimeError("database went away")

    monkeypatch.setattr(TransportService, "_persist_plan", staticmethod(failing_persist))

    with pytest.raises(RuntimeError):
        TransportService.regenerate_transport_groups(db_session, event_id)

    assert group_snapshot(db_session, event_id) == before
    assert EventRepo.get_by_id(db_session, event_id).transport_version == version
    statuses = sorted(v.status for v in VehicleRepo.list_for_event(db_session, event_id))
    assert statuses == ["assigned", "assigned", "available", "available"]

def test_regenerate_conflict_after_retries(db_session, transport_event, monkeypatch):
    """A lost version check is retried, then reported, with nothing applied"""
    event_id = transport_event["event_id"]
    TransportService.regenerate_transport_groups(db_session, event_id)
    before = group_snapshot(db_session, event_id)

    calls = []

    def lost_race(db, event_id, expected_version):
        calls.append(expected_version)
        return False

    monkeypatch.setattr(EventRepo, "bump_transport_version", staticmethod(lost_race))

    with pytest.raises(ConcurrentRegenerationConflict):
        TransportService.regenerate_transport_groups(db_session, event_id)

    assert len(calls) == 3
    assert group_snapshot(db_session, event_id) == before

def test_regenerate_unknown_event(db_session):
    """Regenerating a missing event raises ResourceNotFound"""
    with pytest.raises(ResourceNotFound):
        TransportService.regenerate_transport_groups(db_session, 999)

def test_regenerate_without_fleet(db_session, transport_event):
    """With no vehicles the groups persist as pending and are reported"""
    event_id = transport_event["event_id"]
    db_session.query(Vehicle).delete()
    db_session.commit()

    result = TransportService.regenerate_transport_groups(db_session, event_id)

    assert result["groups_created"] == 2
    assert result["unmatched_groups"] == 2
    groups = TransportGroupRepo.list_for_event(db_session, event_id)
    assert all(g.status == "pending" and g.vehicle_id is None for g in groups)

def test_regenerate_preserves_manual_groups(db_session, transport_event):
    """Manual groups and their guests are left alone"""
    event_id = transport_event["event_id"]
    asha, ben, chitra, dev = transport_event["guest_ids"]

    manual = TransportService.create_manual_group(db_session, event_id, [asha], name="Family car")
    TransportService.regenerate_transport_groups(db_session, event_id)

    groups = TransportGroupRepo.list_for_event(db_session, event_id)
    auto = [g for g in groups if g.is_auto_generated]
    assert TransportGroupRepo.get(db_session, event_id, manual.id) is not None
    assert [sorted(a.guest_id for a in g.allocations) for g in auto] == [[ben], [chitra]]

def test_regenerate_keeps_groups_already_moving(db_session, transport_event):
    """A group on the road keeps its guests, pickups and vehicle"""
    event_id = transport_event["event_id"]
    asha, ben, chitra, dev = transport_event["guest_ids"]
    v4, v8, v12, v15 = transport_event["vehicle_ids"]
    TransportService.regenerate_transport_groups(db_session, event_id)
    moving_id = TransportGroupRepo.list_for_event(db_session, event_id)[0].id
    TransportService.update_group_status(db_session, event_id, moving_id, "in_transit")
    TransportService.confirm_pickup(db_session, event_id, moving_id, asha)

    result = TransportService.regenerate_transport_groups(db_session, event_id)

    assert result["groups_created"] == 1
    moving = TransportGroupRepo.get(db_session, event_id, moving_id)
    assert moving.status == "in_transit"
    assert moving.guests_picked_up == 2
    assert sorted(a.guest_id for a in moving.allocations) == [asha, ben]
    assert VehicleRepo.get(db_session, event_id, v4).status == "in_transit"

    others = [g for g in TransportGroupRepo.list_for_event(db_session, event_id) if g.id != moving_id]
    assert [sorted(a.guest_id for a in g.allocations) for g in others] == [[chitra]]
    assert others[0].vehicle_id == v8

def test_create_manual_group_rejects_allocated_guest(db_session, transport_event):
    """A guest cannot hold two allocations in the same direction"""
    event_id = transport_event["event_id"]
    asha = transport_event["guest_ids"][0]
    TransportService.regenerate_transport_groups(db_session, event_id)

    with pytest.raises(TransportCoordinationError) as exc_info:
        TransportService.create_manual_group(db_session, event_id, [asha])

    assert exc_info.value.error_code == "GUEST_ALREADY_ALLOCATED"

def test_assign_vehicle_capacity_exceeded(db_session, transport_event):
    """Assigning a vehicle that is too small fails with both numbers"""
    event_id = transport_event["event_id"]
    v4 = transport_event["vehicle_ids"][0]
    group = TransportService.create_manual_group(
        db_session, event_id, transport_event["guest_ids"], direction="departure"
    )

    with pytest.raises(CapacityExceeded) as exc_info:
        TransportService.assign_vehicle(db_session, event_id, v4, group.id)

    assert exc_info.value.context == {"vehicle_capacity": 4, "group_size": 5}
    assert VehicleRepo.get(db_session, event_id, v4).status == "available"
    assert TransportGroupRepo.get(db_session, event_id, group.id).vehicle_id is None

def test_assign_vehicle_already_assigned(db_session, transport_event):
    """A vehicle held by another group is rejected and both groups stay as they were"""
    event_id = transport_event["event_id"]
    dev = transport_event["guest_ids"][3]
    v4 = transport_event["vehicle_ids"][0]
    TransportService.regenerate_transport_groups(db_session, event_id)
    first = TransportGroupRepo.list_for_event(db_session, event_id)[0]
    manual = TransportService.create_manual_group(db_session, event_id, [dev])

    with pytest.raises(VehicleNotAvailable):
        TransportService.assign_vehicle(db_session, event_id, v4, manual.id)

    assert TransportGroupRepo.get(db_session, event_id, first.id).vehicle_id == v4
    assert TransportGroupRepo.get(db_session, event_id, manual.id).vehicle_id is None

def test_assign_vehicle_missing(db_session, transport_event):
    """Unknown vehicles and groups raise ResourceNotFound"""
    event_id = transport_event["event_id"]
    v4 = transport_event["vehicle_ids"][0]

    with pytest.raises(ResourceNotFound):
        TransportService.assign_vehicle(db_session, event_id, 999, 1)
    with pytest.raises(ResourceNotFound):
        TransportService.assign_vehicle(db_session, event_id, v4, 999)

def test_assign_and_unassign_vehicle(db_session, transport_event):
    """Manual assignment claims the vehicle; unassigning returns the group to pending"""
    event_id = transport_event["event_id"]
    dev = transport_event["guest_ids"][3]
    v12 = transport_event["vehicle_ids"][2]
    manual = TransportService.create_manual_group(db_session, event_id, [dev])

    group = TransportService.assign_vehicle(db_session, event_id, v12, manual.id)
    assert group.status == "assigned"
    assert VehicleRepo.get(db_session, event_id, v12).status == "assigned"

    released = TransportService.unassign_vehicle(db_session, event_id, v12)

    group = TransportGroupRepo.get(db_session, event_id, manual.id)
    assert released == [manual.id]
    assert group.status == "pending"
    assert group.vehicle_id is None
    assert VehicleRepo.get(db_session, event_id, v12).status == "available"

def test_unassign_idle_vehicle_keeps_maintenance(db_session, transport_event):
    """Unassigning a vehicle no group holds leaves its status alone"""
    event_id = transport_event["event_id"]
    v15 = transport_event["vehicle_ids"][3]
    VehicleRepo.set_status(db_session, v15, "maintenance")
    db_session.commit()

    released = TransportService.unassign_vehicle(db_session, event_id, v15)

    assert released == []
    assert VehicleRepo.get(db_session, event_id, v15).status == "maintenance"

def test_vehicle_claim_is_compare_and_swap(db_session, transport_event):
    """Only the first claim on an available vehicle succeeds"""
    v8 = transport_event["vehicle_ids"][1]

    assert VehicleRepo.claim(db_session, v8) is True
    assert VehicleRepo.claim(db_session, v8) is False

def test_lifecycle_transitions(db_session, transport_event):
    """Groups move forward only, and the vehicle follows the group"""
    event_id = transport_event["event_id"]
    v4 = transport_event["vehicle_ids"][0]
    TransportService.regenerate_transport_groups(db_session, event_id)
    group_id = TransportGroupRepo.list_for_event(db_session, event_id)[0].id

    group = TransportService.update_group_status(db_session, event_id, group_id, "in_transit")
    assert group.status == "in_transit"
    assert VehicleRepo.get(db_session, event_id, v4).status == "in_transit"

    with pytest.raises(InvalidStatusTransition):
        TransportService.update_group_status(db_session, event_id, group_id, "assigned")
    with pytest.raises(InvalidStatusTransition):
        TransportService.update_group_status(db_session, event_id, group_id, "pending")

    group = TransportService.update_group_status(db_session, event_id, group_id, "completed")
    assert group.status == "completed"
    assert group.vehicle_id == v4
    assert VehicleRepo.get(db_session, event_id, v4).status == "available"

    with pytest.raises(InvalidStatusTransition):
        TransportService.update_group_status(db_session, event_id, group_id, "in_transit")

def test_pending_group_cannot_start(db_session, transport_event):
    """A group without a vehicle cannot go in transit"""
    event_id = transport_event["event_id"]
    dev = transport_event["guest_ids"][3]
    manual = TransportService.create_manual_group(db_session, event_id, [dev])

    with pytest.raises(InvalidStatusTransition):
        TransportService.update_group_status(db_session, event_id, manual.id, "in_transit")
    with pytest.raises(InvalidStatusTransition):
        TransportService.update_group_status(db_session, event_id, manual.id, "assigned")

def test_pickups_complete_the_group(db_session, transport_event):
    """Pickups count seats once per guest; the last one completes the group"""
    event_id = transport_event["event_id"]
    asha, ben = transport_event["guest_ids"][:2]
    v4 = transport_event["vehicle_ids"][0]
    TransportService.regenerate_transport_groups(db_session, event_id)
    group_id = TransportGroupRepo.list_for_event(db_session, event_id)[0].id

    group = TransportService.confirm_pickup(db_session, event_id, group_id, asha)
    assert group.guests_picked_up == 2
    assert group.status == "assigned"

    group = TransportService.confirm_pickup(db_session, event_id, group_id, asha)
    assert group.guests_picked_up == 2

    group = TransportService.confirm_pickup(db_session, event_id, group_id, ben)
    assert group.guests_picked_up == 3
    assert group.status == "completed"
    assert VehicleRepo.get(db_session, event_id, v4).status == "available"

    with pytest.raises(InvalidStatusTransition):
        TransportService.confirm_pickup(db_session, event_id, group_id, ben)

def test_pickup_for_unallocated_guest(db_session, transport_event):
    """Confirming a guest who is not in the group raises ResourceNotFound"""
    event_id = transport_event["event_id"]
    dev = transport_event["guest_ids"][3]
    TransportService.regenerate_transport_groups(db_session, event_id)
    group_id = TransportGroupRepo.list_for_event(db_session, event_id)[0].id

    with pytest.raises(ResourceNotFound):
        TransportService.confirm_pickup(db_session, event_id, group_id, dev)

def test_delete_group_releases_vehicle(db_session, transport_event):
    """Deleting an assigned group frees its vehicle"""
    event_id = transport_event["event_id"]
    v4 = transport_event["vehicle_ids"][0]
    TransportService.regenerate_transport_groups(db_session, event_id)
    group_id = TransportGroupRepo.list_for_event(db_session, event_id)[0].id

    TransportService.delete_group(db_session, event_id, group_id)

    assert TransportGroupRepo.get(db_session, event_id, group_id) is None
    assert db_session.query(TransportAllocation).filter(
        TransportAllocation.transport_group_id == group_id
    ).count() == 0
    assert VehicleRepo.get(db_session, event_id, v4).status == "available"

def test_check_for_transport_updates_after_delay(db_session, transport_event):
    """A delay that leaves the window is flagged until regeneration"""
    event_id = transport_event["event_id"]
    ben = transport_event["guest_ids"][1]
    TransportService.regenerate_transport_groups(db_session, event_id)

    assert TransportService.check_for_transport_updates(db_session, event_id)["needs_update"] is False

    record = db_session.query(TravelRecord).filter(TravelRecord.guest_id == ben).first()
    CoordinationService.report_delay(db_session, record.id, 120)

    result = TransportService.check_for_transport_updates(db_session, event_id)
    assert result["needs_update"] is True
    assert [m["guest_id"] for m in result["modified_guests"]] == [ben]
    assert result["modified_guests"][0]["reason"] == "outside_window"

    TransportService.regenerate_transport_groups(db_session, event_id)
    assert TransportService.check_for_transport_updates(db_session, event_id)["needs_update"] is False
