"""
Repository layer: event-scoped queries over the transport tables.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, List, Optional, Set

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from app.models import (
    Event, Guest, TravelRecord, Vehicle, Vendor,
    TransportGroup, TransportAllocation, LocationRepresentative,
)


# -------- Event repository --------

class EventRepo:
    @staticmethod
    def get_by_id(db: Session, event_id: int) -> Optional[Event]:
        return db.query(Event).filter(Event.id == event_id).first()

    @staticmethod
    def get_by_public_code(db: Session, public_code: str) -> Optional[Event]:
        return db.query(Event).filter(Event.public_code == public_code).first()

    @staticmethod
    def lock_for_update(db: Session, event_id: int) -> Optional[Event]:
        """Row-lock the event for the rest of the transaction where the backend supports it"""
        return db.query(Event).filter(Event.id == event_id).with_for_update().populate_existing().first()

    @staticmethod
    def bump_transport_version(db: Session, event_id: int, expected_version: int) -> bool:
        """Compare-and-swap on the event's transport version"""
        updated = db.query(Event).filter(
            Event.id == event_id,
            Event.transport_version == expected_version
        ).update({Event.transport_version: expected_version + 1})
        return updated == 1


# -------- Guest repository --------

class GuestRepo:
    @staticmethod
    def match_by_email(db: Session, event_id: int, email: str) -> List[Guest]:
        return db.query(Guest).filter(
            Guest.event_id == event_id,
            func.lower(Guest.email) == email.strip().lower()
        ).all()

    @staticmethod
    def match_by_exact_name(db: Session, event_id: int, name: str) -> List[Guest]:
        return db.query(Guest).filter(
            Guest.event_id == event_id,
            func.lower(Guest.name) == name.strip().lower()
        ).all()

    @staticmethod
    def get_by_id(db: Session, event_id: int, guest_id: int) -> Optional[Guest]:
        return db.query(Guest).filter(Guest.event_id == event_id, Guest.id == guest_id).first()

    @staticmethod
    def get_many(db: Session, event_id: int, guest_ids: Iterable[int]) -> List[Guest]:
        ids = list(guest_ids)
        if not ids:
            return []
        return db.query(Guest).filter(Guest.event_id == event_id, Guest.id.in_(ids)).order_by(Guest.id).all()

    @staticmethod
    def list_needing_assistance(db: Session, event_id: int) -> List[Guest]:
        return db.query(Guest).options(joinedload(Guest.travel_record)).filter(
            Guest.event_id == event_id,
            Guest.needs_flight_assistance == True
        ).order_by(Guest.id).all()


# -------- Travel record repository --------

class TravelRepo:
    @staticmethod
    def get_by_id(db: Session, record_id: int) -> Optional[TravelRecord]:
        return db.query(TravelRecord).filter(TravelRecord.id == record_id).first()

    @staticmethod
    def get_for_guest(db: Session, event_id: int, guest_id: int) -> Optional[TravelRecord]:
        return db.query(TravelRecord).filter(
            TravelRecord.event_id == event_id,
            TravelRecord.guest_id == guest_id
        ).first()

    @staticmethod
    def list_for_event(db: Session, event_id: int) -> List[TravelRecord]:
        return db.query(TravelRecord).options(joinedload(TravelRecord.guest)).filter(
            TravelRecord.event_id == event_id
        ).order_by(TravelRecord.id).all()


# -------- Vendor / vehicle repository --------

class VehicleRepo:
    @staticmethod
    def get(db: Session, event_id: int, vehicle_id: int) -> Optional[Vehicle]:
        return db.query(Vehicle).filter(Vehicle.id == vehicle_id, Vehicle.event_id == event_id).first()

    @staticmethod
    def list_for_event(db: Session, event_id: int) -> List[Vehicle]:
        return db.query(Vehicle).options(joinedload(Vehicle.vendor)).filter(
            Vehicle.event_id == event_id
        ).order_by(Vehicle.id).all()

    @staticmethod
    def list_available(db: Session, event_id: int) -> List[Vehicle]:
        return db.query(Vehicle).filter(
            Vehicle.event_id == event_id,
            Vehicle.status == "available"
        ).order_by(Vehicle.capacity, Vehicle.id).all()

    @staticmethod
    def claim(db: Session, vehicle_id: int) -> bool:
        """Move a vehicle available -> assigned; False if someone else got there first"""
        updated = db.query(Vehicle).filter(
            Vehicle.id == vehicle_id,
            Vehicle.status == "available"
        ).update({Vehicle.status: "assigned", Vehicle.updated_at: datetime.utcnow()})
        return updated == 1

    @staticmethod
    def set_status(db: Session, vehicle_id: int, status: str) -> None:
        db.query(Vehicle).filter(Vehicle.id == vehicle_id).update(
            {Vehicle.status: status, Vehicle.updated_at: datetime.utcnow()}
        )

    @staticmethod
    def release(db: Session, vehicle_id: int) -> None:
        VehicleRepo.set_status(db, vehicle_id, "available")

    @staticmethod
    def get_vendor(db: Session, event_id: int, vendor_id: int) -> Optional[Vendor]:
        return db.query(Vendor).filter(Vendor.id == vendor_id, Vendor.event_id == event_id).first()

    @staticmethod
    def list_vendors(db: Session, event_id: int) -> List[Vendor]:
        return db.query(Vendor).filter(Vendor.event_id == event_id).order_by(Vendor.id).all()


# -------- Transport group repository --------

class TransportGroupRepo:
    @staticmethod
    def get(db: Session, event_id: int, group_id: int) -> Optional[TransportGroup]:
        return db.query(TransportGroup).filter(
            TransportGroup.id == group_id,
            TransportGroup.event_id == event_id
        ).first()

    @staticmethod
    def list_for_event(db: Session, event_id: int, direction: Optional[str] = None) -> List[TransportGroup]:
        query = db.query(TransportGroup).filter(TransportGroup.event_id == event_id)
        if direction:
            query = query.filter(TransportGroup.direction == direction)
        return query.order_by(TransportGroup.pickup_time, TransportGroup.id).all()

    @staticmethod
    def list_auto_generated(
        db: Session, event_id: int, direction: str, statuses: Optional[Iterable[str]] = None
    ) -> List[TransportGroup]:
        query = db.query(TransportGroup).filter(
            TransportGroup.event_id == event_id,
            TransportGroup.direction == direction,
            TransportGroup.is_auto_generated == True
        )
        if statuses is not None:
            query = query.filter(TransportGroup.status.in_(list(statuses)))
        return query.all()

    @staticmethod
    def list_for_vehicle(db: Session, event_id: int, vehicle_id: int) -> List[TransportGroup]:
        return db.query(TransportGroup).filter(
            TransportGroup.event_id == event_id,
            TransportGroup.vehicle_id == vehicle_id
        ).order_by(TransportGroup.id).all()

    @staticmethod
    def delete_groups(db: Session, event_id: int, groups: List[TransportGroup]) -> int:
        """Delete groups and their allocations, keyed by event id and group ids"""
        group_ids = [g.id for g in groups]
        if not group_ids:
            return 0

        allocation_query = db.query(TransportAllocation).filter(
            TransportAllocation.event_id == event_id,
            TransportAllocation.transport_group_id.in_(group_ids)
        )
        allocations = allocation_query.all()
        allocation_query.delete(synchronize_session=False)
        deleted = db.query(TransportGroup).filter(
            TransportGroup.event_id == event_id,
            TransportGroup.id.in_(group_ids)
        ).delete(synchronize_session=False)

        # Deleted rows leave the identity map; their ids may be reused
        for obj in allocations + list(groups):
            if obj in db:
                db.expunge(obj)
        return deleted

    @staticmethod
    def allocated_guest_ids(db: Session, event_id: int, direction: str) -> Set[int]:
        rows = db.query(TransportAllocation.guest_id).filter(
            TransportAllocation.event_id == event_id,
            TransportAllocation.direction == direction
        ).all()
        return {row.guest_id for row in rows}

    @staticmethod
    def get_representative(db: Session, event_id: int, rep_id: int) -> Optional[LocationRepresentative]:
        return db.query(LocationRepresentative).filter(
            LocationRepresentative.id == rep_id,
            LocationRepresentative.event_id == event_id
        ).first()

    @staticmethod
    def list_representatives(db: Session, event_id: int) -> List[LocationRepresentative]:
        return db.query(LocationRepresentative).filter(
            LocationRepresentative.event_id == event_id
        ).order_by(LocationRepresentative.id).all()
