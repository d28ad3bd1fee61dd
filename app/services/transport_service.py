"""
Transport group lifecycle: regeneration, vehicle assignment, status
transitions and pickup confirmation.
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions import (
    TransportCoordinationError,
    CapacityExceeded,
    ConcurrentRegenerationConflict,
    InvalidStatusTransition,
    ResourceNotFound,
    UngroupableRecord,
    VehicleNotAvailable,
)
from app.models import Event, TransportGroup, TransportAllocation
from app.services.buffer_service import resolve_buffer_minutes
from app.services.grouping_service import CandidateGroup, group_records, member_from_record
from app.services.repositories import (
    EventRepo, GuestRepo, TravelRepo, VehicleRepo, TransportGroupRepo
)
from app.services.vehicle_matcher import PlannedGroup, plan_group

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    "pending": {"assigned"},
    "assigned": {"pending", "in_transit", "completed"},
    "in_transit": {"completed"},
    "completed": set(),
}

# Group states in which the group's vehicle is held
VEHICLE_HOLDING_STATUSES = ("assigned", "in_transit")

# Automatic groups that regeneration may tear down
REPLACEABLE_STATUSES = ("pending", "assigned")


class TransportService:
    """Service owning transport group state"""

    # -------- Regeneration --------

    @staticmethod
    def regenerate_transport_groups(db: Session, event_id: int, direction: str = "arrival") -> Dict:
        """Replace the event's automatic groups for a direction with a fresh grouping.

        Runs delete-then-rebuild in one transaction. A lost version
        compare-and-swap is retried, then surfaced as ConcurrentRegenerationConflict.
        """
        attempts = max(1, settings.REGENERATION_MAX_RETRIES)
        conflict: Optional[ConcurrentRegenerationConflict] = None

        for attempt in range(1, attempts + 1):
            try:
                result = TransportService._regenerate_once(db, event_id, direction)
                db.commit()
            except ConcurrentRegenerationConflict as e:
                db.rollback()
                conflict = e
                logger.warning(f"Regeneration conflict for event {event_id} (attempt {attempt}/{attempts})")
                continue
            except Exception:
                db.rollback()
                raise

            logger.info(
                f"Regenerated {result['groups_created']} {direction} groups for event {event_id} "
                f"({result['total_guests_processed']} records, {result['ungroupable_count']} ungroupable, "
                f"{result['unmatched_groups']} without vehicle)"
            )
            return result

        raise conflict

    @staticmethod
    def _regenerate_once(db: Session, event_id: int, direction: str) -> Dict:
        event = EventRepo.lock_for_update(db, event_id)
        if not event:
            raise ResourceNotFound("Event not found", context={"event_id": event_id})

        expected_version = event.transport_version or 0
        buffer = resolve_buffer_minutes(event, direction)

        # Groups already moving or done are history and stay as they are
        old_groups = TransportGroupRepo.list_auto_generated(
            db, event_id, direction, statuses=REPLACEABLE_STATUSES
        )
        for group in old_groups:
            if group.vehicle_id and group.status == "assigned":
                VehicleRepo.release(db, group.vehicle_id)
        TransportGroupRepo.delete_groups(db, event_id, old_groups)

        # Guests left in manual, moving or completed groups keep their seat
        manual_guest_ids = TransportGroupRepo.allocated_guest_ids(db, event_id, direction)
        records = [
            r for r in TravelRepo.list_for_event(db, event_id)
            if r.guest_id not in manual_guest_ids
        ]

        grouping = group_records(
            records,
            buffer,
            direction=direction,
            partition_by_location=settings.GROUP_BY_PICKUP_LOCATION,
        )

        pool = VehicleRepo.list_available(db, event_id)
        created: List[TransportGroup] = []
        for candidate in grouping.groups:
            plans = plan_group(candidate, pool)
            for index, plan in enumerate(plans, start=1):
                created.append(
                    TransportService._persist_plan(db, event, candidate, plan, index, len(plans))
                )

        if not EventRepo.bump_transport_version(db, event_id, expected_version):
            raise ConcurrentRegenerationConflict(
                "Transport groups were regenerated concurrently; retry",
                context={"event_id": event_id},
            )

        return {
            "groups_created": len(created),
            "total_guests_processed": grouping.considered_count,
            "ungroupable_count": grouping.ungroupable_count,
            "unmatched_groups": sum(1 for g in created if g.vehicle_id is None),
            "buffer_minutes": buffer,
            "direction": direction,
        }

    @staticmethod
    def _persist_plan(
        db: Session,
        event: Event,
        candidate: CandidateGroup,
        plan: PlannedGroup,
        index: int,
        plan_count: int,
    ) -> TransportGroup:
        travel_location = candidate.location or event.default_pickup_location or settings.DEFAULT_PICKUP_LOCATION
        venue = event.dropoff_location or settings.DEFAULT_DROPOFF_LOCATION
        if candidate.direction == "departure":
            pickup_location, dropoff_location = venue, travel_location
        else:
            pickup_location, dropoff_location = travel_location, venue

        name = f"{candidate.direction.capitalize()} {travel_location} {candidate.pickup_time:%H:%M}"
        if plan_count > 1:
            name = f"{name} ({index}/{plan_count})"

        vehicle = plan.vehicle
        if vehicle is not None and not VehicleRepo.claim(db, vehicle.id):
            raise ConcurrentRegenerationConflict(
                f"Vehicle {vehicle.id} was claimed by another request",
                context={"vehicle_id": vehicle.id},
            )

        group = TransportGroup(
            event_id=event.id,
            name=name,
            direction=candidate.direction,
            pickup_location=pickup_location,
            pickup_time=candidate.pickup_time,
            window_start=candidate.window_start,
            window_end=candidate.window_end,
            dropoff_location=dropoff_location,
            vehicle_id=vehicle.id if vehicle is not None else None,
            assigned_vendor_id=vehicle.vendor_id if vehicle is not None else None,
            status="assigned" if vehicle is not None else "pending",
            total_guests=plan.total_guests,
            guests_picked_up=0,
            is_auto_generated=True,
            needs_split=plan.needs_split,
        )
        db.add(group)
        db.flush()

        for member in plan.members:
            db.add(TransportAllocation(
                transport_group_id=group.id,
                event_id=event.id,
                guest_id=member.guest_id,
                direction=candidate.direction,
                seat_demand=member.seat_demand,
                includes_plus_one=member.includes_plus_one,
                children_count=member.children_count,
            ))
        db.flush()
        return group

    # -------- Manual groups --------

    @staticmethod
    def create_manual_group(
        db: Session,
        event_id: int,
        guest_ids: List[int],
        direction: str = "arrival",
        name: Optional[str] = None,
        pickup_location: Optional[str] = None,
        pickup_time: Optional[datetime] = None,
        dropoff_location: Optional[str] = None,
    ) -> TransportGroup:
        """Create a planner-defined group; regeneration leaves it alone"""
        event = EventRepo.get_by_id(db, event_id)
        if not event:
            raise ResourceNotFound("Event not found", context={"event_id": event_id})

        unique_ids = list(dict.fromkeys(guest_ids))
        guests = GuestRepo.get_many(db, event_id, unique_ids)
        missing = sorted(set(unique_ids) - {g.id for g in guests})
        if missing:
            raise ResourceNotFound("Guests not found for this event", context={"guest_ids": missing})

        already = sorted(set(unique_ids) & TransportGroupRepo.allocated_guest_ids(db, event_id, direction))
        if already:
            raise TransportCoordinationError(
                f"Guests already have a {direction} transport allocation",
                error_code="GUEST_ALREADY_ALLOCATED",
                context={"guest_ids": already},
            )

        group = TransportGroup(
            event_id=event_id,
            name=name or f"Manual {direction} group",
            direction=direction,
            pickup_location=pickup_location,
            pickup_time=pickup_time,
            dropoff_location=dropoff_location or event.dropoff_location or settings.DEFAULT_DROPOFF_LOCATION,
            status="pending",
            total_guests=sum(g.seat_demand for g in guests),
            is_auto_generated=False,
        )
        db.add(group)
        db.flush()

        for guest in guests:
            db.add(TransportAllocation(
                transport_group_id=group.id,
                event_id=event_id,
                guest_id=guest.id,
                direction=direction,
                seat_demand=guest.seat_demand,
                includes_plus_one=bool(guest.plus_one_confirmed),
                children_count=guest.children_count or 0,
            ))

        db.commit()
        db.refresh(group)
        return group

    @staticmethod
    def delete_group(db: Session, event_id: int, group_id: int) -> None:
        group = TransportService._get_group(db, event_id, group_id)
        if group.status == "in_transit":
            raise InvalidStatusTransition("Cannot delete a transport group that is in transit")

        if group.vehicle_id and group.status == "assigned":
            VehicleRepo.release(db, group.vehicle_id)
        db.delete(group)
        db.commit()

    # -------- Vehicle assignment --------

    @staticmethod
    def assign_vehicle(db: Session, event_id: int, vehicle_id: int, group_id: int) -> TransportGroup:
        """Manually attach an available vehicle to a pending group"""
        vehicle = VehicleRepo.get(db, event_id, vehicle_id)
        if not vehicle:
            raise ResourceNotFound("Vehicle not found", context={"vehicle_id": vehicle_id})

        group = TransportService._get_group(db, event_id, group_id)

        if vehicle.status != "available":
            raise VehicleNotAvailable(
                "Vehicle is not available for assignment",
                context={"vehicle_id": vehicle_id, "vehicle_status": vehicle.status},
            )

        if vehicle.capacity < group.total_guests:
            raise CapacityExceeded(
                "Vehicle capacity insufficient for group size",
                context={"vehicle_capacity": vehicle.capacity, "group_size": group.total_guests},
            )

        if group.status != "pending" or group.vehicle_id is not None:
            raise InvalidStatusTransition(
                f"Transport group is '{group.status}'; only pending groups can take a vehicle",
                context={"transport_group_id": group_id, "status": group.status},
            )

        if not VehicleRepo.claim(db, vehicle_id):
            db.rollback()
            raise VehicleNotAvailable(
                "Vehicle was assigned by another request",
                context={"vehicle_id": vehicle_id},
            )

        group.vehicle_id = vehicle.id
        group.assigned_vendor_id = vehicle.vendor_id
        group.status = "assigned"
        group.updated_at = datetime.utcnow()
        db.commit()
        db.refresh(group)
        return group

    @staticmethod
    def unassign_vehicle(db: Session, event_id: int, vehicle_id: int) -> List[int]:
        """Return the vehicle to the pool; its assigned groups go back to pending"""
        vehicle = VehicleRepo.get(db, event_id, vehicle_id)
        if not vehicle:
            raise ResourceNotFound("Vehicle not found", context={"vehicle_id": vehicle_id})

        groups = [
            g for g in TransportGroupRepo.list_for_vehicle(db, event_id, vehicle_id)
            if g.status in VEHICLE_HOLDING_STATUSES
        ]
        moving = [g.id for g in groups if g.status == "in_transit"]
        if moving:
            raise InvalidStatusTransition(
                "Vehicle is in transit and cannot be unassigned",
                context={"transport_group_ids": moving},
            )

        for group in groups:
            TransportService._apply_transition(db, group, "pending")
        # A vehicle out for maintenance stays out of the pool
        if vehicle.status == "assigned":
            VehicleRepo.release(db, vehicle_id)
        db.commit()
        return [g.id for g in groups]

    # -------- Lifecycle --------

    @staticmethod
    def update_group_status(db: Session, event_id: int, group_id: int, status: str) -> TransportGroup:
        group = TransportService._get_group(db, event_id, group_id)
        TransportService._apply_transition(db, group, status)
        db.commit()
        db.refresh(group)
        return group

    @staticmethod
    def confirm_pickup(db: Session, event_id: int, group_id: int, guest_id: int) -> TransportGroup:
        """Mark a guest's party as picked up; the last pickup completes the group"""
        group = TransportService._get_group(db, event_id, group_id)
        if group.status not in VEHICLE_HOLDING_STATUSES:
            raise InvalidStatusTransition(
                f"Pickups cannot be confirmed for a '{group.status}' transport group",
                context={"transport_group_id": group_id, "status": group.status},
            )

        allocation = next((a for a in group.allocations if a.guest_id == guest_id), None)
        if allocation is None:
            raise ResourceNotFound(
                "Guest is not allocated to this transport group",
                context={"guest_id": guest_id, "transport_group_id": group_id},
            )

        if not allocation.picked_up:
            allocation.picked_up = True
            allocation.confirmed = True
            group.guests_picked_up = (group.guests_picked_up or 0) + allocation.seat_demand

        if group.guests_picked_up >= group.total_guests:
            TransportService._apply_transition(db, group, "completed")

        group.updated_at = datetime.utcnow()
        db.commit()
        db.refresh(group)
        return group

    @staticmethod
    def _apply_transition(db: Session, group: TransportGroup, target: str) -> None:
        if target not in ALLOWED_TRANSITIONS:
            raise InvalidStatusTransition(f"Unknown transport group status '{target}'")

        if target not in ALLOWED_TRANSITIONS[group.status]:
            raise InvalidStatusTransition(
                f"Cannot move transport group from '{group.status}' to '{target}'",
                context={"transport_group_id": group.id, "from": group.status, "to": target},
            )

        if target == "assigned" and group.vehicle_id is None:
            raise InvalidStatusTransition(
                "Assign a vehicle to move a group to 'assigned'",
                context={"transport_group_id": group.id},
            )

        if target == "pending":
            if group.vehicle_id:
                VehicleRepo.release(db, group.vehicle_id)
            group.vehicle_id = None
            group.assigned_vendor_id = None
        elif target == "in_transit":
            VehicleRepo.set_status(db, group.vehicle_id, "in_transit")
        elif target == "completed" and group.vehicle_id:
            VehicleRepo.release(db, group.vehicle_id)

        group.status = target
        group.updated_at = datetime.utcnow()

    @staticmethod
    def set_location_representative(
        db: Session,
        event_id: int,
        group_id: int,
        rep_id: Optional[int],
    ) -> TransportGroup:
        group = TransportService._get_group(db, event_id, group_id)
        if rep_id is not None and not TransportGroupRepo.get_representative(db, event_id, rep_id):
            raise ResourceNotFound("Location representative not found", context={"rep_id": rep_id})

        group.location_rep_id = rep_id
        db.commit()
        db.refresh(group)
        return group

    # -------- Delay drift --------

    @staticmethod
    def check_for_transport_updates(db: Session, event_id: int) -> Dict:
        """Find allocations whose guest's current travel time left the group window"""
        modified = []
        for group in TransportGroupRepo.list_for_event(db, event_id):
            if group.status == "completed" or group.window_start is None or group.window_end is None:
                continue

            for allocation in group.allocations:
                record = TravelRepo.get_for_guest(db, event_id, allocation.guest_id)
                reason = None
                current = None
                if record is None or record.status == "cancelled" or not record.needs_transportation:
                    reason = "no_longer_travelling"
                else:
                    try:
                        current = member_from_record(record, group.direction).moment
                    except UngroupableRecord:
                        reason = "missing_travel_time"
                    else:
                        if not group.window_start <= current <= group.window_end:
                            reason = "outside_window"

                if reason:
                    modified.append({
                        "guest_id": allocation.guest_id,
                        "guest_name": allocation.guest.name if allocation.guest else None,
                        "transport_group_id": group.id,
                        "reason": reason,
                        "current_time": current.isoformat() if current else None,
                    })

        return {"needs_update": bool(modified), "modified_guests": modified}

    # -------- Helpers --------

    @staticmethod
    def _get_group(db: Session, event_id: int, group_id: int) -> TransportGroup:
        group = TransportGroupRepo.get(db, event_id, group_id)
        if not group:
            raise ResourceNotFound("Transport group not found", context={"transport_group_id": group_id})
        return group

    @staticmethod
    def serialize_group(group: TransportGroup, include_allocations: bool = False) -> Dict:
        data = {
            "id": group.id,
            "name": group.name,
            "direction": group.direction,
            "pickup_location": group.pickup_location,
            "pickup_time": group.pickup_time.isoformat() if group.pickup_time else None,
            "window_start": group.window_start.isoformat() if group.window_start else None,
            "window_end": group.window_end.isoformat() if group.window_end else None,
            "dropoff_location": group.dropoff_location,
            "vehicle_id": group.vehicle_id,
            "assigned_vendor_id": group.assigned_vendor_id,
            "location_rep_id": group.location_rep_id,
            "status": group.status,
            "guests_picked_up": group.guests_picked_up,
            "total_guests": group.total_guests,
            "is_auto_generated": group.is_auto_generated,
            "needs_split": group.needs_split,
        }
        if include_allocations:
            data["allocations"] = [
                {
                    "id": a.id,
                    "guest_id": a.guest_id,
                    "guest_name": a.guest.name if a.guest else None,
                    "seat_demand": a.seat_demand,
                    "includes_plus_one": a.includes_plus_one,
                    "children_count": a.children_count,
                    "confirmed": a.confirmed,
                    "picked_up": a.picked_up,
                }
                for a in group.allocations
            ]
        return data
