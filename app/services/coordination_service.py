"""
Travel-agent coordination workflow: status, manifest export/import,
guest notifications and travel record upkeep.
"""

import logging
import math
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy.orm import Session

from app.core.exceptions import (
    AmbiguousGuestMatch,
    GuestMatchError,
    GuestNotFound,
    ResourceNotFound,
)
from app.models import Event, Guest, TravelRecord
from app.models.travel import normalize_travel_mode
from app.schemas.event import CoordinationStatus, TravelSettingsUpdate
from app.schemas.travel import ManifestRow, TravelRecordUpsert
from app.services.buffer_service import format_buffer_time, parse_buffer_time
from app.services.notification_service import NotificationError, get_notifier
from app.services.repositories import EventRepo, GuestRepo, TravelRepo

logger = logging.getLogger(__name__)

# Manifest field -> travel record attribute
MANIFEST_TO_RECORD = {
    "flight_number": "flight_number",
    "airline": "airline",
    "arrival_time": "scheduled_arrival",
    "actual_arrival_time": "actual_arrival",
    "departure_time": "scheduled_departure",
    "origin_airport": "origin_location",
    "destination_airport": "arrival_location",
}


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class CoordinationService:
    """Service for travel agent coordination"""

    @staticmethod
    def _get_event(db: Session, event_id: int) -> Event:
        event = EventRepo.get_by_id(db, event_id)
        if not event:
            raise ResourceNotFound("Event not found", context={"event_id": event_id})
        return event

    @staticmethod
    def get_coordination_status(db: Session, event_id: int) -> CoordinationStatus:
        """Counts of assisted guests, their travel info and confirmations"""
        event = CoordinationService._get_event(db, event_id)
        guests = GuestRepo.list_needing_assistance(db, event_id)

        total = len(guests)
        with_info = sum(1 for g in guests if g.travel_record is not None)
        confirmed = sum(
            1 for g in guests
            if g.travel_record is not None and g.travel_record.status == "confirmed"
        )

        completion = round_half_up(((with_info + confirmed) / (total * 2)) * 100) if total else 100

        return CoordinationStatus(
            total_guests_needing_assistance=total,
            guests_with_flight_info=with_info,
            confirmed_flights=confirmed,
            exported=bool(event.flight_list_exported),
            last_export_date=event.flight_list_export_date,
            notifications_sent=event.flight_notifications_sent or 0,
            last_notification_date=event.last_flight_notification_date,
            workflow_completion=completion,
        )

    # -------- Export --------

    @staticmethod
    def build_manifest_row(guest: Guest, record: Optional[TravelRecord]) -> ManifestRow:
        travel_mode = (
            normalize_travel_mode(record.arrival_mode if record else None)
            or normalize_travel_mode(guest.travel_mode)
        )
        return ManifestRow(
            guest_name=guest.name,
            email=guest.email,
            phone=guest.phone,
            travel_mode=travel_mode,
            preferred_arrival_date=guest.arrival_date,
            preferred_departure_date=guest.departure_date,
            accommodation_preference=guest.accommodation_preference,
            dietary_restrictions=guest.dietary_restrictions,
            special_requests=guest.special_requests,
            flight_number=record.flight_number if record else None,
            airline=record.airline if record else None,
            arrival_time=record.scheduled_arrival if record else None,
            actual_arrival_time=record.actual_arrival if record else None,
            departure_time=record.scheduled_departure if record else None,
            origin_airport=record.origin_location if record else None,
            destination_airport=record.arrival_location if record else None,
        )

    @staticmethod
    def export_flight_list(db: Session, event_id: int) -> List[ManifestRow]:
        """One manifest row per guest needing assistance; marks the list exported"""
        event = CoordinationService._get_event(db, event_id)
        guests = GuestRepo.list_needing_assistance(db, event_id)
        rows = [CoordinationService.build_manifest_row(g, g.travel_record) for g in guests]

        event.flight_list_exported = True
        event.flight_list_export_date = datetime.utcnow()
        db.commit()

        logger.info(f"Exported flight list for event {event_id} ({len(rows)} guests)")
        return rows

    # -------- Import --------

    @staticmethod
    def reconcile_guest(db: Session, event_id: int, row: ManifestRow) -> Guest:
        """Find the single guest a manifest row refers to.

        Email is tried first, then the exact name (both case-insensitive).
        """
        candidates: List[Guest] = []
        if row.email:
            candidates = GuestRepo.match_by_email(db, event_id, row.email)
        if not candidates and row.guest_name:
            candidates = GuestRepo.match_by_exact_name(db, event_id, row.guest_name)

        if len(candidates) > 1:
            raise AmbiguousGuestMatch(
                f"{len(candidates)} guests match '{row.email or row.guest_name}'",
                context={"guest_ids": [g.id for g in candidates]},
            )
        if not candidates:
            raise GuestNotFound(
                f"No guest matches '{row.email or row.guest_name}'",
                context={"email": row.email, "guest_name": row.guest_name},
            )
        return candidates[0]

    @staticmethod
    def _apply_manifest_row(record: TravelRecord, row: ManifestRow) -> bool:
        changed = False
        for field, attribute in MANIFEST_TO_RECORD.items():
            value = getattr(row, field)
            if value is not None and getattr(record, attribute) != value:
                setattr(record, attribute, value)
                changed = True

        if row.travel_mode and record.arrival_mode != row.travel_mode:
            record.arrival_mode = row.travel_mode
            changed = True

        if record.status != "confirmed":
            record.status = "confirmed"
            changed = True
        return changed

    @staticmethod
    def import_flight_details(db: Session, event_id: int, rows: Iterable[ManifestRow]) -> Dict:
        """Upsert travel records from a corrected manifest.

        Each row commits on its own; rows that cannot be matched are
        reported and skipped.
        """
        CoordinationService._get_event(db, event_id)

        counts = {"updated": 0, "created": 0, "unchanged": 0, "skipped": 0}
        outcomes = []

        for index, row in enumerate(rows, start=1):
            outcome = {"row": index, "guest_name": row.guest_name, "email": row.email}
            try:
                guest = CoordinationService.reconcile_guest(db, event_id, row)
            except GuestMatchError as e:
                logger.warning(f"Import row {index} skipped: {e.message}")
                counts["skipped"] += 1
                outcome.update({"outcome": "skipped", "error_code": e.error_code, "message": e.message})
                outcomes.append(outcome)
                continue

            outcome["guest_id"] = guest.id
            record = TravelRepo.get_for_guest(db, event_id, guest.id)

            try:
                if not row.has_travel_data():
                    result = "unchanged"
                elif record is None:
                    record = TravelRecord(
                        guest_id=guest.id,
                        event_id=event_id,
                        arrival_mode=row.travel_mode or normalize_travel_mode(guest.travel_mode) or "air",
                        needs_transportation=True,
                    )
                    CoordinationService._apply_manifest_row(record, row)
                    db.add(record)
                    result = "created"
                elif CoordinationService._apply_manifest_row(record, row):
                    record.updated_at = datetime.utcnow()
                    result = "updated"
                else:
                    result = "unchanged"
                db.commit()
            except Exception:
                db.rollback()
                raise

            counts[result] += 1
            outcome["outcome"] = result
            outcomes.append(outcome)

        logger.info(
            f"Imported flight details for event {event_id}: {counts['created']} created, "
            f"{counts['updated']} updated, {counts['unchanged']} unchanged, {counts['skipped']} skipped"
        )
        return {
            "updated_count": counts["updated"],
            "created_count": counts["created"],
            "unchanged_count": counts["unchanged"],
            "skipped_count": counts["skipped"],
            "total_processed": counts["updated"] + counts["created"],
            "rows": outcomes,
        }

    # -------- Notifications --------

    @staticmethod
    def send_flight_notifications(
        db: Session,
        event_id: int,
        notification_type: str,
        guest_ids: Optional[List[int]] = None,
    ) -> Dict:
        """Notify each guest once; a failure for one guest does not stop the batch"""
        event = CoordinationService._get_event(db, event_id)

        missing: List[int] = []
        if guest_ids:
            requested = list(dict.fromkeys(guest_ids))
            guests = GuestRepo.get_many(db, event_id, requested)
            missing = [gid for gid in requested if gid not in {g.id for g in guests}]
        else:
            guests = GuestRepo.list_needing_assistance(db, event_id)

        notifier = get_notifier()
        results = [{"guest_id": gid, "sent": False, "error": "Guest not found"} for gid in missing]
        sent = 0
        for guest in guests:
            try:
                notifier.send(event, guest, notification_type, guest.travel_record)
            except NotificationError as e:
                logger.warning(f"Notification to guest {guest.id} failed: {e}")
                results.append({"guest_id": guest.id, "sent": False, "error": str(e)})
                continue
            except Exception as e:
                logger.exception(f"Notification delivery to guest {guest.id} raised {type(e).__name__}")
                results.append({"guest_id": guest.id, "sent": False, "error": f"Delivery error: {e}"})
                continue
            sent += 1
            results.append({"guest_id": guest.id, "sent": True})

        event.flight_notifications_sent = (event.flight_notifications_sent or 0) + sent
        event.last_flight_notification_date = datetime.utcnow()
        db.commit()

        return {
            "notification_type": notification_type,
            "sent_count": sent,
            "failed_count": len(results) - sent,
            "results": results,
        }

    # -------- Travel records --------

    @staticmethod
    def _apply_upsert(record: TravelRecord, data: TravelRecordUpsert) -> None:
        for field, value in data.model_dump(exclude_unset=True, exclude={"public_code", "name"}).items():
            if value is not None:
                setattr(record, field, value)

    @staticmethod
    def upsert_travel_record(db: Session, guest: Guest, data: TravelRecordUpsert) -> Tuple[TravelRecord, bool]:
        """Create or update a guest's travel record; returns (record, created)"""
        record = TravelRepo.get_for_guest(db, guest.event_id, guest.id)
        created = record is None
        if created:
            record = TravelRecord(
                guest_id=guest.id,
                event_id=guest.event_id,
                arrival_mode=normalize_travel_mode(guest.travel_mode) or "air",
                status="scheduled",
                delay_minutes=0,
                needs_transportation=True,
            )
            db.add(record)

        CoordinationService._apply_upsert(record, data)
        record.updated_at = datetime.utcnow()
        db.commit()
        db.refresh(record)
        return record, created

    @staticmethod
    def upsert_for_guest_id(db: Session, guest_id: int, data: TravelRecordUpsert) -> Tuple[TravelRecord, bool]:
        guest = db.query(Guest).filter(Guest.id == guest_id).first()
        if not guest:
            raise ResourceNotFound("Guest not found", context={"guest_id": guest_id})
        return CoordinationService.upsert_travel_record(db, guest, data)

    @staticmethod
    def submit_guest_travel(db: Session, public_code: str, name: str, data: TravelRecordUpsert) -> TravelRecord:
        """Guest self-service: find the guest by event code and exact name"""
        event = EventRepo.get_by_public_code(db, public_code)
        if not event:
            raise ResourceNotFound("Event not found", context={"public_code": public_code})

        matches = GuestRepo.match_by_exact_name(db, event.id, name)
        if len(matches) > 1:
            raise AmbiguousGuestMatch(
                "More than one guest has this name; contact the organiser",
                context={"guest_name": name},
            )
        if not matches:
            raise GuestNotFound("Guest not found", context={"guest_name": name})

        record, _ = CoordinationService.upsert_travel_record(db, matches[0], data)
        return record

    @staticmethod
    def _get_record(db: Session, record_id: int) -> TravelRecord:
        record = TravelRepo.get_by_id(db, record_id)
        if not record:
            raise ResourceNotFound("Travel record not found", context={"travel_record_id": record_id})
        return record

    @staticmethod
    def report_delay(db: Session, record_id: int, delay_minutes: int) -> TravelRecord:
        """Record a delay; groups only move on the next regeneration.

        The effective arrival is derived from the schedule, so a later
        schedule correction carries the delay along.
        """
        record = CoordinationService._get_record(db, record_id)
        record.delay_minutes = delay_minutes
        if delay_minutes > 0:
            record.status = "delayed"
        elif record.status == "delayed":
            record.status = "scheduled"
        record.updated_at = datetime.utcnow()
        db.commit()
        db.refresh(record)
        return record

    @staticmethod
    def update_travel_status(db: Session, record_id: int, status: str) -> TravelRecord:
        record = CoordinationService._get_record(db, record_id)
        record.status = status
        record.updated_at = datetime.utcnow()
        db.commit()
        db.refresh(record)
        return record

    # -------- Event transport settings --------

    @staticmethod
    def update_travel_settings(db: Session, event_id: int, data: TravelSettingsUpdate) -> Event:
        """Update buffers and default locations; malformed buffers raise ConfigError"""
        event = CoordinationService._get_event(db, event_id)
        updates = data.model_dump(exclude_unset=True)

        for field in ("arrival_buffer_time", "departure_buffer_time"):
            value = updates.get(field)
            if value is not None:
                updates[field] = format_buffer_time(parse_buffer_time(value))

        for field, value in updates.items():
            setattr(event, field, value)
        db.commit()
        db.refresh(event)
        return event
