"""
Admin API routes - requires authentication
"""

from typing import Optional
from fastapi import APIRouter, Depends, UploadFile, File, Query
from fastapi.responses import Response
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.db import get_db
from app.models import LocationRepresentative
from app.schemas.event import EventResponse, TravelSettingsUpdate
from app.schemas.travel import (
    ImportRequest, NotificationRequest, TravelRecordUpsert, DelayUpdate,
    TravelStatusUpdate, TravelRecordResponse
)
from app.schemas.transport import (
    TransportGroupCreate, GroupStatusUpdate, PickupConfirmation,
    RepresentativeCreate, RepresentativeResponse, RepresentativeAssignment
)
from app.services.coordination_service import CoordinationService
from app.services.manifest_file_service import ManifestFileService
from app.services.transport_service import TransportService
from app.services.broadcast_service import BroadcastService
from app.services.repositories import EventRepo, TransportGroupRepo
from app.api.ws import websocket_manager
from app.utils.security import verify_admin_token
from app.utils.responses import success_response, error_response, not_found_error

router = APIRouter()

# Live dashboard updates
broadcast_service = BroadcastService(websocket_manager)

MEDIA_TYPES = {
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "csv": "text/csv",
}

# -------- Flight coordination --------

@router.get("/events/{event_id}/flight-coordination-status")
async def get_flight_coordination_status(
    event_id: int,
    db: Session = Depends(get_db),
    token: str = Depends(verify_admin_token)
):
    """Get flight coordination progress for an event"""
    status = CoordinationService.get_coordination_status(db, event_id)

    return success_response(
        message="Flight coordination status retrieved",
        data=status
    )

@router.post("/events/{event_id}/export-flight-list")
async def export_flight_list(
    event_id: int,
    db: Session = Depends(get_db),
    token: str = Depends(verify_admin_token)
):
    """Export the flight manifest for the travel agent"""
    rows = CoordinationService.export_flight_list(db, event_id)

    return success_response(
        message=f"Exported {len(rows)} guests",
        data={
            "rows": [row.model_dump() for row in rows],
            "total": len(rows)
        }
    )

@router.get("/events/{event_id}/export/flight-list.{file_format}")
async def download_flight_list(
    event_id: int,
    file_format: str,
    db: Session = Depends(get_db),
    token: str = Depends(verify_admin_token)
):
    """Download the flight manifest as an Excel or CSV file"""
    if file_format not in MEDIA_TYPES:
        return error_response(
            message="Unsupported format. Use .xlsx or .csv",
            status_code=400
        )

    rows = CoordinationService.export_flight_list(db, event_id)
    content = ManifestFileService.export_manifest(rows, file_format)

    return Response(
        content=content,
        media_type=MEDIA_TYPES[file_format],
        headers={"Content-Disposition": f"attachment; filename=flight_list_{event_id}.{file_format}"}
    )

@router.post("/events/{event_id}/import-flight-details")
async def import_flight_details(
    event_id: int,
    import_data: ImportRequest,
    db: Session = Depends(get_db),
    token: str = Depends(verify_admin_token)
):
    """Import corrected flight details from the travel agent"""
    result = CoordinationService.import_flight_details(db, event_id, import_data.flight_data)

    return success_response(
        message=f"Processed {len(import_data.flight_data)} rows",
        data=result
    )

@router.post("/events/{event_id}/import-flight-details/upload")
async def upload_flight_details(
    event_id: int,
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    token: str = Depends(verify_admin_token)
):
    """Import flight details from an uploaded manifest file"""
    if not EventRepo.get_by_id(db, event_id):
        raise not_found_error("Event")

    # Validate file type
    if not file.filename.endswith(('.xlsx', '.xls', '.csv')):
        return error_response(
            message="Invalid file format. Please upload an Excel (.xlsx) or CSV file",
            status_code=400
        )

    file_content = await file.read()
    if len(file_content) > settings.MAX_UPLOAD_SIZE:
        return error_response(
            message="File too large",
            status_code=413
        )

    rows, errors = ManifestFileService.parse_manifest(file_content, file.filename)
    if not rows and errors:
        return error_response(
            message="Manifest file validation failed",
            details=errors,
            status_code=422
        )

    result = CoordinationService.import_flight_details(db, event_id, rows)
    result["file_errors"] = errors

    return success_response(
        message=f"Processed {len(rows)} rows from {file.filename}",
        data=result
    )

@router.post("/events/{event_id}/send-flight-notifications")
async def send_flight_notifications(
    event_id: int,
    request: NotificationRequest,
    db: Session = Depends(get_db),
    token: str = Depends(verify_admin_token)
):
    """Send flight notifications to guests"""
    result = CoordinationService.send_flight_notifications(
        db, event_id, request.type, request.guest_ids
    )

    return success_response(
        message=f"Sent {result['sent_count']} {request.type} notifications",
        data=result
    )

# -------- Transport groups --------

@router.post("/events/{event_id}/regenerate-transport-from-flights")
async def regenerate_transport_from_flights(
    event_id: int,
    direction: str = Query("arrival", pattern="^(arrival|departure)$"),
    db: Session = Depends(get_db),
    token: str = Depends(verify_admin_token)
):
    """Rebuild automatic transport groups from current travel data"""
    result = TransportService.regenerate_transport_groups(db, event_id, direction)

    await broadcast_service.broadcast_regeneration(event_id, result)

    return success_response(
        message=f"Created {result['groups_created']} transport groups",
        data=result
    )

@router.get("/events/{event_id}/check-transport-updates")
async def check_transport_updates(
    event_id: int,
    db: Session = Depends(get_db),
    token: str = Depends(verify_admin_token)
):
    """List allocations whose travel times drifted out of their group window"""
    if not EventRepo.get_by_id(db, event_id):
        raise not_found_error("Event")

    result = TransportService.check_for_transport_updates(db, event_id)

    return success_response(
        message="Transport update check complete",
        data=result
    )

@router.get("/events/{event_id}/transport-groups")
async def list_transport_groups(
    event_id: int,
    direction: Optional[str] = None,
    db: Session = Depends(get_db),
    token: str = Depends(verify_admin_token)
):
    """List transport groups for an event"""
    if not EventRepo.get_by_id(db, event_id):
        raise not_found_error("Event")

    groups = TransportGroupRepo.list_for_event(db, event_id, direction)

    return success_response(
        message=f"Found {len(groups)} transport groups",
        data=[TransportService.serialize_group(g) for g in groups]
    )

@router.post("/events/{event_id}/transport-groups")
async def create_transport_group(
    event_id: int,
    group_data: TransportGroupCreate,
    db: Session = Depends(get_db),
    token: str = Depends(verify_admin_token)
):
    """Create a manual transport group"""
    group = TransportService.create_manual_group(
        db,
        event_id,
        guest_ids=group_data.guest_ids,
        direction=group_data.direction,
        name=group_data.name,
        pickup_location=group_data.pickup_location,
        pickup_time=group_data.pickup_time,
        dropoff_location=group_data.dropoff_location
    )

    return success_response(
        message="Transport group created",
        data=TransportService.serialize_group(group, include_allocations=True),
        status_code=201
    )

@router.get("/events/{event_id}/transport-groups/{group_id}")
async def get_transport_group(
    event_id: int,
    group_id: int,
    db: Session = Depends(get_db),
    token: str = Depends(verify_admin_token)
):
    """Get a transport group with its allocations"""
    group = TransportGroupRepo.get(db, event_id, group_id)
    if not group:
        raise not_found_error("Transport group")

    return success_response(
        message="Transport group retrieved",
        data=TransportService.serialize_group(group, include_allocations=True)
    )

@router.delete("/events/{event_id}/transport-groups/{group_id}")
async def delete_transport_group(
    event_id: int,
    group_id: int,
    db: Session = Depends(get_db),
    token: str = Depends(verify_admin_token)
):
    """Delete a transport group and release its vehicle"""
    TransportService.delete_group(db, event_id, group_id)

    return success_response(message="Transport group deleted")

@router.patch("/events/{event_id}/transport-groups/{group_id}/status")
async def update_transport_group_status(
    event_id: int,
    group_id: int,
    status_data: GroupStatusUpdate,
    db: Session = Depends(get_db),
    token: str = Depends(verify_admin_token)
):
    """Move a transport group through its lifecycle"""
    group = TransportService.update_group_status(db, event_id, group_id, status_data.status)
    data = TransportService.serialize_group(group)

    await broadcast_service.broadcast_group_update(event_id, data)

    return success_response(
        message=f"Transport group is now {group.status}",
        data=data
    )

@router.post("/events/{event_id}/transport-groups/{group_id}/pickups")
async def confirm_pickup(
    event_id: int,
    group_id: int,
    pickup: PickupConfirmation,
    db: Session = Depends(get_db),
    token: str = Depends(verify_admin_token)
):
    """Confirm that a guest's party was picked up"""
    group = TransportService.confirm_pickup(db, event_id, group_id, pickup.guest_id)
    data = TransportService.serialize_group(group)

    await broadcast_service.broadcast_group_update(event_id, data, update_type="pickup_confirmed")

    return success_response(
        message=f"{group.guests_picked_up} of {group.total_guests} guests picked up",
        data=data
    )

@router.patch("/events/{event_id}/transport-groups/{group_id}/representative")
async def assign_representative(
    event_id: int,
    group_id: int,
    assignment: RepresentativeAssignment,
    db: Session = Depends(get_db),
    token: str = Depends(verify_admin_token)
):
    """Attach (or clear) the location representative of a group"""
    group = TransportService.set_location_representative(db, event_id, group_id, assignment.rep_id)

    return success_response(
        message="Location representative updated",
        data=TransportService.serialize_group(group)
    )

# -------- Location representatives --------

@router.get("/events/{event_id}/representatives")
async def list_representatives(
    event_id: int,
    db: Session = Depends(get_db),
    token: str = Depends(verify_admin_token)
):
    """List location representatives for an event"""
    reps = TransportGroupRepo.list_representatives(db, event_id)

    return success_response(
        message=f"Found {len(reps)} representatives",
        data=[RepresentativeResponse.model_validate(r) for r in reps]
    )

@router.post("/events/{event_id}/representatives")
async def create_representative(
    event_id: int,
    rep_data: RepresentativeCreate,
    db: Session = Depends(get_db),
    token: str = Depends(verify_admin_token)
):
    """Register an airport or station representative"""
    if not EventRepo.get_by_id(db, event_id):
        raise not_found_error("Event")

    rep = LocationRepresentative(event_id=event_id, **rep_data.model_dump())
    db.add(rep)
    db.commit()
    db.refresh(rep)

    return success_response(
        message="Representative created",
        data=RepresentativeResponse.model_validate(rep),
        status_code=201
    )

# -------- Travel records and settings --------

@router.put("/guests/{guest_id}/travel")
async def upsert_guest_travel(
    guest_id: int,
    travel_data: TravelRecordUpsert,
    db: Session = Depends(get_db),
    token: str = Depends(verify_admin_token)
):
    """Create or update a guest's travel record"""
    record, created = CoordinationService.upsert_for_guest_id(db, guest_id, travel_data)

    return success_response(
        message="Travel record created" if created else "Travel record updated",
        data=TravelRecordResponse.model_validate(record),
        status_code=201 if created else 200
    )

@router.patch("/travel-records/{record_id}/delay")
async def report_delay(
    record_id: int,
    delay: DelayUpdate,
    db: Session = Depends(get_db),
    token: str = Depends(verify_admin_token)
):
    """Record a delay; regenerate transport to re-cluster"""
    record = CoordinationService.report_delay(db, record_id, delay.delay_minutes)

    return success_response(
        message="Delay recorded",
        data=TravelRecordResponse.model_validate(record)
    )

@router.patch("/travel-records/{record_id}/status")
async def update_travel_status(
    record_id: int,
    status_data: TravelStatusUpdate,
    db: Session = Depends(get_db),
    token: str = Depends(verify_admin_token)
):
    """Update a travel record's status"""
    record = CoordinationService.update_travel_status(db, record_id, status_data.status)

    return success_response(
        message=f"Travel record is now {record.status}",
        data=TravelRecordResponse.model_validate(record)
    )

@router.patch("/events/{event_id}/travel-settings")
async def update_travel_settings(
    event_id: int,
    settings_data: TravelSettingsUpdate,
    db: Session = Depends(get_db),
    token: str = Depends(verify_admin_token)
):
    """Update buffer times and default pickup/dropoff locations"""
    event = CoordinationService.update_travel_settings(db, event_id, settings_data)

    return success_response(
        message="Travel settings updated",
        data=EventResponse.model_validate(event)
    )
