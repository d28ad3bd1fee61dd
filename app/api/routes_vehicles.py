"""
Fleet API routes - vendors, vehicles and vehicle assignment (admin only)
"""

from datetime import datetime
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.db import get_db
from app.models import Vehicle, Vendor
from app.schemas.vehicle import (
    VendorCreate, VendorResponse, VehicleCreate, VehicleUpdate,
    VehicleStatusUpdate, VehicleResponse, AssignVehicleRequest
)
from app.services.transport_service import TransportService, VEHICLE_HOLDING_STATUSES
from app.services.broadcast_service import BroadcastService
from app.services.repositories import EventRepo, VehicleRepo, TransportGroupRepo
from app.api.ws import websocket_manager
from app.utils.security import verify_admin_token
from app.utils.responses import success_response, error_response, not_found_error

router = APIRouter()

broadcast_service = BroadcastService(websocket_manager)

def _get_vehicle(db: Session, event_id: int, vehicle_id: int) -> Vehicle:
    vehicle = VehicleRepo.get(db, event_id, vehicle_id)
    if not vehicle:
        raise not_found_error("Vehicle")
    return vehicle

def _check_vendor(db: Session, event_id: int, vendor_id):
    if vendor_id is not None and not VehicleRepo.get_vendor(db, event_id, vendor_id):
        raise not_found_error("Vendor")

# -------- Vendors --------

@router.get("/events/{event_id}/vendors")
async def list_vendors(
    event_id: int,
    db: Session = Depends(get_db),
    token: str = Depends(verify_admin_token)
):
    """List transport vendors for an event"""
    vendors = VehicleRepo.list_vendors(db, event_id)

    return success_response(
        message=f"Found {len(vendors)} vendors",
        data=[VendorResponse.model_validate(v) for v in vendors]
    )

@router.post("/events/{event_id}/vendors")
async def create_vendor(
    event_id: int,
    vendor_data: VendorCreate,
    db: Session = Depends(get_db),
    token: str = Depends(verify_admin_token)
):
    """Register a transport vendor"""
    if not EventRepo.get_by_id(db, event_id):
        raise not_found_error("Event")

    vendor = Vendor(event_id=event_id, **vendor_data.model_dump())
    db.add(vendor)
    db.commit()
    db.refresh(vendor)

    return success_response(
        message="Vendor created",
        data=VendorResponse.model_validate(vendor),
        status_code=201
    )

# -------- Vehicles --------

@router.get("/events/{event_id}/vehicles")
async def list_vehicles(
    event_id: int,
    db: Session = Depends(get_db),
    token: str = Depends(verify_admin_token)
):
    """List the event's fleet"""
    vehicles = VehicleRepo.list_for_event(db, event_id)

    return success_response(
        message=f"Found {len(vehicles)} vehicles",
        data=[VehicleResponse.model_validate(v) for v in vehicles]
    )

@router.post("/events/{event_id}/vehicles")
async def create_vehicle(
    event_id: int,
    vehicle_data: VehicleCreate,
    db: Session = Depends(get_db),
    token: str = Depends(verify_admin_token)
):
    """Add a vehicle to the fleet"""
    if not EventRepo.get_by_id(db, event_id):
        raise not_found_error("Event")
    _check_vendor(db, event_id, vehicle_data.vendor_id)

    vehicle = Vehicle(event_id=event_id, status="available", **vehicle_data.model_dump())
    db.add(vehicle)
    db.commit()
    db.refresh(vehicle)

    return success_response(
        message="Vehicle created",
        data=VehicleResponse.model_validate(vehicle),
        status_code=201
    )

@router.get("/events/{event_id}/vehicles/{vehicle_id}")
async def get_vehicle(
    event_id: int,
    vehicle_id: int,
    db: Session = Depends(get_db),
    token: str = Depends(verify_admin_token)
):
    """Get a vehicle"""
    vehicle = _get_vehicle(db, event_id, vehicle_id)

    return success_response(
        message="Vehicle retrieved",
        data=VehicleResponse.model_validate(vehicle)
    )

@router.put("/events/{event_id}/vehicles/{vehicle_id}")
async def update_vehicle(
    event_id: int,
    vehicle_id: int,
    vehicle_data: VehicleUpdate,
    db: Session = Depends(get_db),
    token: str = Depends(verify_admin_token)
):
    """Update vehicle details"""
    vehicle = _get_vehicle(db, event_id, vehicle_id)
    updates = vehicle_data.model_dump(exclude_unset=True)
    _check_vendor(db, event_id, updates.get("vendor_id"))

    # Capacity may not drop below the load of a group holding the vehicle
    new_capacity = updates.get("capacity")
    if new_capacity is not None:
        held = [
            g for g in TransportGroupRepo.list_for_vehicle(db, event_id, vehicle_id)
            if g.status in VEHICLE_HOLDING_STATUSES
        ]
        largest = max((g.total_guests for g in held), default=0)
        if new_capacity < largest:
            return error_response(
                message="Vehicle capacity insufficient for assigned group",
                error_code="CAPACITY_EXCEEDED",
                details={"vehicle_capacity": new_capacity, "group_size": largest},
                status_code=400
            )

    for field, value in updates.items():
        setattr(vehicle, field, value)
    vehicle.updated_at = datetime.utcnow()
    db.commit()
    db.refresh(vehicle)

    return success_response(
        message="Vehicle updated",
        data=VehicleResponse.model_validate(vehicle)
    )

@router.delete("/events/{event_id}/vehicles/{vehicle_id}")
async def delete_vehicle(
    event_id: int,
    vehicle_id: int,
    db: Session = Depends(get_db),
    token: str = Depends(verify_admin_token)
):
    """Remove a vehicle that no group is holding"""
    vehicle = _get_vehicle(db, event_id, vehicle_id)

    groups = TransportGroupRepo.list_for_vehicle(db, event_id, vehicle_id)
    if any(g.status in VEHICLE_HOLDING_STATUSES for g in groups):
        return error_response(
            message="Vehicle is assigned to a transport group; unassign it first",
            error_code="VEHICLE_IN_USE",
            status_code=400
        )

    # Completed groups keep their history without the vehicle link
    for group in groups:
        group.vehicle_id = None
    db.delete(vehicle)
    db.commit()

    return success_response(message="Vehicle deleted")

@router.patch("/events/{event_id}/vehicles/{vehicle_id}/status")
async def update_vehicle_status(
    event_id: int,
    vehicle_id: int,
    status_data: VehicleStatusUpdate,
    db: Session = Depends(get_db),
    token: str = Depends(verify_admin_token)
):
    """Set a vehicle's status"""
    vehicle = _get_vehicle(db, event_id, vehicle_id)

    groups = [
        g for g in TransportGroupRepo.list_for_vehicle(db, event_id, vehicle_id)
        if g.status in VEHICLE_HOLDING_STATUSES
    ]
    if groups and status_data.status in ("available", "maintenance"):
        return error_response(
            message="Vehicle is held by a transport group; unassign it first",
            error_code="VEHICLE_IN_USE",
            details={"transport_group_ids": [g.id for g in groups]},
            status_code=400
        )
    if not groups and status_data.status in VEHICLE_HOLDING_STATUSES:
        return error_response(
            message=f"Vehicle can only become {status_data.status} through a transport group",
            error_code="VEHICLE_NOT_HELD",
            status_code=400
        )

    vehicle.status = status_data.status
    vehicle.updated_at = datetime.utcnow()
    db.commit()
    db.refresh(vehicle)

    await broadcast_service.broadcast_vehicle_update(event_id, vehicle.id, vehicle.status)

    return success_response(
        message=f"Vehicle is now {vehicle.status}",
        data=VehicleResponse.model_validate(vehicle)
    )

@router.post("/events/{event_id}/vehicles/{vehicle_id}/assign")
async def assign_vehicle(
    event_id: int,
    vehicle_id: int,
    assignment: AssignVehicleRequest,
    db: Session = Depends(get_db),
    token: str = Depends(verify_admin_token)
):
    """Assign an available vehicle to a pending transport group"""
    group = TransportService.assign_vehicle(db, event_id, vehicle_id, assignment.transport_group_id)

    await broadcast_service.broadcast_vehicle_update(event_id, vehicle_id, "assigned", [group.id])

    return success_response(
        message="Vehicle assigned",
        data=TransportService.serialize_group(group)
    )

@router.post("/events/{event_id}/vehicles/{vehicle_id}/unassign")
async def unassign_vehicle(
    event_id: int,
    vehicle_id: int,
    db: Session = Depends(get_db),
    token: str = Depends(verify_admin_token)
):
    """Return a vehicle to the pool; its groups go back to pending"""
    group_ids = TransportService.unassign_vehicle(db, event_id, vehicle_id)

    await broadcast_service.broadcast_vehicle_update(event_id, vehicle_id, "available", group_ids)

    return success_response(
        message="Vehicle unassigned",
        data={"vehicle_id": vehicle_id, "transport_group_ids": group_ids}
    )

@router.get("/events/{event_id}/vehicles/{vehicle_id}/assignments")
async def get_vehicle_assignments(
    event_id: int,
    vehicle_id: int,
    db: Session = Depends(get_db),
    token: str = Depends(verify_admin_token)
):
    """List the transport groups a vehicle has served or is serving"""
    _get_vehicle(db, event_id, vehicle_id)
    groups = TransportGroupRepo.list_for_vehicle(db, event_id, vehicle_id)

    return success_response(
        message=f"Found {len(groups)} assignments",
        data=[TransportService.serialize_group(g) for g in groups]
    )
