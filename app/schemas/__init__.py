"""
Pydantic schemas package
"""

from .common import *
from .event import *
from .travel import *
from .vehicle import *
from .transport import *

__all__ = [
    "StandardResponse",
    "ErrorResponse",
    "EventResponse",
    "TravelSettingsUpdate",
    "CoordinationStatus",
    "ManifestRow",
    "ImportRequest",
    "NotificationRequest",
    "TravelRecordUpsert",
    "DelayUpdate",
    "TravelStatusUpdate",
    "GuestTravelSubmission",
    "TravelRecordResponse",
    "VendorCreate",
    "VendorResponse",
    "VehicleCreate",
    "VehicleUpdate",
    "VehicleStatusUpdate",
    "VehicleResponse",
    "AssignVehicleRequest",
    "TransportGroupCreate",
    "GroupStatusUpdate",
    "PickupConfirmation",
    "RepresentativeCreate",
    "RepresentativeResponse",
    "RepresentativeAssignment",
]
