"""
Vendor and vehicle schemas
"""

from typing import Optional
from pydantic import BaseModel, EmailStr, Field, field_validator

from app.models.vendor import VEHICLE_STATUSES

class VendorCreate(BaseModel):
    name: str
    contact_person: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[EmailStr] = None
    whatsapp_number: Optional[str] = None

class VendorResponse(BaseModel):
    id: int
    name: str
    contact_person: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    whatsapp_number: Optional[str] = None
    status: Optional[str] = None

    class Config:
        from_attributes = True

class VehicleCreate(BaseModel):
    vehicle_type: str
    capacity: int = Field(..., gt=0)
    vendor_id: Optional[int] = None
    vehicle_name: Optional[str] = None
    plate_number: Optional[str] = None
    driver_name: Optional[str] = None
    driver_phone: Optional[str] = None
    current_location: Optional[str] = None
    notes: Optional[str] = None

class VehicleUpdate(BaseModel):
    vehicle_type: Optional[str] = None
    capacity: Optional[int] = Field(None, gt=0)
    vendor_id: Optional[int] = None
    vehicle_name: Optional[str] = None
    plate_number: Optional[str] = None
    driver_name: Optional[str] = None
    driver_phone: Optional[str] = None
    current_location: Optional[str] = None
    notes: Optional[str] = None

class VehicleStatusUpdate(BaseModel):
    status: str

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        if v not in VEHICLE_STATUSES:
            raise ValueError(f"Status must be one of: {', '.join(VEHICLE_STATUSES)}")
        return v

class VehicleResponse(BaseModel):
    id: int
    event_id: int
    vendor_id: Optional[int] = None
    vehicle_type: str
    vehicle_name: Optional[str] = None
    capacity: int
    plate_number: Optional[str] = None
    driver_name: Optional[str] = None
    driver_phone: Optional[str] = None
    status: str
    current_location: Optional[str] = None
    notes: Optional[str] = None

    class Config:
        from_attributes = True

class AssignVehicleRequest(BaseModel):
    transport_group_id: int
