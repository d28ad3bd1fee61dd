"""
Transport group and location representative schemas
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field, field_validator

from app.models.transport import DIRECTIONS, GROUP_STATUSES

class TransportGroupCreate(BaseModel):
    """Manually defined transport group"""
    guest_ids: List[int] = Field(..., min_length=1)
    direction: str = "arrival"
    name: Optional[str] = None
    pickup_location: Optional[str] = None
    pickup_time: Optional[datetime] = None
    dropoff_location: Optional[str] = None

    @field_validator("direction")
    @classmethod
    def validate_direction(cls, v):
        if v not in DIRECTIONS:
            raise ValueError("Direction must be arrival or departure")
        return v

class GroupStatusUpdate(BaseModel):
    status: str

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        if v not in GROUP_STATUSES:
            raise ValueError(f"Status must be one of: {', '.join(GROUP_STATUSES)}")
        return v

class PickupConfirmation(BaseModel):
    guest_id: int

class RepresentativeCreate(BaseModel):
    name: str
    location_type: Optional[str] = None
    location_name: Optional[str] = None
    terminal_gate: Optional[str] = None
    phone: Optional[str] = None
    whatsapp_number: Optional[str] = None
    login_credentials: Optional[Dict[str, Any]] = None

class RepresentativeResponse(BaseModel):
    id: int
    event_id: int
    name: str
    location_type: Optional[str] = None
    location_name: Optional[str] = None
    terminal_gate: Optional[str] = None
    phone: Optional[str] = None
    whatsapp_number: Optional[str] = None
    status: Optional[str] = None

    class Config:
        from_attributes = True

class RepresentativeAssignment(BaseModel):
    rep_id: Optional[int] = None
