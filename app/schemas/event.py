"""
Event-related Pydantic schemas
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel

class EventResponse(BaseModel):
    """Basic event response with its transport settings"""
    id: int
    name: str
    date: datetime
    organizer_email: str
    public_code: str
    arrival_buffer_time: Optional[str] = None
    departure_buffer_time: Optional[str] = None
    default_pickup_location: Optional[str] = None
    dropoff_location: Optional[str] = None
    transport_version: int = 0

    class Config:
        from_attributes = True

class TravelSettingsUpdate(BaseModel):
    """Partial update of an event's transport settings"""
    arrival_buffer_time: Optional[str] = None
    departure_buffer_time: Optional[str] = None
    default_pickup_location: Optional[str] = None
    dropoff_location: Optional[str] = None

class CoordinationStatus(BaseModel):
    """Flight coordination progress for an event"""
    total_guests_needing_assistance: int
    guests_with_flight_info: int
    confirmed_flights: int
    exported: bool
    last_export_date: Optional[datetime] = None
    notifications_sent: int
    last_notification_date: Optional[datetime] = None
    workflow_completion: int
