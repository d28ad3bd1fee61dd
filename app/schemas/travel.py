"""
Travel record and flight manifest schemas
"""

from datetime import date, datetime, timezone
from typing import List, Optional
from pydantic import BaseModel, Field, field_validator

from app.models.travel import TRAVEL_MODES, TRAVEL_STATUSES, normalize_travel_mode

# Manifest column headers exchanged with travel agents, in export order
MANIFEST_HEADERS = {
    "guest_name": "Guest Name",
    "email": "Email",
    "phone": "Phone",
    "travel_mode": "Travel Mode",
    "preferred_arrival_date": "Preferred Arrival Date",
    "preferred_departure_date": "Preferred Departure Date",
    "accommodation_preference": "Accommodation Preference",
    "dietary_restrictions": "Dietary Restrictions",
    "special_requests": "Special Requests",
    "flight_number": "Flight Number",
    "airline": "Airline",
    "arrival_time": "Arrival Time",
    "actual_arrival_time": "Actual Arrival Time",
    "departure_time": "Departure Time",
    "origin_airport": "Origin Airport",
    "destination_airport": "Destination Airport",
}

# Manifest fields that carry travel data (the rest describe the guest)
MANIFEST_TRAVEL_FIELDS = (
    "flight_number",
    "airline",
    "arrival_time",
    "actual_arrival_time",
    "departure_time",
    "origin_airport",
    "destination_airport",
)

def _naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value

class ManifestRow(BaseModel):
    """One manifest row; accepts snake_case keys or the spreadsheet headers"""
    guest_name: Optional[str] = Field(None, alias="Guest Name")
    email: Optional[str] = Field(None, alias="Email")
    phone: Optional[str] = Field(None, alias="Phone")
    travel_mode: Optional[str] = Field(None, alias="Travel Mode")
    preferred_arrival_date: Optional[date] = Field(None, alias="Preferred Arrival Date")
    preferred_departure_date: Optional[date] = Field(None, alias="Preferred Departure Date")
    accommodation_preference: Optional[str] = Field(None, alias="Accommodation Preference")
    dietary_restrictions: Optional[str] = Field(None, alias="Dietary Restrictions")
    special_requests: Optional[str] = Field(None, alias="Special Requests")
    flight_number: Optional[str] = Field(None, alias="Flight Number")
    airline: Optional[str] = Field(None, alias="Airline")
    arrival_time: Optional[datetime] = Field(None, alias="Arrival Time")
    actual_arrival_time: Optional[datetime] = Field(None, alias="Actual Arrival Time")
    departure_time: Optional[datetime] = Field(None, alias="Departure Time")
    origin_airport: Optional[str] = Field(None, alias="Origin Airport")
    destination_airport: Optional[str] = Field(None, alias="Destination Airport")

    class Config:
        populate_by_name = True

    @field_validator("*", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        # Blank cells never overwrite stored values
        if isinstance(v, str):
            v = v.strip()
            return v or None
        return v

    @field_validator("travel_mode")
    @classmethod
    def normalize_mode(cls, v):
        if v is None:
            return v
        mode = normalize_travel_mode(v)
        if mode is None:
            raise ValueError(f"Travel mode must be one of: {', '.join(TRAVEL_MODES)}")
        return mode

    @field_validator("arrival_time", "actual_arrival_time", "departure_time")
    @classmethod
    def strip_timezone(cls, v):
        return _naive_utc(v)

    def has_travel_data(self) -> bool:
        return any(getattr(self, name) is not None for name in MANIFEST_TRAVEL_FIELDS)

class ImportRequest(BaseModel):
    """Corrected manifest rows from a travel agent"""
    flight_data: List[ManifestRow]

class NotificationRequest(BaseModel):
    type: str
    guest_ids: Optional[List[int]] = None

    @field_validator("type")
    @classmethod
    def validate_type(cls, v):
        if v not in ("confirmation", "reminder", "update"):
            raise ValueError("Notification type must be confirmation, reminder or update")
        return v

class TravelRecordUpsert(BaseModel):
    """Planner-side create/update of a guest's travel record"""
    arrival_mode: Optional[str] = None
    departure_mode: Optional[str] = None
    flight_number: Optional[str] = None
    airline: Optional[str] = None
    scheduled_arrival: Optional[datetime] = None
    scheduled_departure: Optional[datetime] = None
    actual_arrival: Optional[datetime] = None
    origin_location: Optional[str] = None
    arrival_location: Optional[str] = None
    departure_location: Optional[str] = None
    terminal: Optional[str] = None
    needs_transportation: Optional[bool] = None

    @field_validator("arrival_mode", "departure_mode")
    @classmethod
    def validate_mode(cls, v):
        if v is None:
            return v
        mode = normalize_travel_mode(v)
        if mode is None:
            raise ValueError(f"Travel mode must be one of: {', '.join(TRAVEL_MODES)}")
        return mode

    @field_validator("scheduled_arrival", "scheduled_departure", "actual_arrival")
    @classmethod
    def strip_timezone(cls, v):
        return _naive_utc(v)

class DelayUpdate(BaseModel):
    delay_minutes: int = Field(..., ge=0)

class TravelStatusUpdate(BaseModel):
    status: str

    @field_validator("status")
    @classmethod
    def validate_status(cls, v):
        if v not in TRAVEL_STATUSES:
            raise ValueError(f"Status must be one of: {', '.join(TRAVEL_STATUSES)}")
        return v

class GuestTravelSubmission(TravelRecordUpsert):
    """Guest self-service travel details"""
    public_code: str
    name: str

class TravelRecordResponse(BaseModel):
    id: int
    guest_id: int
    event_id: int
    arrival_mode: Optional[str] = None
    departure_mode: Optional[str] = None
    flight_number: Optional[str] = None
    airline: Optional[str] = None
    scheduled_arrival: Optional[datetime] = None
    scheduled_departure: Optional[datetime] = None
    actual_arrival: Optional[datetime] = None
    delay_minutes: int = 0
    origin_location: Optional[str] = None
    arrival_location: Optional[str] = None
    departure_location: Optional[str] = None
    terminal: Optional[str] = None
    status: str
    needs_transportation: bool

    class Config:
        from_attributes = True
