"""
Travel record model
"""

from datetime import datetime, timedelta
from typing import Optional
from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from app.core.db import Base

TRAVEL_MODES = ("air", "rail", "road")
# Guest-form wording -> travel record mode
TRAVEL_MODE_ALIASES = {
    "flight": "air",
    "plane": "air",
    "train": "rail",
    "bus": "road",
    "car": "road",
    "taxi": "road",
}
TRAVEL_STATUSES = ("scheduled", "confirmed", "delayed", "cancelled")

def normalize_travel_mode(value: Optional[str]) -> Optional[str]:
    """Map a free-text travel mode onto TRAVEL_MODES; None when it has no counterpart"""
    if value is None:
        return None
    mode = value.strip().lower()
    mode = TRAVEL_MODE_ALIASES.get(mode, mode)
    return mode if mode in TRAVEL_MODES else None

class TravelRecord(Base):
    __tablename__ = "travel_records"

    id = Column(Integer, primary_key=True, index=True)
    guest_id = Column(Integer, ForeignKey("guests.id"), nullable=False)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False, index=True)
    arrival_mode = Column(String(20), default="air")
    departure_mode = Column(String(20), nullable=True)
    flight_number = Column(String(50), nullable=True)
    airline = Column(String(100), nullable=True)
    scheduled_arrival = Column(DateTime, nullable=True)
    scheduled_departure = Column(DateTime, nullable=True)
    actual_arrival = Column(DateTime, nullable=True)
    delay_minutes = Column(Integer, default=0)
    origin_location = Column(String(255), nullable=True)
    arrival_location = Column(String(255), nullable=True)
    departure_location = Column(String(255), nullable=True)
    terminal = Column(String(50), nullable=True)
    status = Column(String(20), default="scheduled")
    needs_transportation = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    guest = relationship("Guest", back_populates="travel_record")
    event = relationship("Event", back_populates="travel_records")

    __table_args__ = (
        UniqueConstraint("guest_id", "event_id", name="uq_travel_record_guest_event"),
    )

    @property
    def effective_arrival(self) -> Optional[datetime]:
        """Best known arrival moment: actual if reported, else scheduled plus delay"""
        if self.actual_arrival is not None:
            return self.actual_arrival
        if self.scheduled_arrival is None:
            return None
        return self.scheduled_arrival + timedelta(minutes=self.delay_minutes or 0)
