"""
Guest model
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, Boolean, Date, DateTime, ForeignKey, Text
from sqlalchemy.orm import relationship

from app.core.db import Base

class Guest(Base):
    __tablename__ = "guests"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True, index=True)
    phone = Column(String(50), nullable=True)
    needs_flight_assistance = Column(Boolean, default=False)
    plus_one_confirmed = Column(Boolean, default=False)
    children_count = Column(Integer, default=0)
    travel_mode = Column(String(20), nullable=True)  # as entered: air, train, bus, car, other
    arrival_date = Column(Date, nullable=True)
    departure_date = Column(Date, nullable=True)
    accommodation_preference = Column(String(255), nullable=True)
    dietary_restrictions = Column(String(255), nullable=True)
    special_requests = Column(Text, nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    event = relationship("Event", back_populates="guests")
    travel_record = relationship("TravelRecord", back_populates="guest", uselist=False)

    @property
    def seat_demand(self) -> int:
        """Seats needed by the guest's party"""
        return 1 + (1 if self.plus_one_confirmed else 0) + (self.children_count or 0)
