"""
Event model
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Boolean
from sqlalchemy.orm import relationship

from app.core.db import Base

class Event(Base):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    date = Column(DateTime, nullable=False)
    organizer_email = Column(String(255), nullable=False)
    public_code = Column(String(50), unique=True, nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Transport settings (HH:MM durations)
    arrival_buffer_time = Column(String(10), nullable=True)
    departure_buffer_time = Column(String(10), nullable=True)
    default_pickup_location = Column(String(255), nullable=True)
    dropoff_location = Column(String(255), nullable=True)

    # Travel agent coordination tracking
    flight_list_exported = Column(Boolean, default=False)
    flight_list_export_date = Column(DateTime, nullable=True)
    flight_notifications_sent = Column(Integer, default=0)
    last_flight_notification_date = Column(DateTime, nullable=True)

    # Bumped by every committed regeneration
    transport_version = Column(Integer, nullable=False, default=0)

    # Relationships
    guests = relationship("Guest", back_populates="event", cascade="all, delete-orphan")
    travel_records = relationship("TravelRecord", back_populates="event", cascade="all, delete-orphan")
    vehicles = relationship("Vehicle", back_populates="event", cascade="all, delete-orphan")
    transport_groups = relationship("TransportGroup", back_populates="event", cascade="all, delete-orphan")
