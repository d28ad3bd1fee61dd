"""
Transport group, allocation and location representative models
"""

from datetime import datetime
from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, ForeignKey, JSON, UniqueConstraint
)
from sqlalchemy.orm import relationship

from app.core.db import Base

GROUP_STATUSES = ("pending", "assigned", "in_transit", "completed")
DIRECTIONS = ("arrival", "departure")

class TransportGroup(Base):
    __tablename__ = "transport_groups"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    direction = Column(String(20), nullable=False, default="arrival")
    pickup_location = Column(String(255), nullable=True)
    pickup_time = Column(DateTime, nullable=True)
    window_start = Column(DateTime, nullable=True)
    window_end = Column(DateTime, nullable=True)
    dropoff_location = Column(String(255), nullable=True)
    vehicle_id = Column(Integer, ForeignKey("event_vehicles.id"), nullable=True)
    assigned_vendor_id = Column(Integer, ForeignKey("transport_vendors.id"), nullable=True)
    location_rep_id = Column(Integer, ForeignKey("location_representatives.id"), nullable=True)
    status = Column(String(20), nullable=False, default="pending")
    guests_picked_up = Column(Integer, nullable=False, default=0)
    total_guests = Column(Integer, nullable=False, default=0)
    is_auto_generated = Column(Boolean, nullable=False, default=False)
    needs_split = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    event = relationship("Event", back_populates="transport_groups")
    vehicle = relationship("Vehicle")
    location_rep = relationship("LocationRepresentative")
    allocations = relationship(
        "TransportAllocation",
        back_populates="transport_group",
        cascade="all, delete-orphan",
        order_by="TransportAllocation.id",
    )

class TransportAllocation(Base):
    __tablename__ = "transport_allocations"

    id = Column(Integer, primary_key=True, index=True)
    transport_group_id = Column(Integer, ForeignKey("transport_groups.id"), nullable=False, index=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False)
    guest_id = Column(Integer, ForeignKey("guests.id"), nullable=False)
    direction = Column(String(20), nullable=False, default="arrival")
    seat_demand = Column(Integer, nullable=False, default=1)
    includes_plus_one = Column(Boolean, default=False)
    children_count = Column(Integer, default=0)
    confirmed = Column(Boolean, default=False)
    picked_up = Column(Boolean, default=False)
    assigned_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    transport_group = relationship("TransportGroup", back_populates="allocations")
    guest = relationship("Guest")

    # One active allocation per guest, event and direction
    __table_args__ = (
        UniqueConstraint("event_id", "guest_id", "direction", name="uq_allocation_guest_direction"),
    )

class LocationRepresentative(Base):
    __tablename__ = "location_representatives"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    location_type = Column(String(50), nullable=True)  # airport, station
    location_name = Column(String(255), nullable=True)
    terminal_gate = Column(String(100), nullable=True)
    phone = Column(String(50), nullable=True)
    whatsapp_number = Column(String(50), nullable=True)
    login_credentials = Column(JSON, nullable=True)
    status = Column(String(20), default="active")
    created_at = Column(DateTime, default=datetime.utcnow)
