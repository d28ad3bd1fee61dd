"""
Transport vendor and vehicle models
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text, CheckConstraint
from sqlalchemy.orm import relationship

from app.core.db import Base

VEHICLE_STATUSES = ("available", "assigned", "in_transit", "maintenance")

class Vendor(Base):
    __tablename__ = "transport_vendors"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    contact_person = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    email = Column(String(255), nullable=True)
    whatsapp_number = Column(String(50), nullable=True)
    status = Column(String(20), default="active")
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    vehicles = relationship("Vehicle", back_populates="vendor")

class Vehicle(Base):
    __tablename__ = "event_vehicles"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False, index=True)
    vendor_id = Column(Integer, ForeignKey("transport_vendors.id"), nullable=True)
    vehicle_type = Column(String(50), nullable=False)
    vehicle_name = Column(String(255), nullable=True)
    capacity = Column(Integer, nullable=False)
    plate_number = Column(String(50), nullable=True)
    driver_name = Column(String(255), nullable=True)
    driver_phone = Column(String(50), nullable=True)
    status = Column(String(20), nullable=False, default="available")
    current_location = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    event = relationship("Event", back_populates="vehicles")
    vendor = relationship("Vendor", back_populates="vehicles")

    __table_args__ = (
        CheckConstraint("capacity > 0", name="ck_vehicle_capacity_positive"),
    )
