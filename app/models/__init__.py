"""
Database models package
"""

from .event import Event
from .guest import Guest
from .travel import TravelRecord
from .vendor import Vendor, Vehicle
from .transport import TransportGroup, TransportAllocation, LocationRepresentative

__all__ = [
    "Event",
    "Guest",
    "TravelRecord",
    "Vendor",
    "Vehicle",
    "TransportGroup",
    "TransportAllocation",
    "LocationRepresentative",
]
