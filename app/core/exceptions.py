"""
Domain exceptions for transport coordination
"""

class TransportCoordinationError(Exception):
    """Base exception for transport coordination"""
    status_code = 400
    default_error_code = "TRANSPORT_ERROR"

    def __init__(self, message: str, error_code: str = None, context: dict = None):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.context = context or {}

class ConfigError(TransportCoordinationError):
    """Malformed buffer time configuration"""
    status_code = 422
    default_error_code = "CONFIG_ERROR"

class UngroupableRecord(TransportCoordinationError):
    """Travel record that has no timestamp to group on"""
    default_error_code = "UNGROUPABLE_RECORD"

class NoVehicleAvailable(TransportCoordinationError):
    """The fleet has no vehicle left for a group"""
    default_error_code = "NO_VEHICLE_AVAILABLE"

class CapacityExceeded(TransportCoordinationError):
    """Group seat demand is larger than the vehicle capacity"""
    default_error_code = "CAPACITY_EXCEEDED"

class VehicleNotAvailable(TransportCoordinationError):
    """Vehicle is not in the 'available' status"""
    default_error_code = "VEHICLE_NOT_AVAILABLE"

class InvalidStatusTransition(TransportCoordinationError):
    """Requested lifecycle transition is not allowed"""
    default_error_code = "INVALID_STATUS_TRANSITION"

class GuestMatchError(TransportCoordinationError):
    """Manifest row could not be reconciled with a single guest"""
    status_code = 422
    default_error_code = "GUEST_MATCH_ERROR"

class AmbiguousGuestMatch(GuestMatchError):
    default_error_code = "AMBIGUOUS_GUEST_MATCH"

class GuestNotFound(GuestMatchError):
    default_error_code = "GUEST_NOT_FOUND"

class ResourceNotFound(TransportCoordinationError):
    status_code = 404
    default_error_code = "NOT_FOUND"

class ConcurrentRegenerationConflict(TransportCoordinationError):
    """Another regeneration for the same event committed first; retry"""
    status_code = 409
    default_error_code = "CONCURRENT_REGENERATION"
