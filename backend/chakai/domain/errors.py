class DomainError(Exception):
    """Base class for errors raised by the domain and use case layers."""


class EventNotFoundError(DomainError):
    pass


class InvalidEventError(DomainError):
    pass


class TimeSlotNotFoundError(DomainError):
    pass


class ReservationNotFoundError(DomainError):
    pass


class CapacityError(DomainError):
    pass


class InvalidReservationError(DomainError):
    pass


class DuplicateTimeSlotError(DomainError):
    pass


class VersionConflictError(DomainError):
    pass


class InvalidMailError(DomainError):
    pass


class NotificationError(DomainError):
    pass


class StorageError(DomainError):
    pass
