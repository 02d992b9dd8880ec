from typing import Any

from fastapi import HTTPException, status

from ..domain.errors import (
    CapacityError,
    DomainError,
    DuplicateTimeSlotError,
    EventNotFoundError,
    InvalidEventError,
    InvalidMailError,
    InvalidReservationError,
    NotificationError,
    ReservationNotFoundError,
    StorageError,
    TimeSlotNotFoundError,
    VersionConflictError,
)
from ..utils.audit_log import emit_audit_log

_STATUS_BY_ERROR: list[tuple[type[DomainError], int, str]] = [
    (EventNotFoundError, status.HTTP_404_NOT_FOUND, "event not found"),
    (TimeSlotNotFoundError, status.HTTP_404_NOT_FOUND, "time slot not found"),
    (ReservationNotFoundError, status.HTTP_404_NOT_FOUND, "reservation not found"),
    (CapacityError, status.HTTP_409_CONFLICT, "capacity exceeded"),
    (VersionConflictError, status.HTTP_409_CONFLICT, "version mismatch"),
    (DuplicateTimeSlotError, status.HTTP_409_CONFLICT, "duplicate time slot"),
    (InvalidEventError, status.HTTP_400_BAD_REQUEST, ""),
    (InvalidReservationError, status.HTTP_400_BAD_REQUEST, ""),
    (InvalidMailError, status.HTTP_400_BAD_REQUEST, ""),
    (NotificationError, status.HTTP_502_BAD_GATEWAY, "failed to send email"),
    (StorageError, status.HTTP_502_BAD_GATEWAY, "failed to store image"),
]


def to_http_error(exc: DomainError) -> HTTPException:
    for error_type, status_code, detail in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return HTTPException(status_code=status_code, detail=detail or str(exc))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="internal error")


def audit(**kwargs: Any) -> None:
    """Emit an audit line for a committed change; a logging failure becomes a 500."""
    try:
        emit_audit_log(**kwargs)
    except RuntimeError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="failed to write audit log"
        ) from exc


def extract_version(if_match: str | None, payload: Any | None) -> int:
    """Expected version from ``If-Match`` (``"3"`` or ``W/"3"``), else from ``payload.version``."""
    if if_match is not None:
        raw = if_match.strip()
        if raw.startswith("W/"):
            raw = raw[2:]
        raw = raw.strip('"')
        if not raw.isdigit():
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="invalid If-Match header")
        version = int(raw)
    else:
        version = getattr(payload, "version", None) if payload is not None else None
        if version is None:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="version required")
    if version < 1:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="version must be >= 1")
    return version
