from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Literal, Optional

from .request_id import get_request_id

AuditAction = Literal[
    "event.created",
    "event.updated",
    "event.deleted",
    "event.reconciled",
    "event.image_attached",
    "time_slot.added",
    "time_slot.removed",
    "reservation.created",
    "reservation.updated",
    "reservation.cancelled",
    "reservation.deleted",
    "mail.sent",
]
AuditInitiator = Literal["guest", "admin", "system"]

_audit_logger = logging.getLogger("audit")
_audit_logger.setLevel(logging.INFO)
if not _audit_logger.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(message)s"))
    _audit_logger.addHandler(handler)
_audit_logger.propagate = False


def emit_audit_log(
    *,
    action: AuditAction,
    initiator: AuditInitiator,
    event_id: Optional[int],
    reservation_id: Optional[int] = None,
    time_slot_id: Optional[int] = None,
    admin_id: Optional[int] = None,
    participants: Optional[int] = None,
    event_participants: Optional[int] = None,
    slot_participants: Optional[int] = None,
    version: Optional[int] = None,
    message: Optional[str] = None,
    extra: Optional[dict[str, Any]] = None,
) -> None:
    """Emit structured JSON audit log. Raises RuntimeError if logging fails."""
    payload: dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "level": "info",
        "action": action,
        "initiator": initiator,
        "request_id": get_request_id(),
        "event_id": event_id,
        "reservation_id": reservation_id,
        "time_slot_id": time_slot_id,
        "admin_id": admin_id,
        "participants": participants,
        "event_participants": event_participants,
        "slot_participants": slot_participants,
        "version": version,
    }
    if message is not None:
        payload["message"] = message
    if extra:
        payload.update(extra)

    # Drop None values to keep the log compact.
    compact_payload = {k: v for k, v in payload.items() if v is not None}
    try:
        _audit_logger.info(json.dumps(compact_payload, ensure_ascii=False))
    except Exception as exc:
        raise RuntimeError("failed to emit audit log") from exc
