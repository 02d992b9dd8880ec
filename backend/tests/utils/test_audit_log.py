import json
from typing import Any, List

import pytest
from chakai.utils import audit_log
from chakai.utils.request_id import set_request_id


def test_emit_audit_log_outputs_json(monkeypatch) -> None:
    messages: List[str] = []

    class DummyLogger:
        def info(self, message: str) -> None:
            messages.append(message)

    monkeypatch.setattr(audit_log, "_audit_logger", DummyLogger())

    set_request_id("req-123")
    try:
        audit_log.emit_audit_log(
            action="reservation.created",
            initiator="guest",
            event_id=3,
            reservation_id=1,
            time_slot_id=2,
            participants=2,
            event_participants=5,
            slot_participants=2,
            version=1,
            message="予約を受け付けました",
        )
    finally:
        set_request_id(None)

    assert len(messages) == 1
    assert "予約を受け付けました" in messages[0]
    payload = json.loads(messages[0])
    assert payload["action"] == "reservation.created"
    assert payload["initiator"] == "guest"
    assert payload["request_id"] == "req-123"
    assert payload["event_participants"] == 5
    assert "admin_id" not in payload
    assert "timestamp" in payload


def test_emit_audit_log_merges_extra(monkeypatch) -> None:
    messages: List[str] = []

    class DummyLogger:
        def info(self, message: str) -> None:
            messages.append(message)

    monkeypatch.setattr(audit_log, "_audit_logger", DummyLogger())

    audit_log.emit_audit_log(
        action="time_slot.removed",
        initiator="admin",
        event_id=3,
        time_slot_id=4,
        admin_id=9,
        extra={"removed_reservations": 2},
    )
    payload = json.loads(messages[0])
    assert payload["removed_reservations"] == 2
    assert payload["admin_id"] == 9
    assert "request_id" not in payload


def test_emit_audit_log_raises_on_logger_failure(monkeypatch) -> None:
    class DummyLogger:
        def info(self, _: Any) -> None:
            raise ValueError("fail")

    monkeypatch.setattr(audit_log, "_audit_logger", DummyLogger())

    with pytest.raises(RuntimeError):
        audit_log.emit_audit_log(
            action="reservation.cancelled",
            initiator="guest",
            event_id=3,
            reservation_id=1,
            participants=2,
        )
