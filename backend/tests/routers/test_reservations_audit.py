from typing import Any, cast

import pytest
from chakai.routers import errors
from chakai.routers import reservations as router
from chakai.schemas import ReservationCancel, ReservationCreate, ReservationRead
from fakes import Store
from fastapi import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession


class DummySession:
    async def __aenter__(self) -> "DummySession":
        return self

    async def __aexit__(self, exc_type: object, exc: object, tb: object) -> bool:
        return False

    def begin(self) -> "DummySession":
        return self


@pytest.fixture
def store(monkeypatch: pytest.MonkeyPatch) -> Store:
    store = Store()
    monkeypatch.setattr(router, "SqlAlchemyEventRepository", lambda s: store.events_repo)
    monkeypatch.setattr(router, "SqlAlchemyTimeSlotRepository", lambda s: store.slot_repo)
    monkeypatch.setattr(router, "SqlAlchemyReservationRepository", lambda s: store.res_repo)
    return store


@pytest.fixture
def audit_calls(monkeypatch: pytest.MonkeyPatch) -> list[dict[str, Any]]:
    calls: list[dict[str, Any]] = []

    def fake_emit(**kwargs: Any) -> None:
        calls.append(kwargs)

    monkeypatch.setattr(errors, "emit_audit_log", fake_emit)
    return calls


def _payload(slot_id: int, participants: int = 2, **kwargs: Any) -> ReservationCreate:
    return ReservationCreate(
        time_slot_id=slot_id,
        participants=participants,
        name="山田花子",
        email="hanako@example.com",
        phone="090-0000-0000",
        **kwargs,
    )


@pytest.mark.asyncio
async def test_create_reservation_emits_audit(store: Store, audit_calls: list[dict[str, Any]]) -> None:
    event = store.add_event(cost=2000)
    slot = store.slots_of(event.id)[0]

    result: ReservationRead = await router.create_reservation(
        payload=_payload(slot.id, accompanied_guests=["山田太郎"]),
        event_id=event.id,
        session=cast(AsyncSession, DummySession()),
    )

    assert result.total_cost == 4000
    assert result.time_slot_label == "10:00"
    assert result.accompanied_guests == ["山田太郎"]
    assert len(audit_calls) == 1
    assert audit_calls[0]["action"] == "reservation.created"
    assert audit_calls[0]["initiator"] == "guest"
    assert audit_calls[0]["reservation_id"] == result.reservation_id
    assert audit_calls[0]["slot_participants"] == 2


@pytest.mark.asyncio
async def test_public_booking_rejects_full_slot(store: Store, audit_calls: list[dict[str, Any]]) -> None:
    event = store.add_event(slots=(("10:00", 3),))
    slot = store.slots_of(event.id)[0]
    slot.current_participants = 2

    with pytest.raises(HTTPException) as excinfo:
        await router.create_reservation(
            payload=_payload(slot.id), event_id=event.id, session=cast(AsyncSession, DummySession())
        )
    assert excinfo.value.status_code == 409
    assert audit_calls == []
    assert store.reservations == {}


@pytest.mark.asyncio
async def test_create_for_unknown_slot_returns_404(store: Store, audit_calls: list[dict[str, Any]]) -> None:
    event = store.add_event()
    with pytest.raises(HTTPException) as excinfo:
        await router.create_reservation(
            payload=_payload(999), event_id=event.id, session=cast(AsyncSession, DummySession())
        )
    assert excinfo.value.status_code == 404


@pytest.mark.asyncio
async def test_cancel_reservation_log_failure_returns_500(store: Store, monkeypatch: pytest.MonkeyPatch) -> None:
    event = store.add_event()
    slot = store.slots_of(event.id)[0]
    await router.reservation_usecase.create_reservation(
        store.events_repo,
        store.slot_repo,
        store.res_repo,
        event_id=event.id,
        time_slot_id=slot.id,
        participants=1,
        contact=router.reservation_usecase.Contact(name="a", email="a@example.com", phone="0"),
        number_factory=lambda: "123456",
    )

    def fake_emit(**kwargs: Any) -> None:
        raise RuntimeError("fail log")

    monkeypatch.setattr(errors, "emit_audit_log", fake_emit)

    with pytest.raises(HTTPException) as excinfo:
        await router.cancel_reservation(
            payload=ReservationCancel(event_id=event.id, reservation_number="123456"),
            session=cast(AsyncSession, DummySession()),
        )
    assert excinfo.value.status_code == 500
    assert slot.current_participants == 0


@pytest.mark.asyncio
async def test_lookup_reservation_returns_slot_label(store: Store) -> None:
    event = store.add_event(slots=(("14:30", 5),))
    slot = store.slots_of(event.id)[0]
    await router.reservation_usecase.create_reservation(
        store.events_repo,
        store.slot_repo,
        store.res_repo,
        event_id=event.id,
        time_slot_id=slot.id,
        participants=1,
        contact=router.reservation_usecase.Contact(name="a", email="a@example.com", phone="0"),
        number_factory=lambda: "654321",
    )

    result = await router.lookup_reservation(
        event_id=event.id, reservation_number="654321", session=cast(AsyncSession, DummySession())
    )
    assert result.time_slot_label == "14:30"

    with pytest.raises(HTTPException) as excinfo:
        await router.lookup_reservation(
            event_id=event.id, reservation_number="000000", session=cast(AsyncSession, DummySession())
        )
    assert excinfo.value.status_code == 404


@pytest.mark.asyncio
async def test_public_booking_rejects_hidden_event(store: Store, audit_calls: list[dict[str, Any]]) -> None:
    event = store.add_event()
    event.is_active = False
    slot = store.slots_of(event.id)[0]

    with pytest.raises(HTTPException) as excinfo:
        await router.create_reservation(
            payload=_payload(slot.id), event_id=event.id, session=cast(AsyncSession, DummySession())
        )
    assert excinfo.value.status_code == 404
    assert event.current_participants == 0
    assert slot.current_participants == 0
    assert store.reservations == {}
    assert audit_calls == []
