from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..domain.repositories import EventRepository, ReservationRepository, TimeSlotRepository
from ..models import Event, Reservation, TimeSlot


def _utc_now_naive() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class SqlAlchemyEventRepository(EventRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, event_id: int) -> Event | None:
        return await self.session.get(Event, event_id)

    async def get_for_update(self, event_id: int) -> Event | None:
        result = await self.session.scalar(select(Event).where(Event.id == event_id).with_for_update())
        return result if isinstance(result, Event) else None

    async def list_events(self, *, active_only: bool) -> List[Event]:
        stmt = select(Event).order_by(Event.id)
        if active_only:
            stmt = stmt.where(Event.is_active.is_(True))
        return list((await self.session.scalars(stmt)).all())

    async def create(self, **fields: Any) -> Event:
        now = _utc_now_naive()
        event = Event(version=1, created_at=now, updated_at=now, **fields)
        self.session.add(event)
        await self.session.flush()
        return event

    async def save(self, event: Event) -> Event:
        event.updated_at = _utc_now_naive()
        self.session.add(event)
        await self.session.flush()
        return event

    async def delete(self, event: Event) -> None:
        await self.session.delete(event)
        await self.session.flush()


class SqlAlchemyTimeSlotRepository(TimeSlotRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_for_update(self, slot_id: int) -> TimeSlot | None:
        result = await self.session.scalar(select(TimeSlot).where(TimeSlot.id == slot_id).with_for_update())
        return result if isinstance(result, TimeSlot) else None

    async def list_by_event(self, event_id: int, *, for_update: bool = False) -> List[TimeSlot]:
        stmt = select(TimeSlot).where(TimeSlot.event_id == event_id).order_by(TimeSlot.label)
        if for_update:
            stmt = stmt.with_for_update()
        return list((await self.session.scalars(stmt)).all())

    async def create(self, *, event_id: int, label: str, max_participants: int) -> TimeSlot:
        now = _utc_now_naive()
        slot = TimeSlot(
            event_id=event_id,
            label=label,
            max_participants=max_participants,
            current_participants=0,
            version=1,
            created_at=now,
            updated_at=now,
        )
        self.session.add(slot)
        await self.session.flush()
        return slot

    async def save(self, slot: TimeSlot) -> TimeSlot:
        slot.updated_at = _utc_now_naive()
        self.session.add(slot)
        await self.session.flush()
        return slot

    async def delete(self, slot: TimeSlot) -> None:
        await self.session.delete(slot)
        await self.session.flush()


class SqlAlchemyReservationRepository(ReservationRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, reservation_id: int) -> Reservation | None:
        return await self.session.get(Reservation, reservation_id)

    async def get_for_update(self, reservation_id: int) -> Reservation | None:
        stmt = select(Reservation).where(Reservation.id == reservation_id).with_for_update()
        result = await self.session.scalar(stmt)
        return result if isinstance(result, Reservation) else None

    async def get_by_number(self, event_id: int, reservation_number: str) -> Reservation | None:
        stmt = select(Reservation).where(
            Reservation.event_id == event_id,
            Reservation.reservation_number == reservation_number,
        )
        result = await self.session.scalar(stmt)
        return result if isinstance(result, Reservation) else None

    async def number_exists(self, event_id: int, reservation_number: str) -> bool:
        stmt = select(Reservation.id).where(
            Reservation.event_id == event_id,
            Reservation.reservation_number == reservation_number,
        )
        return await self.session.scalar(stmt) is not None

    async def list_by_event(self, event_id: int) -> List[Reservation]:
        stmt = select(Reservation).where(Reservation.event_id == event_id).order_by(Reservation.id)
        return list((await self.session.scalars(stmt)).all())

    async def list_by_slot(self, slot_id: int) -> List[Reservation]:
        stmt = select(Reservation).where(Reservation.time_slot_id == slot_id).order_by(Reservation.id)
        return list((await self.session.scalars(stmt)).all())

    async def list_all(self) -> List[Reservation]:
        stmt = select(Reservation).order_by(Reservation.id)
        return list((await self.session.scalars(stmt)).all())

    async def create(self, **fields: Any) -> Reservation:
        now = _utc_now_naive()
        reservation = Reservation(version=1, created_at=now, updated_at=now, **fields)
        self.session.add(reservation)
        await self.session.flush()
        return reservation

    async def save(self, reservation: Reservation) -> Reservation:
        reservation.updated_at = _utc_now_naive()
        self.session.add(reservation)
        await self.session.flush()
        return reservation

    async def delete(self, reservation: Reservation) -> None:
        await self.session.delete(reservation)
        await self.session.flush()
