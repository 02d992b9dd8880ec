from __future__ import annotations

from typing import Any, Protocol

from ..models import Event, Reservation, TimeSlot


class EventRepository(Protocol):
    async def get(self, event_id: int) -> Event | None: ...

    async def get_for_update(self, event_id: int) -> Event | None: ...

    async def list_events(self, *, active_only: bool) -> list[Event]: ...

    async def create(self, **fields: Any) -> Event: ...

    async def save(self, event: Event) -> Event: ...

    async def delete(self, event: Event) -> None: ...


class TimeSlotRepository(Protocol):
    async def get_for_update(self, slot_id: int) -> TimeSlot | None: ...

    async def list_by_event(self, event_id: int, *, for_update: bool = False) -> list[TimeSlot]: ...

    async def create(self, *, event_id: int, label: str, max_participants: int) -> TimeSlot: ...

    async def save(self, slot: TimeSlot) -> TimeSlot: ...

    async def delete(self, slot: TimeSlot) -> None: ...


class ReservationRepository(Protocol):
    async def get(self, reservation_id: int) -> Reservation | None: ...

    async def get_for_update(self, reservation_id: int) -> Reservation | None: ...

    async def get_by_number(self, event_id: int, reservation_number: str) -> Reservation | None: ...

    async def number_exists(self, event_id: int, reservation_number: str) -> bool: ...

    async def list_by_event(self, event_id: int) -> list[Reservation]: ...

    async def list_by_slot(self, slot_id: int) -> list[Reservation]: ...

    async def list_all(self) -> list[Reservation]: ...

    async def create(self, **fields: Any) -> Reservation: ...

    async def save(self, reservation: Reservation) -> Reservation: ...

    async def delete(self, reservation: Reservation) -> None: ...


class NotificationGateway(Protocol):
    async def send_bulk_email(self, recipients: list[str], subject: str, body: str) -> str: ...


class ImageStorage(Protocol):
    async def upload(self, filename: str, content: bytes, content_type: str | None) -> str: ...
