from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable

from ..domain import accounting
from ..domain.errors import (
    DuplicateTimeSlotError,
    EventNotFoundError,
    InvalidEventError,
    TimeSlotNotFoundError,
    VersionConflictError,
)
from ..domain.repositories import EventRepository, ImageStorage, ReservationRepository, TimeSlotRepository
from ..models import Event, TimeSlot

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = frozenset({"title", "venue", "date", "cost", "description", "is_active"})


@dataclass(frozen=True)
class SlotDefinition:
    label: str
    max_participants: int


def _validate_slot_definitions(definitions: Iterable[SlotDefinition]) -> list[SlotDefinition]:
    definitions = list(definitions)
    seen: set[str] = set()
    for definition in definitions:
        if definition.max_participants < 1:
            raise InvalidEventError("max_participants must be >= 1")
        if definition.label in seen:
            raise DuplicateTimeSlotError(f"duplicate time slot {definition.label}")
        seen.add(definition.label)
    return sorted(definitions, key=lambda s: s.label)


async def _load_event_for_update(event_repo: EventRepository, event_id: int) -> Event:
    event = await event_repo.get_for_update(event_id)
    if event is None:
        raise EventNotFoundError("event not found")
    return event


async def create_event(
    event_repo: EventRepository,
    slot_repo: TimeSlotRepository,
    *,
    title: str,
    venue: str,
    date: str,
    cost: int,
    description: str,
    is_active: bool,
    slots: Iterable[SlotDefinition],
) -> tuple[Event, list[TimeSlot]]:
    if cost < 0:
        raise InvalidEventError("cost must be >= 0")
    definitions = _validate_slot_definitions(slots)
    event = await event_repo.create(
        title=title,
        venue=venue,
        date=date,
        cost=cost,
        description=description,
        is_active=is_active,
        max_participants=0,
        current_participants=0,
    )
    created = [
        await slot_repo.create(
            event_id=event.id, label=definition.label, max_participants=definition.max_participants
        )
        for definition in definitions
    ]
    accounting.recompute_event_capacity(event, created)
    await event_repo.save(event)
    return event, created


async def list_events(event_repo: EventRepository, *, active_only: bool) -> list[Event]:
    return await event_repo.list_events(active_only=active_only)


async def get_event_detail(
    event_repo: EventRepository,
    slot_repo: TimeSlotRepository,
    *,
    event_id: int,
    active_only: bool = False,
) -> tuple[Event, list[TimeSlot]]:
    event = await event_repo.get(event_id)
    if event is None or (active_only and not event.is_active):
        raise EventNotFoundError("event not found")
    slots = await slot_repo.list_by_event(event_id)
    return event, slots


async def _remove_slot(
    event: Event,
    slot: TimeSlot,
    slot_repo: TimeSlotRepository,
    res_repo: ReservationRepository,
) -> int:
    reservations = await res_repo.list_by_slot(slot.id)
    for reservation in reservations:
        await res_repo.delete(reservation)
    released = accounting.apply_slot_removal(event, slot)
    await slot_repo.delete(slot)
    logger.info(
        "removed time slot %s of event %s with %d reservations (%d seats)",
        slot.id,
        event.id,
        len(reservations),
        released,
    )
    return len(reservations)


async def update_event(
    event_repo: EventRepository,
    slot_repo: TimeSlotRepository,
    res_repo: ReservationRepository,
    *,
    event_id: int,
    expected_version: int,
    fields: dict[str, Any],
    slots: Iterable[SlotDefinition] | None = None,
) -> tuple[Event, list[TimeSlot], int]:
    """
    Apply an admin edit. When ``slots`` is given the event's slots are synchronised by
    label: matching labels keep their row (and bookings), new labels are created, and
    labels that disappeared are removed together with their reservations.
    Returns the event, its slots and the number of reservations removed.
    """
    event = await _load_event_for_update(event_repo, event_id)
    if event.version != expected_version:
        raise VersionConflictError("version mismatch")

    unknown = set(fields) - EDITABLE_FIELDS
    if unknown:
        raise InvalidEventError(f"fields not editable: {', '.join(sorted(unknown))}")
    if fields.get("cost") is not None and fields["cost"] < 0:
        raise InvalidEventError("cost must be >= 0")
    for name, value in fields.items():
        if value is not None:
            setattr(event, name, value)

    current = await slot_repo.list_by_event(event_id, for_update=True)
    removed_reservations = 0
    if slots is not None:
        definitions = _validate_slot_definitions(slots)
        wanted = {definition.label: definition for definition in definitions}
        by_label = {slot.label: slot for slot in current}

        for slot in current:
            if slot.label not in wanted:
                removed_reservations += await _remove_slot(event, slot, slot_repo, res_repo)

        kept: list[TimeSlot] = []
        for definition in definitions:
            existing = by_label.get(definition.label)
            if existing is None:
                kept.append(
                    await slot_repo.create(
                        event_id=event.id, label=definition.label, max_participants=definition.max_participants
                    )
                )
                continue
            if existing.max_participants != definition.max_participants:
                existing.max_participants = definition.max_participants
                existing.version += 1
                await slot_repo.save(existing)
            kept.append(existing)
        current = kept

    accounting.recompute_event_capacity(event, current)
    event.version += 1
    await event_repo.save(event)
    return event, current, removed_reservations


async def add_time_slot(
    event_repo: EventRepository,
    slot_repo: TimeSlotRepository,
    *,
    event_id: int,
    label: str,
    max_participants: int,
) -> tuple[Event, TimeSlot]:
    event = await _load_event_for_update(event_repo, event_id)
    existing = await slot_repo.list_by_event(event_id, for_update=True)
    _validate_slot_definitions(
        [SlotDefinition(s.label, s.max_participants) for s in existing] + [SlotDefinition(label, max_participants)]
    )
    slot = await slot_repo.create(event_id=event_id, label=label, max_participants=max_participants)
    accounting.recompute_event_capacity(event, [*existing, slot])
    await event_repo.save(event)
    return event, slot


async def remove_time_slot(
    event_repo: EventRepository,
    slot_repo: TimeSlotRepository,
    res_repo: ReservationRepository,
    *,
    event_id: int,
    slot_id: int,
) -> tuple[Event, int]:
    event = await _load_event_for_update(event_repo, event_id)
    slot = await slot_repo.get_for_update(slot_id)
    if slot is None or slot.event_id != event_id:
        raise TimeSlotNotFoundError("time slot not found")
    removed = await _remove_slot(event, slot, slot_repo, res_repo)
    remaining_slots = await slot_repo.list_by_event(event_id)
    accounting.recompute_event_capacity(event, [s for s in remaining_slots if s.id != slot_id])
    await event_repo.save(event)
    return event, removed


async def delete_event(
    event_repo: EventRepository,
    slot_repo: TimeSlotRepository,
    res_repo: ReservationRepository,
    *,
    event_id: int,
) -> tuple[int, int]:
    """Delete the event with all its slots and reservations. Returns (slots, reservations) removed."""
    event = await _load_event_for_update(event_repo, event_id)
    reservations = await res_repo.list_by_event(event_id)
    for reservation in reservations:
        await res_repo.delete(reservation)
    slots = await slot_repo.list_by_event(event_id, for_update=True)
    for slot in slots:
        await slot_repo.delete(slot)
    await event_repo.delete(event)
    return len(slots), len(reservations)


async def attach_image(
    event_repo: EventRepository,
    storage: ImageStorage,
    *,
    event_id: int,
    filename: str,
    content: bytes,
    content_type: str | None,
) -> Event:
    """Upload first, then lock the event only to store the URL."""
    if await event_repo.get(event_id) is None:
        raise EventNotFoundError("event not found")
    url = await storage.upload(filename, content, content_type)
    event = await _load_event_for_update(event_repo, event_id)
    event.image_url = url
    await event_repo.save(event)
    return event
