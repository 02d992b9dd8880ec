from __future__ import annotations

import logging
import re
import secrets
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from ..domain import accounting
from ..domain.errors import (
    EventNotFoundError,
    InvalidReservationError,
    ReservationNotFoundError,
    TimeSlotNotFoundError,
    VersionConflictError,
)
from ..domain.repositories import EventRepository, ReservationRepository, TimeSlotRepository
from ..models import Event, Reservation, TimeSlot

logger = logging.getLogger(__name__)

RESERVATION_NUMBER_PATTERN = re.compile(r"^\d{6}$")
_MAX_NUMBER_ATTEMPTS = 20


@dataclass(frozen=True)
class Contact:
    name: str
    email: str
    phone: str


@dataclass
class Holder:
    name: str
    email: str
    phone: str
    reservation_count: int
    total_spent: int


def generate_reservation_number() -> str:
    return str(secrets.randbelow(900_000) + 100_000)


async def _allocate_number(
    res_repo: ReservationRepository,
    event_id: int,
    number_factory: Callable[[], str],
) -> str:
    for _ in range(_MAX_NUMBER_ATTEMPTS):
        candidate = number_factory()
        if not await res_repo.number_exists(event_id, candidate):
            return candidate
    raise RuntimeError("could not allocate a unique reservation number")


async def _lock_event(event_repo: EventRepository, event_id: int) -> Event:
    event = await event_repo.get_for_update(event_id)
    if event is None:
        raise EventNotFoundError("event not found")
    return event


async def _lock_slot(slot_repo: TimeSlotRepository, event_id: int, slot_id: int) -> TimeSlot:
    slot = await slot_repo.get_for_update(slot_id)
    if slot is None or slot.event_id != event_id:
        raise TimeSlotNotFoundError("time slot not found")
    return slot


async def create_reservation(
    event_repo: EventRepository,
    slot_repo: TimeSlotRepository,
    res_repo: ReservationRepository,
    *,
    event_id: int,
    time_slot_id: int,
    participants: int,
    contact: Contact,
    guests: Sequence[str] = (),
    notes: str = "",
    enforce_capacity: bool = False,
    require_active: bool = False,
    number_factory: Callable[[], str] = generate_reservation_number,
) -> tuple[Reservation, Event, TimeSlot]:
    accounting.validate_party_size(participants, guests)
    event = await _lock_event(event_repo, event_id)
    if require_active and not event.is_active:
        raise EventNotFoundError("event not found")
    slot = await _lock_slot(slot_repo, event_id, time_slot_id)

    accounting.apply_reservation_create(event, slot, participants, enforce_capacity=enforce_capacity)

    number = await _allocate_number(res_repo, event_id, number_factory)
    padded = list(guests) + [None] * (accounting.MAX_ACCOMPANIED_GUESTS - len(guests))
    reservation = await res_repo.create(
        event_id=event.id,
        time_slot_id=slot.id,
        reservation_number=number,
        participants=participants,
        name=contact.name,
        email=contact.email,
        phone=contact.phone,
        accompanied_guest1=padded[0],
        accompanied_guest2=padded[1],
        accompanied_guest3=padded[2],
        total_cost=accounting.compute_total_cost(event.cost, participants),
        notes=notes,
    )
    await slot_repo.save(slot)
    await event_repo.save(event)
    return reservation, event, slot


async def update_reservation(
    event_repo: EventRepository,
    slot_repo: TimeSlotRepository,
    res_repo: ReservationRepository,
    *,
    reservation_id: int,
    expected_version: int,
    time_slot_id: int,
    participants: int,
    contact: Contact,
    guests: Sequence[str] = (),
    notes: str = "",
    enforce_capacity: bool = False,
) -> tuple[Reservation, Event, TimeSlot]:
    accounting.validate_party_size(participants, guests)
    found = await res_repo.get(reservation_id)
    if found is None:
        raise ReservationNotFoundError("reservation not found")

    # Event row first so every writer on this event is serialised on the same lock.
    event = await _lock_event(event_repo, found.event_id)
    reservation = await res_repo.get_for_update(reservation_id)
    if reservation is None:
        raise ReservationNotFoundError("reservation not found")
    if reservation.version != expected_version:
        raise VersionConflictError("version mismatch")

    new_slot = await _lock_slot(slot_repo, event.id, time_slot_id)
    if reservation.time_slot_id == new_slot.id:
        old_slot: Optional[TimeSlot] = new_slot
    else:
        old_slot = await slot_repo.get_for_update(reservation.time_slot_id)

    accounting.apply_reservation_update(
        event,
        old_slot,
        new_slot,
        reservation.participants,
        participants,
        enforce_capacity=enforce_capacity,
    )

    reservation.time_slot_id = new_slot.id
    reservation.participants = participants
    reservation.name = contact.name
    reservation.email = contact.email
    reservation.phone = contact.phone
    reservation.set_accompanied_guests(list(guests))
    reservation.notes = notes
    reservation.total_cost = accounting.compute_total_cost(event.cost, participants)
    reservation.version += 1

    await res_repo.save(reservation)
    if old_slot is not None and old_slot is not new_slot:
        await slot_repo.save(old_slot)
    await slot_repo.save(new_slot)
    await event_repo.save(event)
    return reservation, event, new_slot


async def _release(
    event_repo: EventRepository,
    slot_repo: TimeSlotRepository,
    res_repo: ReservationRepository,
    reservation: Reservation,
) -> tuple[Reservation, Event, Optional[TimeSlot]]:
    event = await _lock_event(event_repo, reservation.event_id)
    slot = await slot_repo.get_for_update(reservation.time_slot_id)
    if slot is None:
        logger.warning(
            "reservation %s points at missing time slot %s", reservation.id, reservation.time_slot_id
        )
    accounting.apply_reservation_delete(event, slot, reservation.participants)
    await res_repo.delete(reservation)
    if slot is not None:
        await slot_repo.save(slot)
    await event_repo.save(event)
    return reservation, event, slot


async def delete_reservation(
    event_repo: EventRepository,
    slot_repo: TimeSlotRepository,
    res_repo: ReservationRepository,
    *,
    reservation_id: int,
) -> tuple[Reservation, Event, Optional[TimeSlot]]:
    reservation = await res_repo.get(reservation_id)
    if reservation is None:
        raise ReservationNotFoundError("reservation not found")
    return await _release(event_repo, slot_repo, res_repo, reservation)


async def cancel_reservation(
    event_repo: EventRepository,
    slot_repo: TimeSlotRepository,
    res_repo: ReservationRepository,
    *,
    event_id: int,
    reservation_number: str,
) -> tuple[Reservation, Event, Optional[TimeSlot]]:
    reservation = await lookup_reservation(res_repo, event_id=event_id, reservation_number=reservation_number)
    return await _release(event_repo, slot_repo, res_repo, reservation)


async def lookup_reservation(
    res_repo: ReservationRepository,
    *,
    event_id: int,
    reservation_number: str,
) -> Reservation:
    if not RESERVATION_NUMBER_PATTERN.match(reservation_number):
        raise InvalidReservationError("reservation number must be 6 digits")
    reservation = await res_repo.get_by_number(event_id, reservation_number)
    if reservation is None:
        raise ReservationNotFoundError("reservation not found")
    return reservation


async def get_reservation(res_repo: ReservationRepository, *, reservation_id: int) -> Reservation:
    reservation = await res_repo.get(reservation_id)
    if reservation is None:
        raise ReservationNotFoundError("reservation not found")
    return reservation


async def list_event_reservations(
    event_repo: EventRepository,
    slot_repo: TimeSlotRepository,
    res_repo: ReservationRepository,
    *,
    event_id: int,
) -> tuple[Event, list[tuple[Optional[TimeSlot], list[Reservation]]]]:
    """Reservations grouped by slot in label order; orphans come last under ``None``."""
    event = await event_repo.get(event_id)
    if event is None:
        raise EventNotFoundError("event not found")
    slots = await slot_repo.list_by_event(event_id)
    grouped: dict[int, list[Reservation]] = {slot.id: [] for slot in slots}
    orphans: list[Reservation] = []
    for reservation in await res_repo.list_by_event(event_id):
        bucket = grouped.get(reservation.time_slot_id)
        if bucket is None:
            orphans.append(reservation)
        else:
            bucket.append(reservation)

    groups: list[tuple[Optional[TimeSlot], list[Reservation]]] = [
        (slot, grouped[slot.id]) for slot in sorted(slots, key=lambda s: s.label)
    ]
    if orphans:
        groups.append((None, orphans))
    return event, groups


async def list_holders(res_repo: ReservationRepository, *, search: str | None = None) -> list[Holder]:
    holders: dict[str, Holder] = {}
    for reservation in await res_repo.list_all():
        key = reservation.email.strip().lower()
        holder = holders.get(key)
        if holder is None:
            holders[key] = Holder(
                name=reservation.name,
                email=reservation.email,
                phone=reservation.phone,
                reservation_count=1,
                total_spent=reservation.total_cost or 0,
            )
        else:
            holder.reservation_count += 1
            holder.total_spent += reservation.total_cost or 0

    result = list(holders.values())
    if search:
        needle = search.lower()
        result = [h for h in result if needle in h.name.lower() or needle in h.email.lower()]
    return result


async def reconcile_event(
    event_repo: EventRepository,
    slot_repo: TimeSlotRepository,
    res_repo: ReservationRepository,
    *,
    event_id: int,
) -> tuple[Event, accounting.Drift]:
    event = await _lock_event(event_repo, event_id)
    slots = await slot_repo.list_by_event(event_id, for_update=True)
    reservations = await res_repo.list_by_event(event_id)
    drift = accounting.reconcile(event, {slot.id: slot for slot in slots}, reservations)
    if not drift.is_clean:
        logger.warning("corrected counter drift on event %s: %s", event_id, drift)
    for slot in slots:
        await slot_repo.save(slot)
    await event_repo.save(event)
    return event, drift
