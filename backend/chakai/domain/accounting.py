"""
Capacity accounting for events and their time slots.

Every change to ``current_participants`` on an event or a slot goes through
this module. The functions mutate the objects they are given and do no I/O;
callers run them inside the same transaction as the reservation write.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, Protocol, Sequence

from .errors import CapacityError, InvalidReservationError

MAX_ACCOMPANIED_GUESTS = 3


class Counted(Protocol):
    max_participants: int
    current_participants: int


class Booked(Protocol):
    time_slot_id: int
    participants: int


@dataclass(frozen=True)
class Drift:
    """Counter corrections applied by ``reconcile`` (new value minus old value)."""

    event: int
    slots: dict[int, int]

    @property
    def is_clean(self) -> bool:
        return self.event == 0 and not any(self.slots.values())


def compute_total_cost(cost: Optional[int], participants: int) -> int:
    return int(cost or 0) * int(participants)


def validate_party_size(participants: int, guests: Sequence[str] = ()) -> None:
    if participants < 1:
        raise InvalidReservationError("participants must be >= 1")
    if len(guests) > MAX_ACCOMPANIED_GUESTS:
        raise InvalidReservationError(f"at most {MAX_ACCOMPANIED_GUESTS} accompanied guests")
    if len(guests) > participants - 1:
        raise InvalidReservationError("more accompanied guests than participants")
    if any(not g.strip() for g in guests):
        raise InvalidReservationError("accompanied guest name must not be blank")


def remaining(slot: Counted) -> int:
    return max(slot.max_participants - slot.current_participants, 0)


def _decrement(current: int, amount: int) -> int:
    return max(0, current - amount)


def _check_capacity(slot: Counted, incoming: int) -> None:
    if slot.current_participants + incoming > slot.max_participants:
        raise CapacityError("capacity exceeded")


def apply_reservation_create(
    event: Counted,
    slot: Counted,
    party_size: int,
    *,
    enforce_capacity: bool = False,
) -> None:
    if party_size < 1:
        raise InvalidReservationError("participants must be >= 1")
    if enforce_capacity:
        _check_capacity(slot, party_size)
    slot.current_participants += party_size
    event.current_participants += party_size


def apply_reservation_update(
    event: Counted,
    old_slot: Optional[Counted],
    new_slot: Counted,
    old_party_size: int,
    new_party_size: int,
    *,
    enforce_capacity: bool = False,
) -> None:
    """
    Move counters from (old_slot, old_party_size) to (new_slot, new_party_size).
    ``old_slot`` is None when the reservation pointed at a slot that no longer exists.
    """
    if new_party_size < 1:
        raise InvalidReservationError("participants must be >= 1")

    if old_slot is new_slot:
        delta = new_party_size - old_party_size
        if enforce_capacity and delta > 0:
            _check_capacity(new_slot, delta)
        new_slot.current_participants = max(0, new_slot.current_participants + delta)
    else:
        if enforce_capacity:
            _check_capacity(new_slot, new_party_size)
        if old_slot is not None:
            old_slot.current_participants = _decrement(old_slot.current_participants, old_party_size)
        new_slot.current_participants += new_party_size

    event.current_participants = max(0, event.current_participants + new_party_size - old_party_size)


def apply_reservation_delete(event: Counted, slot: Optional[Counted], party_size: int) -> None:
    if slot is not None:
        slot.current_participants = _decrement(slot.current_participants, party_size)
    event.current_participants = _decrement(event.current_participants, party_size)


def apply_slot_removal(event: Counted, slot: Counted) -> int:
    """Release the seats held in ``slot`` from the event. Returns the amount released."""
    released = slot.current_participants
    event.current_participants = _decrement(event.current_participants, released)
    slot.current_participants = 0
    return released


def recompute_event_capacity(event: Counted, slots: Iterable[Counted]) -> int:
    event.max_participants = sum(s.max_participants for s in slots)
    return event.max_participants


def reconcile(
    event: Counted,
    slots: dict[int, Counted],
    reservations: Iterable[Booked],
) -> Drift:
    """Recompute every counter from the live reservations."""
    per_slot = {slot_id: 0 for slot_id in slots}
    total = 0
    for res in reservations:
        total += res.participants
        if res.time_slot_id in per_slot:
            per_slot[res.time_slot_id] += res.participants

    slot_drift: dict[int, int] = {}
    for slot_id, slot in slots.items():
        slot_drift[slot_id] = per_slot[slot_id] - slot.current_participants
        slot.current_participants = per_slot[slot_id]

    event_drift = total - event.current_participants
    event.current_participants = total
    recompute_event_capacity(event, slots.values())
    return Drift(event=event_drift, slots=slot_drift)
