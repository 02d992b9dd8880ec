from datetime import date as Date, datetime
from typing import Optional

from pydantic import BaseModel, Field, field_serializer, field_validator

from .domain import accounting
from .models import Event, Reservation, TimeSlot
from .utils.time import JST, utc_naive_to_jst

SLOT_LABEL_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"
RESERVATION_NUMBER_PATTERN = r"^\d{6}$"


class TimeSlotIn(BaseModel):
    label: str = Field(pattern=SLOT_LABEL_PATTERN)
    max_participants: int = Field(ge=1)


class TimeSlotRead(BaseModel):
    time_slot_id: int
    event_id: int
    label: str
    max_participants: int
    current_participants: int
    remaining: int

    @classmethod
    def from_db(cls, *, slot: TimeSlot) -> "TimeSlotRead":
        return cls(
            time_slot_id=slot.id,
            event_id=slot.event_id,
            label=slot.label,
            max_participants=slot.max_participants,
            current_participants=slot.current_participants,
            remaining=accounting.remaining(slot),
        )


class EventCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    venue: str = Field(default="", max_length=255)
    date: Date
    cost: int = Field(ge=0)
    description: str = ""
    is_active: bool = True
    time_slots: list[TimeSlotIn] = Field(default_factory=list)


class EventUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    venue: Optional[str] = Field(default=None, max_length=255)
    date: Optional[Date] = None
    cost: Optional[int] = Field(default=None, ge=0)
    description: Optional[str] = None
    is_active: Optional[bool] = None
    time_slots: Optional[list[TimeSlotIn]] = None
    version: Optional[int] = Field(default=None, ge=1)


class EventRead(BaseModel):
    event_id: int
    title: str
    venue: str
    date: str
    cost: int
    description: str
    image_url: Optional[str]
    max_participants: int
    current_participants: int
    is_active: bool
    version: int

    @classmethod
    def from_db(cls, *, event: Event) -> "EventRead":
        return cls(
            event_id=event.id,
            title=event.title,
            venue=event.venue,
            date=event.date,
            cost=event.cost,
            description=event.description,
            image_url=event.image_url,
            max_participants=event.max_participants,
            current_participants=event.current_participants,
            is_active=event.is_active,
            version=event.version,
        )


class EventDetail(EventRead):
    time_slots: list[TimeSlotRead]

    @classmethod
    def from_db_with_slots(cls, *, event: Event, slots: list[TimeSlot]) -> "EventDetail":
        base = EventRead.from_db(event=event)
        return cls(
            **base.model_dump(),
            time_slots=[TimeSlotRead.from_db(slot=s) for s in sorted(slots, key=lambda s: s.label)],
        )


class ReservationCreate(BaseModel):
    time_slot_id: int
    participants: int = Field(ge=1)
    name: str = Field(min_length=1, max_length=255)
    email: str = Field(min_length=3, max_length=255)
    phone: str = Field(min_length=1, max_length=50)
    accompanied_guests: list[str] = Field(default_factory=list, max_length=3)
    notes: str = ""

    @field_validator("email")
    @classmethod
    def _check_email(cls, value: str) -> str:
        value = value.strip()
        local, sep, domain = value.partition("@")
        if not sep or not local or "." not in domain:
            raise ValueError("invalid email address")
        return value


class ReservationUpdate(ReservationCreate):
    version: Optional[int] = Field(default=None, ge=1)


class ReservationCancel(BaseModel):
    event_id: int
    reservation_number: str = Field(pattern=RESERVATION_NUMBER_PATTERN)


class ReservationRead(BaseModel):
    reservation_id: int
    event_id: int
    time_slot_id: int
    time_slot_label: Optional[str] = None
    reservation_number: str
    participants: int
    name: str
    email: str
    phone: str
    accompanied_guests: list[str]
    total_cost: int
    notes: str
    version: int
    created_at: datetime

    @field_serializer("created_at")
    def _ser_datetime(self, dt: datetime) -> str:
        return dt.astimezone(JST).isoformat()

    @classmethod
    def from_db(cls, *, reservation: Reservation, slot: Optional[TimeSlot] = None) -> "ReservationRead":
        return cls(
            reservation_id=reservation.id,
            event_id=reservation.event_id,
            time_slot_id=reservation.time_slot_id,
            time_slot_label=slot.label if slot is not None else None,
            reservation_number=reservation.reservation_number,
            participants=reservation.participants,
            name=reservation.name,
            email=reservation.email,
            phone=reservation.phone,
            accompanied_guests=reservation.accompanied_guests,
            total_cost=reservation.total_cost,
            notes=reservation.notes,
            version=reservation.version,
            created_at=utc_naive_to_jst(reservation.created_at),
        )


class SlotReservations(BaseModel):
    time_slot: Optional[TimeSlotRead]
    participants: int
    reservations: list[ReservationRead]


class EventReservations(BaseModel):
    event: EventRead
    time_slots: list[SlotReservations]


class HolderRead(BaseModel):
    name: str
    email: str
    phone: str
    reservation_count: int
    total_spent: int


class MailRequest(BaseModel):
    recipients: list[str] = Field(min_length=1)
    subject: str = Field(min_length=1, max_length=998)
    body: str = Field(min_length=1)


class EventMailRequest(BaseModel):
    recipients: Optional[list[str]] = None
    subject: str = Field(min_length=1, max_length=998)
    body: str = Field(min_length=1)


class MailResult(BaseModel):
    message_id: str
    recipient_count: int


class SlotRemovalResult(BaseModel):
    event: EventRead
    removed_reservations: int


class EventDeletionResult(BaseModel):
    event_id: int
    removed_time_slots: int
    removed_reservations: int


class ReconcileResult(BaseModel):
    event: EventRead
    event_drift: int
    slot_drift: dict[int, int]
