from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import get_session
from ..domain.errors import DomainError
from ..infrastructure.repositories import (
    SqlAlchemyEventRepository,
    SqlAlchemyReservationRepository,
    SqlAlchemyTimeSlotRepository,
)
from ..schemas import ReservationCancel, ReservationCreate, ReservationRead, RESERVATION_NUMBER_PATTERN
from ..usecases import reservations as reservation_usecase
from .errors import audit, to_http_error

router = APIRouter(prefix="", tags=["reservations"])


@router.post(
    "/events/{event_id}/reservations",
    response_model=ReservationRead,
    status_code=status.HTTP_201_CREATED,
)
async def create_reservation(
    payload: ReservationCreate,
    event_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
) -> ReservationRead:
    event_repo = SqlAlchemyEventRepository(session)
    slot_repo = SqlAlchemyTimeSlotRepository(session)
    res_repo = SqlAlchemyReservationRepository(session)
    async with session.begin():
        try:
            reservation, event, slot = await reservation_usecase.create_reservation(
                event_repo,
                slot_repo,
                res_repo,
                event_id=event_id,
                time_slot_id=payload.time_slot_id,
                participants=payload.participants,
                contact=reservation_usecase.Contact(name=payload.name, email=payload.email, phone=payload.phone),
                guests=payload.accompanied_guests,
                notes=payload.notes,
                enforce_capacity=True,
                require_active=True,
            )
        except DomainError as exc:
            raise to_http_error(exc) from exc

    audit(
        action="reservation.created",
        initiator="guest",
        event_id=event.id,
        reservation_id=reservation.id,
        time_slot_id=slot.id,
        participants=reservation.participants,
        event_participants=event.current_participants,
        slot_participants=slot.current_participants,
        version=reservation.version,
    )
    return ReservationRead.from_db(reservation=reservation, slot=slot)


@router.get("/reservations/lookup", response_model=ReservationRead)
async def lookup_reservation(
    event_id: int = Query(..., ge=1),
    reservation_number: str = Query(..., pattern=RESERVATION_NUMBER_PATTERN),
    session: AsyncSession = Depends(get_session),
) -> ReservationRead:
    res_repo = SqlAlchemyReservationRepository(session)
    slot_repo = SqlAlchemyTimeSlotRepository(session)
    try:
        reservation = await reservation_usecase.lookup_reservation(
            res_repo, event_id=event_id, reservation_number=reservation_number
        )
    except DomainError as exc:
        raise to_http_error(exc) from exc
    slots = await slot_repo.list_by_event(event_id)
    slot = next((s for s in slots if s.id == reservation.time_slot_id), None)
    return ReservationRead.from_db(reservation=reservation, slot=slot)


@router.post("/reservations/cancel", response_model=ReservationRead)
async def cancel_reservation(
    payload: ReservationCancel,
    session: AsyncSession = Depends(get_session),
) -> ReservationRead:
    event_repo = SqlAlchemyEventRepository(session)
    slot_repo = SqlAlchemyTimeSlotRepository(session)
    res_repo = SqlAlchemyReservationRepository(session)
    async with session.begin():
        try:
            reservation, event, slot = await reservation_usecase.cancel_reservation(
                event_repo,
                slot_repo,
                res_repo,
                event_id=payload.event_id,
                reservation_number=payload.reservation_number,
            )
        except DomainError as exc:
            raise to_http_error(exc) from exc

    audit(
        action="reservation.cancelled",
        initiator="guest",
        event_id=event.id,
        reservation_id=reservation.id,
        time_slot_id=slot.id if slot is not None else None,
        participants=reservation.participants,
        event_participants=event.current_participants,
        slot_participants=slot.current_participants if slot is not None else None,
        version=reservation.version,
    )
    return ReservationRead.from_db(reservation=reservation, slot=slot)
