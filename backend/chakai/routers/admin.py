from typing import List, Optional

from fastapi import APIRouter, Depends, File, Header, Path, Query, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import get_current_admin_id, get_image_storage, get_notification_gateway, get_session
from ..domain.errors import DomainError
from ..domain.repositories import ImageStorage, NotificationGateway
from ..infrastructure.repositories import (
    SqlAlchemyEventRepository,
    SqlAlchemyReservationRepository,
    SqlAlchemyTimeSlotRepository,
)
from ..schemas import (
    EventCreate,
    EventDeletionResult,
    EventDetail,
    EventMailRequest,
    EventRead,
    EventReservations,
    EventUpdate,
    HolderRead,
    MailRequest,
    MailResult,
    ReconcileResult,
    ReservationCreate,
    ReservationRead,
    ReservationUpdate,
    SlotRemovalResult,
    SlotReservations,
    TimeSlotIn,
    TimeSlotRead,
)
from ..usecases import events as event_usecase
from ..usecases import notifications as notification_usecase
from ..usecases import reservations as reservation_usecase
from ..utils.time import format_event_date
from .errors import audit, extract_version, to_http_error

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(get_current_admin_id)])


def _repos(session: AsyncSession) -> tuple[
    SqlAlchemyEventRepository, SqlAlchemyTimeSlotRepository, SqlAlchemyReservationRepository
]:
    return (
        SqlAlchemyEventRepository(session),
        SqlAlchemyTimeSlotRepository(session),
        SqlAlchemyReservationRepository(session),
    )


def _contact(payload: ReservationCreate) -> reservation_usecase.Contact:
    return reservation_usecase.Contact(name=payload.name, email=payload.email, phone=payload.phone)


# Events


@router.get("/events", response_model=List[EventRead])
async def list_events(session: AsyncSession = Depends(get_session)) -> list[EventRead]:
    event_repo = SqlAlchemyEventRepository(session)
    rows = await event_usecase.list_events(event_repo, active_only=False)
    return [EventRead.from_db(event=event) for event in rows]


@router.post("/events", response_model=EventDetail, status_code=status.HTTP_201_CREATED)
async def create_event(
    payload: EventCreate,
    session: AsyncSession = Depends(get_session),
    admin_id: int = Depends(get_current_admin_id),
) -> EventDetail:
    event_repo, slot_repo, _ = _repos(session)
    async with session.begin():
        try:
            event, slots = await event_usecase.create_event(
                event_repo,
                slot_repo,
                title=payload.title,
                venue=payload.venue,
                date=format_event_date(payload.date),
                cost=payload.cost,
                description=payload.description,
                is_active=payload.is_active,
                slots=[event_usecase.SlotDefinition(s.label, s.max_participants) for s in payload.time_slots],
            )
        except DomainError as exc:
            raise to_http_error(exc) from exc

    audit(action="event.created", initiator="admin", event_id=event.id, admin_id=admin_id, version=event.version)
    return EventDetail.from_db_with_slots(event=event, slots=slots)


@router.get("/events/{event_id}", response_model=EventDetail)
async def get_event(
    event_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
) -> EventDetail:
    event_repo, slot_repo, _ = _repos(session)
    try:
        event, slots = await event_usecase.get_event_detail(event_repo, slot_repo, event_id=event_id)
    except DomainError as exc:
        raise to_http_error(exc) from exc
    return EventDetail.from_db_with_slots(event=event, slots=slots)


@router.put("/events/{event_id}", response_model=EventDetail)
async def update_event(
    payload: EventUpdate,
    event_id: int = Path(..., ge=1),
    if_match: Optional[str] = Header(default=None),
    session: AsyncSession = Depends(get_session),
    admin_id: int = Depends(get_current_admin_id),
) -> EventDetail:
    expected_version = extract_version(if_match, payload)
    fields = payload.model_dump(exclude={"time_slots", "version", "date"}, exclude_none=True)
    if payload.date is not None:
        fields["date"] = format_event_date(payload.date)
    slot_definitions = (
        [event_usecase.SlotDefinition(s.label, s.max_participants) for s in payload.time_slots]
        if payload.time_slots is not None
        else None
    )
    event_repo, slot_repo, res_repo = _repos(session)
    async with session.begin():
        try:
            event, slots, removed = await event_usecase.update_event(
                event_repo,
                slot_repo,
                res_repo,
                event_id=event_id,
                expected_version=expected_version,
                fields=fields,
                slots=slot_definitions,
            )
        except DomainError as exc:
            raise to_http_error(exc) from exc

    audit(
        action="event.updated",
        initiator="admin",
        event_id=event.id,
        admin_id=admin_id,
        event_participants=event.current_participants,
        version=event.version,
        extra={"removed_reservations": removed} if removed else None,
    )
    return EventDetail.from_db_with_slots(event=event, slots=slots)


@router.delete("/events/{event_id}", response_model=EventDeletionResult)
async def delete_event(
    event_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    admin_id: int = Depends(get_current_admin_id),
) -> EventDeletionResult:
    event_repo, slot_repo, res_repo = _repos(session)
    async with session.begin():
        try:
            removed_slots, removed_reservations = await event_usecase.delete_event(
                event_repo, slot_repo, res_repo, event_id=event_id
            )
        except DomainError as exc:
            raise to_http_error(exc) from exc

    audit(
        action="event.deleted",
        initiator="admin",
        event_id=event_id,
        admin_id=admin_id,
        extra={"removed_time_slots": removed_slots, "removed_reservations": removed_reservations},
    )
    return EventDeletionResult(
        event_id=event_id,
        removed_time_slots=removed_slots,
        removed_reservations=removed_reservations,
    )


@router.post("/events/{event_id}/image", response_model=EventRead)
async def upload_event_image(
    event_id: int = Path(..., ge=1),
    image: UploadFile = File(...),
    session: AsyncSession = Depends(get_session),
    storage: ImageStorage = Depends(get_image_storage),
    admin_id: int = Depends(get_current_admin_id),
) -> EventRead:
    content = await image.read()
    event_repo = SqlAlchemyEventRepository(session)
    async with session.begin():
        try:
            event = await event_usecase.attach_image(
                event_repo,
                storage,
                event_id=event_id,
                filename=image.filename or "",
                content=content,
                content_type=image.content_type,
            )
        except DomainError as exc:
            raise to_http_error(exc) from exc

    audit(
        action="event.image_attached",
        initiator="admin",
        event_id=event.id,
        admin_id=admin_id,
        extra={"image_url": event.image_url},
    )
    return EventRead.from_db(event=event)


@router.post("/events/{event_id}/reconcile", response_model=ReconcileResult)
async def reconcile_event(
    event_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    admin_id: int = Depends(get_current_admin_id),
) -> ReconcileResult:
    event_repo, slot_repo, res_repo = _repos(session)
    async with session.begin():
        try:
            event, drift = await reservation_usecase.reconcile_event(
                event_repo, slot_repo, res_repo, event_id=event_id
            )
        except DomainError as exc:
            raise to_http_error(exc) from exc

    audit(
        action="event.reconciled",
        initiator="admin",
        event_id=event.id,
        admin_id=admin_id,
        event_participants=event.current_participants,
        extra={"event_drift": drift.event},
    )
    return ReconcileResult(event=EventRead.from_db(event=event), event_drift=drift.event, slot_drift=drift.slots)


# Time slots


@router.post(
    "/events/{event_id}/time-slots",
    response_model=TimeSlotRead,
    status_code=status.HTTP_201_CREATED,
)
async def add_time_slot(
    payload: TimeSlotIn,
    event_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    admin_id: int = Depends(get_current_admin_id),
) -> TimeSlotRead:
    event_repo, slot_repo, _ = _repos(session)
    async with session.begin():
        try:
            event, slot = await event_usecase.add_time_slot(
                event_repo,
                slot_repo,
                event_id=event_id,
                label=payload.label,
                max_participants=payload.max_participants,
            )
        except DomainError as exc:
            raise to_http_error(exc) from exc

    audit(action="time_slot.added", initiator="admin", event_id=event.id, time_slot_id=slot.id, admin_id=admin_id)
    return TimeSlotRead.from_db(slot=slot)


@router.delete("/events/{event_id}/time-slots/{slot_id}", response_model=SlotRemovalResult)
async def remove_time_slot(
    event_id: int = Path(..., ge=1),
    slot_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    admin_id: int = Depends(get_current_admin_id),
) -> SlotRemovalResult:
    event_repo, slot_repo, res_repo = _repos(session)
    async with session.begin():
        try:
            event, removed = await event_usecase.remove_time_slot(
                event_repo, slot_repo, res_repo, event_id=event_id, slot_id=slot_id
            )
        except DomainError as exc:
            raise to_http_error(exc) from exc

    audit(
        action="time_slot.removed",
        initiator="admin",
        event_id=event.id,
        time_slot_id=slot_id,
        admin_id=admin_id,
        event_participants=event.current_participants,
        extra={"removed_reservations": removed},
    )
    return SlotRemovalResult(event=EventRead.from_db(event=event), removed_reservations=removed)


# Reservations


@router.get("/events/{event_id}/reservations", response_model=EventReservations)
async def list_event_reservations(
    event_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
) -> EventReservations:
    event_repo, slot_repo, res_repo = _repos(session)
    try:
        event, groups = await reservation_usecase.list_event_reservations(
            event_repo, slot_repo, res_repo, event_id=event_id
        )
    except DomainError as exc:
        raise to_http_error(exc) from exc
    return EventReservations(
        event=EventRead.from_db(event=event),
        time_slots=[
            SlotReservations(
                time_slot=TimeSlotRead.from_db(slot=slot) if slot is not None else None,
                participants=sum(r.participants for r in rows),
                reservations=[ReservationRead.from_db(reservation=r, slot=slot) for r in rows],
            )
            for slot, rows in groups
        ],
    )


@router.post(
    "/events/{event_id}/reservations",
    response_model=ReservationRead,
    status_code=status.HTTP_201_CREATED,
)
async def create_reservation(
    payload: ReservationCreate,
    event_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    admin_id: int = Depends(get_current_admin_id),
) -> ReservationRead:
    event_repo, slot_repo, res_repo = _repos(session)
    async with session.begin():
        try:
            reservation, event, slot = await reservation_usecase.create_reservation(
                event_repo,
                slot_repo,
                res_repo,
                event_id=event_id,
                time_slot_id=payload.time_slot_id,
                participants=payload.participants,
                contact=_contact(payload),
                guests=payload.accompanied_guests,
                notes=payload.notes,
            )
        except DomainError as exc:
            raise to_http_error(exc) from exc

    audit(
        action="reservation.created",
        initiator="admin",
        event_id=event.id,
        reservation_id=reservation.id,
        time_slot_id=slot.id,
        admin_id=admin_id,
        participants=reservation.participants,
        event_participants=event.current_participants,
        slot_participants=slot.current_participants,
        version=reservation.version,
    )
    return ReservationRead.from_db(reservation=reservation, slot=slot)


@router.get("/reservations/{reservation_id}", response_model=ReservationRead)
async def get_reservation(
    reservation_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
) -> ReservationRead:
    res_repo = SqlAlchemyReservationRepository(session)
    try:
        reservation = await reservation_usecase.get_reservation(res_repo, reservation_id=reservation_id)
    except DomainError as exc:
        raise to_http_error(exc) from exc
    return ReservationRead.from_db(reservation=reservation)


@router.put("/reservations/{reservation_id}", response_model=ReservationRead)
async def update_reservation(
    payload: ReservationUpdate,
    reservation_id: int = Path(..., ge=1),
    if_match: Optional[str] = Header(default=None),
    session: AsyncSession = Depends(get_session),
    admin_id: int = Depends(get_current_admin_id),
) -> ReservationRead:
    expected_version = extract_version(if_match, payload)
    event_repo, slot_repo, res_repo = _repos(session)
    async with session.begin():
        try:
            reservation, event, slot = await reservation_usecase.update_reservation(
                event_repo,
                slot_repo,
                res_repo,
                reservation_id=reservation_id,
                expected_version=expected_version,
                time_slot_id=payload.time_slot_id,
                participants=payload.participants,
                contact=_contact(payload),
                guests=payload.accompanied_guests,
                notes=payload.notes,
            )
        except DomainError as exc:
            raise to_http_error(exc) from exc

    audit(
        action="reservation.updated",
        initiator="admin",
        event_id=event.id,
        reservation_id=reservation.id,
        time_slot_id=slot.id,
        admin_id=admin_id,
        participants=reservation.participants,
        event_participants=event.current_participants,
        slot_participants=slot.current_participants,
        version=reservation.version,
    )
    return ReservationRead.from_db(reservation=reservation, slot=slot)


@router.delete("/reservations/{reservation_id}", response_model=ReservationRead)
async def delete_reservation(
    reservation_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    admin_id: int = Depends(get_current_admin_id),
) -> ReservationRead:
    event_repo, slot_repo, res_repo = _repos(session)
    async with session.begin():
        try:
            reservation, event, slot = await reservation_usecase.delete_reservation(
                event_repo, slot_repo, res_repo, reservation_id=reservation_id
            )
        except DomainError as exc:
            raise to_http_error(exc) from exc

    audit(
        action="reservation.deleted",
        initiator="admin",
        event_id=event.id,
        reservation_id=reservation.id,
        time_slot_id=slot.id if slot is not None else None,
        admin_id=admin_id,
        participants=reservation.participants,
        event_participants=event.current_participants,
        slot_participants=slot.current_participants if slot is not None else None,
        version=reservation.version,
    )
    return ReservationRead.from_db(reservation=reservation, slot=slot)


# Holders and mail


@router.get("/holders", response_model=List[HolderRead])
async def list_holders(
    q: Optional[str] = Query(default=None, max_length=255),
    session: AsyncSession = Depends(get_session),
) -> list[HolderRead]:
    res_repo = SqlAlchemyReservationRepository(session)
    holders = await reservation_usecase.list_holders(res_repo, search=q)
    return [HolderRead(**vars(h)) for h in holders]


@router.post("/mail", response_model=MailResult)
async def send_mail(
    payload: MailRequest,
    gateway: NotificationGateway = Depends(get_notification_gateway),
    admin_id: int = Depends(get_current_admin_id),
) -> MailResult:
    try:
        message_id, recipients = await notification_usecase.send_mail(
            gateway, recipients=payload.recipients, subject=payload.subject, body=payload.body
        )
    except DomainError as exc:
        raise to_http_error(exc) from exc

    audit(
        action="mail.sent",
        initiator="admin",
        event_id=None,
        admin_id=admin_id,
        extra={"message_id": message_id, "recipient_count": len(recipients)},
    )
    return MailResult(message_id=message_id, recipient_count=len(recipients))


@router.post("/events/{event_id}/mail", response_model=MailResult)
async def send_event_mail(
    payload: EventMailRequest,
    event_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
    gateway: NotificationGateway = Depends(get_notification_gateway),
    admin_id: int = Depends(get_current_admin_id),
) -> MailResult:
    event_repo = SqlAlchemyEventRepository(session)
    res_repo = SqlAlchemyReservationRepository(session)
    try:
        message_id, recipients = await notification_usecase.send_event_mail(
            gateway,
            event_repo,
            res_repo,
            event_id=event_id,
            recipients=payload.recipients,
            subject=payload.subject,
            body=payload.body,
        )
    except DomainError as exc:
        raise to_http_error(exc) from exc

    audit(
        action="mail.sent",
        initiator="admin",
        event_id=event_id,
        admin_id=admin_id,
        extra={"message_id": message_id, "recipient_count": len(recipients)},
    )
    return MailResult(message_id=message_id, recipient_count=len(recipients))
