from typing import List

from fastapi import APIRouter, Depends, Path
from sqlalchemy.ext.asyncio import AsyncSession

from ..deps import get_session
from ..domain.errors import DomainError
from ..infrastructure.repositories import SqlAlchemyEventRepository, SqlAlchemyTimeSlotRepository
from ..schemas import EventDetail, EventRead
from ..usecases import events as event_usecase
from .errors import to_http_error

router = APIRouter(prefix="/events", tags=["events"])


@router.get("", response_model=List[EventRead])
async def list_events(session: AsyncSession = Depends(get_session)) -> list[EventRead]:
    event_repo = SqlAlchemyEventRepository(session)
    rows = await event_usecase.list_events(event_repo, active_only=True)
    return [EventRead.from_db(event=event) for event in rows]


@router.get("/{event_id}", response_model=EventDetail)
async def get_event(
    event_id: int = Path(..., ge=1),
    session: AsyncSession = Depends(get_session),
) -> EventDetail:
    event_repo = SqlAlchemyEventRepository(session)
    slot_repo = SqlAlchemyTimeSlotRepository(session)
    try:
        event, slots = await event_usecase.get_event_detail(
            event_repo, slot_repo, event_id=event_id, active_only=True
        )
    except DomainError as exc:
        raise to_http_error(exc) from exc
    return EventDetail.from_db_with_slots(event=event, slots=slots)
