from __future__ import annotations

import logging
from typing import Iterable, Optional

from ..domain.errors import EventNotFoundError, InvalidMailError
from ..domain.repositories import EventRepository, NotificationGateway, ReservationRepository

logger = logging.getLogger(__name__)


def _distinct(addresses: Iterable[str]) -> list[str]:
    seen: dict[str, str] = {}
    for address in addresses:
        address = address.strip()
        if address:
            seen.setdefault(address.lower(), address)
    return list(seen.values())


async def send_mail(
    gateway: NotificationGateway,
    *,
    recipients: Iterable[str],
    subject: str,
    body: str,
) -> tuple[str, list[str]]:
    to = _distinct(recipients)
    if not to:
        raise InvalidMailError("no recipients")
    if not subject.strip():
        raise InvalidMailError("subject must not be empty")
    if not body.strip():
        raise InvalidMailError("body must not be empty")
    message_id = await gateway.send_bulk_email(to, subject, body)
    return message_id, to


async def send_event_mail(
    gateway: NotificationGateway,
    event_repo: EventRepository,
    res_repo: ReservationRepository,
    *,
    event_id: int,
    recipients: Optional[Iterable[str]],
    subject: str,
    body: str,
) -> tuple[str, list[str]]:
    """Mail the holders of an event. ``recipients=None`` means everyone with a reservation."""
    if await event_repo.get(event_id) is None:
        raise EventNotFoundError("event not found")
    known = _distinct(r.email for r in await res_repo.list_by_event(event_id))
    if recipients is None:
        selected = known
    else:
        selected = _distinct(recipients)
        known_keys = {address.lower() for address in known}
        outsiders = sorted(a for a in selected if a.lower() not in known_keys)
        if outsiders:
            raise InvalidMailError(f"not holders of this event: {', '.join(outsiders)}")
    logger.info("sending event %s mail to %d holders", event_id, len(selected))
    return await send_mail(gateway, recipients=selected, subject=subject, body=body)
