import logging
from typing import AsyncIterator

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy import select
from sqlalchemy.exc import ProgrammingError
from sqlalchemy.ext.asyncio import AsyncSession

from .config import get_settings
from .database import async_session
from .infrastructure.mailer import SesNotificationGateway
from .infrastructure.storage import S3ImageStorage
from .models import Admin
from .utils.auth import decode_access_token

logger = logging.getLogger(__name__)

_BEARER_CHALLENGE = {"WWW-Authenticate": "Bearer"}


async def get_session() -> AsyncIterator[AsyncSession]:
    async with async_session() as session:
        yield session


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail, headers=_BEARER_CHALLENGE)


async def get_current_admin_id(
    authorization: str | None = Header(default=None),
    session: AsyncSession = Depends(get_session),
) -> int:
    if authorization is None:
        raise _unauthorized("bearer token required")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise _unauthorized("bearer token required")

    settings = get_settings()
    try:
        admin_id = decode_access_token(token, secret=settings.auth_secret, algorithms=[settings.auth_algorithm])
    except ValueError as exc:
        raise _unauthorized("invalid token") from exc

    try:
        found = await session.scalar(select(Admin.id).where(Admin.id == admin_id))
    except ProgrammingError as exc:
        await session.rollback()
        logger.error("admin lookup failed: %s", exc)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="admin lookup failed") from exc
    # Close the read transaction so handlers can open their own with session.begin().
    await session.rollback()
    if found is None:
        raise _unauthorized("unknown admin")
    return admin_id


def get_notification_gateway() -> SesNotificationGateway:
    settings = get_settings()
    return SesNotificationGateway(sender=settings.mail_sender, region=settings.ses_region)


def get_image_storage() -> S3ImageStorage:
    settings = get_settings()
    return S3ImageStorage(bucket=settings.storage_bucket, region=settings.storage_region)
