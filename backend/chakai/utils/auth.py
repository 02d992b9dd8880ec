from datetime import datetime, timedelta, timezone
from typing import Sequence

import jwt
from jwt import InvalidTokenError

ADMIN_SCOPE = "admin"


def create_access_token(
    *,
    admin_id: int,
    secret: str,
    algorithm: str = "HS256",
    expires_delta: timedelta | None = None,
) -> str:
    now = datetime.now(timezone.utc)
    exp = now + (expires_delta or timedelta(hours=8))
    payload = {"sub": str(admin_id), "scope": ADMIN_SCOPE, "iat": now, "exp": exp}
    return jwt.encode(payload, secret, algorithm=algorithm)


def decode_access_token(
    token: str,
    *,
    secret: str,
    algorithms: Sequence[str],
) -> int:
    """Return the admin id carried by ``token``. Raises ValueError on any defect."""
    try:
        payload = jwt.decode(token, secret, algorithms=list(algorithms))
    except InvalidTokenError as exc:  # includes ExpiredSignatureError
        raise ValueError("invalid token") from exc

    if payload.get("scope") != ADMIN_SCOPE:
        raise ValueError("token is not an admin token")
    sub = payload.get("sub")
    if sub is None:
        raise ValueError("token missing sub")
    try:
        return int(sub)
    except (TypeError, ValueError) as exc:
        raise ValueError("token sub is not an integer") from exc
