from types import SimpleNamespace

import pytest
from chakai.routers.errors import extract_version
from chakai.schemas import ReservationUpdate
from fastapi import HTTPException


def _payload(version: int | None) -> ReservationUpdate:
    return ReservationUpdate(
        time_slot_id=1,
        participants=1,
        name="山田花子",
        email="hanako@example.com",
        phone="090-0000-0000",
        version=version,
    )


def test_if_match_preferred_over_body() -> None:
    assert extract_version('W/"10"', _payload(5)) == 10


def test_plain_quoted_if_match() -> None:
    assert extract_version('"3"', None) == 3


def test_body_used_when_no_header() -> None:
    assert extract_version(None, _payload(7)) == 7


def test_raises_when_missing() -> None:
    with pytest.raises(HTTPException) as excinfo:
        extract_version(None, _payload(None))
    assert excinfo.value.status_code == 400


def test_invalid_header_raises_400() -> None:
    with pytest.raises(HTTPException) as excinfo:
        extract_version("invalid", None)
    assert excinfo.value.status_code == 400


def test_header_zero_raises_400() -> None:
    with pytest.raises(HTTPException) as excinfo:
        extract_version('"0"', None)
    assert excinfo.value.status_code == 400


def test_body_zero_raises_400() -> None:
    payload = SimpleNamespace(version=0)  # bypass Pydantic validation to hit router validation
    with pytest.raises(HTTPException) as excinfo:
        extract_version(None, payload)
    assert excinfo.value.status_code == 400
