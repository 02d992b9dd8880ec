from typing import Iterator

import pytest
from chakai.config import get_settings


@pytest.fixture(autouse=True)
def _fresh_settings() -> Iterator[None]:
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.mark.parametrize("value", ["1", "true", "TRUE", "yes", " on "])
def test_boolean_flags_accept_common_spellings(monkeypatch: pytest.MonkeyPatch, value: str) -> None:
    monkeypatch.setenv("CREATE_SCHEMA", value)
    monkeypatch.setenv("ECHO_SQL", value)
    settings = get_settings()
    assert settings.create_schema is True
    assert settings.echo_sql is True


@pytest.mark.parametrize("value", ["0", "false", "no", ""])
def test_boolean_flags_default_off(monkeypatch: pytest.MonkeyPatch, value: str) -> None:
    monkeypatch.setenv("CREATE_SCHEMA", value)
    monkeypatch.delenv("ECHO_SQL", raising=False)
    settings = get_settings()
    assert settings.create_schema is False
    assert settings.echo_sql is False
