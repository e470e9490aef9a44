"""Settings loading tests."""

import pytest
from pydantic import ValidationError

from shortlink.config import BASE62_ALPHABET, Settings
from shortlink.enums import HitCounterMode


def test_defaults() -> None:
    settings = Settings()
    assert settings.CODE_ALPHABET == BASE62_ALPHABET
    assert settings.CODE_LENGTH == 7
    assert settings.HIT_COUNTER_MODE is HitCounterMode.DIRECT
    assert settings.ALLOCATION_MAX_ATTEMPTS >= 5


def test_environment_overrides(monkeypatch) -> None:
    monkeypatch.setenv("CODE_LENGTH", "9")
    monkeypatch.setenv("HIT_COUNTER_MODE", "redis")
    monkeypatch.setenv("CACHE_TTL_SECONDS", "12.5")

    settings = Settings()

    assert settings.CODE_LENGTH == 9
    assert settings.HIT_COUNTER_MODE is HitCounterMode.REDIS
    assert settings.CACHE_TTL_SECONDS == 12.5


@pytest.mark.parametrize(
    "field, value",
    [
        ("CODE_LENGTH", 0),
        ("CODE_LENGTH", 33),
        ("ALLOCATION_MAX_ATTEMPTS", 0),
        ("STORE_TIMEOUT_SECONDS", 0),
        ("CACHE_CAPACITY", 0),
        ("HIT_COUNTER_MODE", "kafka"),
    ],
)
def test_invalid_values_rejected(field: str, value: object) -> None:
    with pytest.raises(ValidationError):
        Settings(**{field: value})
