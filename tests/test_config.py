"""Unit tests for core/config.py -- SECRET_KEY and algorithm policy."""

import pytest
from pydantic import ValidationError

from core.config import Settings


def test_production_requires_secret_key() -> None:
    with pytest.raises(ValidationError, match="SECRET_KEY is required"):
        Settings(_env_file=None, debug=False, secret_key="")


def test_debug_generates_secret_key() -> None:
    settings = Settings(_env_file=None, debug=True, secret_key="")
    assert len(settings.secret_key) >= 32


def test_short_secret_key_rejected() -> None:
    with pytest.raises(ValidationError, match="at least 32 characters"):
        Settings(_env_file=None, debug=True, secret_key="shhhhh")


def test_explicit_secret_key_kept() -> None:
    key = "k" * 40
    assert Settings(_env_file=None, secret_key=key).secret_key == key


@pytest.mark.parametrize("algorithm", ["RS256", "none", "ES256"])
def test_non_hmac_algorithm_rejected(algorithm: str) -> None:
    with pytest.raises(ValidationError):
        Settings(_env_file=None, secret_key="k" * 40, jwt_algorithm=algorithm)
