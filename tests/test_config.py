import pytest
from pydantic import ValidationError

from core.config import Settings


def test_jwt_secret_key_alias_is_read(monkeypatch):
    monkeypatch.delenv("SECRET_KEY", raising=False)
    monkeypatch.setenv("JWT_SECRET_KEY", "shared-with-accounts")
    monkeypatch.setenv("JWT_ALGORITHM", "HS512")

    cfg = Settings(_env_file=None)

    assert cfg.SECRET_KEY == "shared-with-accounts"
    assert cfg.ALGORITHM == "HS512"


def test_missing_secret_key_fails_fast(monkeypatch):
    monkeypatch.delenv("SECRET_KEY", raising=False)
    monkeypatch.delenv("JWT_SECRET_KEY", raising=False)
    with pytest.raises(ValidationError):
        Settings(_env_file=None)


@pytest.mark.parametrize(
    "raw",
    ['["https://a.example", "https://b.example"]', "https://a.example, https://b.example"],
)
def test_cors_origins_accepts_json_or_comma_list(monkeypatch, raw):
    monkeypatch.setenv("CORS_ORIGINS", raw)
    assert Settings(_env_file=None).CORS_ORIGINS == ["https://a.example", "https://b.example"]


def test_realtime_choices_are_normalised(monkeypatch):
    monkeypatch.setenv("REALTIME_BROKER", " Redis ")
    monkeypatch.setenv("REALTIME_WS_SEND_OVERFLOW_POLICY", "DROP_NEW")
    cfg = Settings(_env_file=None)
    assert cfg.REALTIME_BROKER == "redis"
    assert cfg.REALTIME_WS_SEND_OVERFLOW_POLICY == "drop_new"
