# tests/test_config.py

from __future__ import annotations

import pytest

from medtasks.config import get_settings


def test_settings_from_environment(monkeypatch) -> None:
    monkeypatch.setenv("STORAGE_BACKEND", "SQL")
    monkeypatch.setenv("ACCESS_TOKEN_EXPIRE_MINUTES", "15")
    monkeypatch.setenv("SQL_ECHO", "yes")

    settings = get_settings()

    assert settings.storage_backend == "sql"
    assert settings.access_token_expire_minutes == 15
    assert settings.sql_echo is True


def test_malformed_integer_fails_loudly(monkeypatch) -> None:
    monkeypatch.setenv("STORAGE_BACKEND", "fallback")
    monkeypatch.setenv("ACCESS_TOKEN_EXPIRE_MINUTES", "sixty")

    with pytest.raises(RuntimeError, match="ACCESS_TOKEN_EXPIRE_MINUTES"):
        get_settings()


def test_unknown_backend_is_refused(monkeypatch) -> None:
    monkeypatch.setenv("STORAGE_BACKEND", "redis")

    with pytest.raises(RuntimeError):
        get_settings()
