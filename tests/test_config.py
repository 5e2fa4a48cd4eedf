"""Tests for environment-driven settings."""

from __future__ import annotations

import pytest

from stealth.config import Settings, get_settings


def test_postgres_url_gets_psycopg_driver(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DATABASE_URL", "postgresql://u:p@db:5432/stealth")
    assert Settings().database_url == "postgresql+psycopg://u:p@db:5432/stealth"


def test_sqlite_url_untouched() -> None:
    assert Settings().database_url == "sqlite://"


def test_numeric_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SCORING_K", "0.2")
    monkeypatch.setenv("SCORING_HALF_LIFE_MONTHS", "3")
    monkeypatch.setenv("RESOLVER_MATCH_THRESHOLD", "0.9")
    monkeypatch.setenv("INGEST_DEFAULT_SINCE_DAYS", "14")

    settings = Settings()

    assert settings.scoring_k == 0.2
    assert settings.scoring_half_life_months == 3.0
    assert settings.resolver_match_threshold == 0.9
    assert settings.ingest_default_since_days == 14


def test_registration_identifier_keys(monkeypatch: pytest.MonkeyPatch) -> None:
    assert Settings().registration_identifier_keys == ("abn", "acn")
    monkeypatch.setenv("REGISTRATION_IDENTIFIER_KEYS", " ABN, arbn ,")
    assert Settings().registration_identifier_keys == ("abn", "arbn")


def test_ipa_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    assert Settings().ipa_use_test_env is True
    monkeypatch.setenv("IPA_USE_TEST_ENV", "false")
    assert Settings().ipa_use_test_env is False


def test_get_settings_is_cached(monkeypatch: pytest.MonkeyPatch) -> None:
    first = get_settings()
    monkeypatch.setenv("SCORING_K", "0.5")
    assert get_settings() is first
    get_settings.cache_clear()
    assert get_settings().scoring_k == 0.5
