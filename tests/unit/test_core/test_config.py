"""Tests for settings."""

from rulegraph.config import Settings, get_settings


def test_defaults() -> None:
    settings = Settings()

    assert settings.MAX_WORKERS == 4
    assert settings.MATCH_TIMEOUT_SECONDS == 1.0
    assert settings.AGGREGATION_MODE == "value"
    assert settings.MAX_TRAVERSAL_STEPS == 1000
    assert settings.DETECT_INTERFERENCE is True
    assert settings.REDACT_LOGS is True


def test_environment_prefix(monkeypatch) -> None:
    monkeypatch.setenv("RULEGRAPH_MAX_WORKERS", "8")
    monkeypatch.setenv("RULEGRAPH_AGGREGATION_MODE", "depth")

    settings = get_settings()

    assert settings.MAX_WORKERS == 8
    assert settings.AGGREGATION_MODE == "depth"


def test_settings_are_cached() -> None:
    assert get_settings() is get_settings()
