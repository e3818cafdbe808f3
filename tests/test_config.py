"""Tests for environment-driven settings."""
import os

import pytest

from nse_chain.config import Settings, load_settings


def test_defaults_without_environment():
    settings = load_settings(environ={})

    assert settings == Settings()
    assert settings.cooldown_seconds == 300.0
    assert settings.max_failures == 5
    assert settings.max_auth_retries == 10
    assert (settings.oi_weight, settings.volume_weight, settings.change_oi_weight) == (0.4, 0.4, 0.2)


def test_environment_overrides():
    settings = load_settings(
        environ={
            "NSE_LOG_LEVEL": "DEBUG",
            "NSE_COOLDOWN_SECONDS": "60",
            "NSE_MAX_AUTH_RETRIES": "3",
            "NSE_STRIKE_WINDOW": "10",
            "NSE_OI_WEIGHT": "0.5",
        }
    )

    assert settings.log_level == "DEBUG"
    assert settings.cooldown_seconds == 60.0
    assert settings.max_auth_retries == 3
    assert settings.strike_window == 10
    assert settings.oi_weight == 0.5


def test_empty_values_are_ignored():
    assert load_settings(environ={"NSE_MAX_FAILURES": ""}).max_failures == 5


def test_invalid_value_names_the_variable():
    with pytest.raises(ValueError) as excinfo:
        load_settings(environ={"NSE_MAX_FAILURES": "five"})

    assert "NSE_MAX_FAILURES" in str(excinfo.value)


def test_dotenv_file_is_loaded(tmp_path, monkeypatch):
    (tmp_path / ".env").write_text("NSE_POLL_INTERVAL=42\n")
    nested = tmp_path / "a" / "b"
    nested.mkdir(parents=True)
    monkeypatch.chdir(nested)
    monkeypatch.delenv("NSE_POLL_INTERVAL", raising=False)

    settings = load_settings()

    assert settings.poll_interval == 42.0
    os.environ.pop("NSE_POLL_INTERVAL", None)
