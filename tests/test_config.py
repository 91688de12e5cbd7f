"""Tests for the configuration helpers."""

from __future__ import annotations

from pathlib import Path
from zoneinfo import ZoneInfo

import pytest

from dailyuse_reminder import config

ENV_NAMES = (
    "DAILYUSE_TIMEZONE",
    "DAILYUSE_DEFAULT_BODY",
    "DAILYUSE_MISFIRE_GRACE_SECONDS",
)


def _clear_env(monkeypatch: pytest.MonkeyPatch) -> None:
    # setenv first so teardown removes anything the .env loader adds.
    for name in ENV_NAMES:
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)


def test_settings_loaded_from_env_file(tmp_path, monkeypatch):
    _clear_env(monkeypatch)
    env_file = tmp_path / ".env"
    env_file.write_text(
        "# reminder settings\n"
        "DAILYUSE_TIMEZONE=Europe/Berlin\n"
        'DAILYUSE_DEFAULT_BODY="Stay sharp"\n'
        "not a pair\n",
        encoding="utf-8",
    )

    config._load_env_file(env_file)
    settings = config.Settings.from_env()

    assert settings.timezone == "Europe/Berlin"
    assert settings.tzinfo == ZoneInfo("Europe/Berlin")
    assert settings.default_body == "Stay sharp"
    assert settings.misfire_grace_seconds == config.DEFAULT_MISFIRE_GRACE_SECONDS


def test_environment_variable_overrides_env_file(tmp_path, monkeypatch):
    _clear_env(monkeypatch)
    env_file = tmp_path / ".env"
    env_file.write_text(
        "DAILYUSE_TIMEZONE=Europe/Berlin\nDAILYUSE_MISFIRE_GRACE_SECONDS=5\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("DAILYUSE_TIMEZONE", "America/New_York")

    config._load_env_file(env_file)
    settings = config.Settings.from_env()

    assert settings.timezone == "America/New_York"
    assert settings.misfire_grace_seconds == 5


def test_defaults_without_environment(monkeypatch):
    _clear_env(monkeypatch)

    settings = config.Settings.from_env()

    assert settings.timezone == "UTC"
    assert settings.default_body == "No description"
    assert settings.misfire_grace_seconds == 60


def test_invalid_timezone_falls_back_to_utc(monkeypatch):
    _clear_env(monkeypatch)
    monkeypatch.setenv("DAILYUSE_TIMEZONE", "Mars/Olympus_Mons")

    assert config.Settings.from_env().timezone == "UTC"


def test_invalid_misfire_grace_raises_runtime_error(monkeypatch):
    _clear_env(monkeypatch)
    monkeypatch.setenv("DAILYUSE_MISFIRE_GRACE_SECONDS", "soon")

    with pytest.raises(RuntimeError, match="DAILYUSE_MISFIRE_GRACE_SECONDS"):
        config.Settings.from_env()


def test_env_file_override_is_searched_first(tmp_path, monkeypatch):
    override = tmp_path / "custom.env"
    monkeypatch.setenv("DAILYUSE_ENV_FILE", str(override))

    candidates = list(config._candidate_env_paths(tmp_path / "pkg"))

    assert candidates[0] == override
    assert candidates[1] == Path(tmp_path / "pkg" / ".env")
