from __future__ import annotations

import datetime as dt

import pytest

from hanzi_srs.config import Settings, load_settings


def test_load_settings_defaults(monkeypatch):
    monkeypatch.delenv("HANZI_SRS_TIMEZONE", raising=False)
    monkeypatch.delenv("HANZI_SRS_MAX_EASE_FACTOR", raising=False)

    settings = load_settings()

    assert settings == Settings(timezone="UTC", max_ease_factor=None)
    assert settings.tzinfo.utcoffset(dt.datetime(2025, 1, 1)) == dt.timedelta(0)


def test_load_settings_from_env(monkeypatch):
    monkeypatch.setenv("HANZI_SRS_TIMEZONE", "Asia/Jakarta")
    monkeypatch.setenv("HANZI_SRS_MAX_EASE_FACTOR", "4.0")

    settings = load_settings()

    assert settings.timezone == "Asia/Jakarta"
    assert settings.max_ease_factor == 4.0
    assert settings.tzinfo.utcoffset(dt.datetime(2025, 1, 1)) == dt.timedelta(hours=7)


@pytest.mark.parametrize("raw", ["abc", "1.0"])
def test_load_settings_rejects_bad_ease_ceiling(monkeypatch, raw):
    monkeypatch.setenv("HANZI_SRS_MAX_EASE_FACTOR", raw)

    with pytest.raises(ValueError):
        load_settings()
