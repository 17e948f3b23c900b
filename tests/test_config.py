"""
Tests for settings validation.
"""
import pytest
from pydantic import ValidationError

from nownext.config import CustomSettings
from nownext.main import build_schedule_cache


class TestSettings:

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("EPG_SOURCE_URL", raising=False)
        config = CustomSettings(_env_file=None)

        assert config.epg_source_url is None
        assert config.epg_cache_expiry_sec == 3600
        assert config.epg_honor_utc_offset is False
        assert config.timestamp_policy.timezone_name is None

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("EPG_SOURCE_URL", " https://epg.example.com/all.xml ")
        monkeypatch.setenv("EPG_CACHE_EXPIRY_SEC", "600")
        monkeypatch.setenv("EPG_TIMEZONE", "Asia/Seoul")
        monkeypatch.setenv("EPG_HONOR_UTC_OFFSET", "true")
        config = CustomSettings(_env_file=None)

        assert config.epg_source_url == "https://epg.example.com/all.xml"
        assert config.timestamp_policy.honor_utc_offset is True

        cache = build_schedule_cache(config)
        assert cache.source_url == "https://epg.example.com/all.xml"
        assert cache.expiry_seconds == 600
        assert cache.policy.timezone_name == "Asia/Seoul"

    @pytest.mark.parametrize("field, value", [
        ("epg_source_url", "ftp://epg.example.com/all.xml"),
        ("epg_cache_expiry_sec", 0),
        ("epg_fetch_max_retries", 0),
        ("epg_parse_timeout_sec", -1),
        ("epg_refresh_cron", "every hour"),
        ("epg_timezone", "Mars/Olympus"),
        ("log_level", "chatty"),
    ])
    def test_invalid_values(self, field, value):
        with pytest.raises(ValidationError):
            CustomSettings(_env_file=None, **{field: value})

    def test_blank_cron_disables_refresh(self):
        assert CustomSettings(_env_file=None, epg_refresh_cron="  ").epg_refresh_cron == ""
