"""Tests for GroupBuyingSettings."""

import pytest
from group_buying.config import GroupBuyingSettings, get_settings, reset_settings, set_settings
from pydantic import ValidationError


class TestSettings:
    def test_defaults(self):
        settings = GroupBuyingSettings.from_env({})
        assert settings.lock_timeout == 2.0
        assert settings.update_attempts == 3
        assert settings.allocation_attempts == 5
        assert settings.publisher == "fake"

    def test_values_from_environment(self):
        settings = GroupBuyingSettings.from_env(
            {
                "GROUP_BUYING_LOCK_TIMEOUT": "0.5",
                "GROUP_BUYING_ALLOCATION_ATTEMPTS": "8",
                "GROUP_BUYING_PUBLISHER": "broker",
            }
        )
        assert settings.lock_timeout == 0.5
        assert settings.allocation_attempts == 8
        assert settings.publisher == "broker"

    def test_empty_values_fall_back_to_defaults(self):
        assert GroupBuyingSettings.from_env({"GROUP_BUYING_UPDATE_ATTEMPTS": ""}).update_attempts == 3

    @pytest.mark.parametrize(
        "environ",
        [
            {"GROUP_BUYING_LOCK_TIMEOUT": "0"},
            {"GROUP_BUYING_UPDATE_ATTEMPTS": "zero"},
            {"GROUP_BUYING_PUBLISHER": "carrier-pigeon"},
        ],
    )
    def test_invalid_values(self, environ):
        with pytest.raises(ValidationError):
            GroupBuyingSettings.from_env(environ)

    def test_environment_is_read_once(self, monkeypatch):
        reset_settings()
        monkeypatch.setenv("GROUP_BUYING_UPDATE_ATTEMPTS", "7")
        assert get_settings().update_attempts == 7

        monkeypatch.setenv("GROUP_BUYING_UPDATE_ATTEMPTS", "9")
        assert get_settings().update_attempts == 7

    def test_set_settings(self):
        set_settings(GroupBuyingSettings(allocation_attempts=2))
        assert get_settings().allocation_attempts == 2
