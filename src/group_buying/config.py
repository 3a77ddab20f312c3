"""Runtime settings for the Group Buying services.

Protean's own configuration (providers, brokers, event store) is selected by
``PROTEAN_ENV``. The values here tune the concurrency primitives and the
notification adapter, and are read from ``GROUP_BUYING_*`` environment
variables.
"""

import os
from typing import Literal

from pydantic import BaseModel, Field

_ENV_PREFIX = "GROUP_BUYING_"


class GroupBuyingSettings(BaseModel):
    lock_timeout: float = Field(default=2.0, gt=0)  # seconds to wait for a record's lock
    update_attempts: int = Field(default=3, ge=1)
    allocation_attempts: int = Field(default=5, ge=1)
    retry_backoff: float = Field(default=0.01, ge=0)  # seconds, multiplied by attempt number
    publisher: Literal["fake", "broker"] = "fake"

    @classmethod
    def from_env(cls, environ=None) -> "GroupBuyingSettings":
        environ = os.environ if environ is None else environ
        values = {}
        for name in cls.model_fields:
            raw = environ.get(f"{_ENV_PREFIX}{name.upper()}")
            if raw is not None and raw != "":
                values[name] = raw
        return cls(**values)


_settings: GroupBuyingSettings | None = None


def get_settings() -> GroupBuyingSettings:
    """Return the process-wide settings, loading them from the environment once."""
    global _settings
    if _settings is None:
        _settings = GroupBuyingSettings.from_env()
    return _settings


def set_settings(settings: GroupBuyingSettings) -> None:
    """Override the active settings (useful for tests)."""
    global _settings
    _settings = settings


def reset_settings() -> None:
    """Drop cached settings so the next access re-reads the environment."""
    global _settings
    _settings = None
