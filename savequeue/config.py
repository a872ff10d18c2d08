"""Configuration for the save queue."""

import os
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class StorageMode(str, Enum):
    """Where the open document is persisted."""

    SERVER = "server"
    LOCAL = "local"


class SaveQueueConfig(BaseModel):
    """Settings for one SaveService instance.

    Debounce delays are in milliseconds, timeouts and backoff in seconds.
    """

    model_config = {"validate_assignment": True}

    storage_mode: StorageMode = StorageMode.SERVER

    # Retries
    max_retries: int = Field(default=3, ge=0)
    retry_initial_backoff_seconds: float = Field(default=0.0, ge=0)
    retry_max_backoff_seconds: float = Field(default=30.0, ge=0)

    # Debounce delays
    message_debounce_ms: int = Field(default=2000, ge=0)
    node_debounce_ms: int = Field(default=1000, ge=0)
    metadata_debounce_ms: int = Field(default=500, ge=0)

    # HTTP store adapter
    api_base_url: str = "http://localhost:3201"
    request_timeout_seconds: float = Field(default=30.0, gt=0)

    # Local storage mode
    local_db_path: str = ":memory:"

    @classmethod
    def from_env(cls, prefix: str = "SAVEQUEUE_", **overrides) -> "SaveQueueConfig":
        """Build a config from ``SAVEQUEUE_*`` environment variables.

        Variable names are the upper-cased field names, e.g.
        ``SAVEQUEUE_MAX_RETRIES``. Explicit keyword overrides win over the
        environment.
        """
        values = {}
        for name in cls.model_fields:
            raw: Optional[str] = os.getenv(f"{prefix}{name.upper()}")
            if raw is not None:
                values[name] = raw
        values.update(overrides)
        return cls(**values)
