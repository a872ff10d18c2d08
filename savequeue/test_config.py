"""Tests for SaveQueueConfig."""

import pytest
from pydantic import ValidationError

from savequeue.config import SaveQueueConfig, StorageMode


class TestSaveQueueConfig:
    """Tests for defaults, validation and environment loading."""

    def test_defaults(self):
        config = SaveQueueConfig()

        assert config.storage_mode == StorageMode.SERVER
        assert config.max_retries == 3
        assert config.message_debounce_ms == 2000
        assert config.node_debounce_ms == 1000
        assert config.metadata_debounce_ms == 500

    def test_validation(self):
        with pytest.raises(ValidationError):
            SaveQueueConfig(max_retries=-1)
        with pytest.raises(ValidationError):
            SaveQueueConfig(storage_mode="cloud")

    def test_validate_assignment(self):
        config = SaveQueueConfig()
        with pytest.raises(ValidationError):
            config.node_debounce_ms = -5

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("SAVEQUEUE_STORAGE_MODE", "local")
        monkeypatch.setenv("SAVEQUEUE_MAX_RETRIES", "5")
        monkeypatch.setenv("SAVEQUEUE_API_BASE_URL", "https://api.example.com")

        config = SaveQueueConfig.from_env()

        assert config.storage_mode == StorageMode.LOCAL
        assert config.max_retries == 5
        assert config.api_base_url == "https://api.example.com"

    def test_overrides_win(self, monkeypatch):
        monkeypatch.setenv("SAVEQUEUE_MAX_RETRIES", "5")

        assert SaveQueueConfig.from_env(max_retries=1).max_retries == 1

    def test_custom_prefix(self, monkeypatch):
        monkeypatch.setenv("EDITOR_NODE_DEBOUNCE_MS", "250")

        assert SaveQueueConfig.from_env(prefix="EDITOR_").node_debounce_ms == 250
