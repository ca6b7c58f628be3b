"""Tests for settings and logging configuration."""

import logging

import pytest

from keyless.core.logging import configure_logging
from keyless.core.settings import NETWORK_FULLNODE_URLS, KeylessSettings


class TestKeylessSettings:
    """Tests for environment-driven settings."""

    def test_reads_prefixed_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("KEYLESS_CACHE_TTL_SECONDS", "60")
        settings = KeylessSettings()
        assert settings.network == "local"
        assert settings.cache_ttl_seconds == 60

    def test_fullnode_url_from_network(self) -> None:
        settings = KeylessSettings(network="testnet")
        assert settings.get_fullnode_url() == NETWORK_FULLNODE_URLS["testnet"]

    def test_explicit_fullnode_url_wins(self) -> None:
        settings = KeylessSettings(network="custom", fullnode_url="http://node:8080/v1/")
        assert settings.get_fullnode_url() == "http://node:8080/v1"

    def test_unknown_network_without_url(self) -> None:
        with pytest.raises(ValueError, match="custom"):
            KeylessSettings(network="custom").get_fullnode_url()


class TestConfigureLogging:
    """Tests for logging setup."""

    def test_keyless_loggers_use_configured_handler(self) -> None:
        logger = logging.getLogger("keyless.test_settings")
        try:
            configure_logging(KeylessSettings(log_level="debug"))
            assert logger.handlers
            assert logger.propagate is False
        finally:
            for name in list(logging.root.manager.loggerDict):
                if name.startswith("keyless"):
                    restored = logging.getLogger(name)
                    restored.handlers = []
                    restored.propagate = True
