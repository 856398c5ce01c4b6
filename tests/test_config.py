"""
Test suite for configuration loading.
"""

from vuowma.config import ForwarderSettings, get_config, set_config


class TestSettings:
    """Tests for ForwarderSettings."""

    def test_defaults(self, monkeypatch):
        """Test default values."""
        monkeypatch.delenv("VUOWMA_MESSAGE_FORMAT", raising=False)
        config = ForwarderSettings(_env_file=None)

        assert config.message_format == "messagecard"
        assert config.database_url == "sqlite:///vuowma.db"
        assert config.http_timeout_seconds == 30.0

    def test_environment(self, monkeypatch):
        """Test loading settings from VUOWMA_ environment variables."""
        monkeypatch.setenv("VUOWMA_BASE_URL", "https://vuowma.example.edu/")
        monkeypatch.setenv("VUOWMA_WEBHOOK_URL", "https://hooks.example.com/x")
        monkeypatch.setenv("vuowma_message_format", "adaptivecard")

        config = ForwarderSettings(_env_file=None)

        assert config.base_url == "https://vuowma.example.edu/"
        assert config.webhook_url == "https://hooks.example.com/x"
        assert config.message_format == "adaptivecard"

    def test_global_config(self, test_config):
        """Test setting the global configuration."""
        set_config(test_config)
        assert get_config() is test_config
