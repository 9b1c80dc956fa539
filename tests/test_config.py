"""
Test suite for configuration loading.

Tests cover:
- The shipped config.yaml and .env.example files
- load_config() validation and error messages
- load_credentials() environment lookup and placeholder detection
"""

from pathlib import Path

import pytest
import yaml

from binance_stream.config import (
    StreamConfig,
    StreamConfigError,
    StreamCredentialError,
    load_config,
    load_credentials,
)


class TestProjectFiles:
    """Test the configuration files shipped with the project."""

    @pytest.fixture(autouse=True)
    def setup(self):
        self.project_root = Path(__file__).parent.parent
        self.env_example_path = self.project_root / ".env.example"

    def test_default_config_loads(self):
        """Test that config.yaml at the project root is valid."""
        config = load_config(self.project_root / "config.yaml")

        assert config.use_testnet is False
        assert config.channel_capacity == 0

    def test_env_example_has_required_keys(self):
        content = self.env_example_path.read_text()

        for key in (
            "BINANCE_TESTNET_API_KEY",
            "BINANCE_TESTNET_API_SECRET",
            "BINANCE_MAINNET_API_KEY",
            "BINANCE_MAINNET_API_SECRET",
        ):
            assert f"{key}=" in content, f"{key} missing from .env.example"


class TestStreamConfig:

    def test_defaults(self):
        config = StreamConfig()

        assert config.ping_interval == 1.0
        assert config.shutdown_grace == 1.0
        assert config.emit_execution_reports is False
        assert config.stream_url == "wss://stream.binance.com:9443/ws"

    def test_testnet_url(self):
        assert StreamConfig(use_testnet=True).stream_url == (
            "wss://stream.testnet.binance.vision/ws"
        )

    def test_trailing_slash_stripped(self):
        config = StreamConfig(mainnet_url="wss://example.test/ws/")

        assert config.stream_url == "wss://example.test/ws"

    def test_immutable(self):
        config = StreamConfig()

        with pytest.raises(Exception):
            config.ping_interval = 5.0


class TestLoadConfig:

    def write(self, tmp_path, content):
        path = tmp_path / "config.yaml"
        path.write_text(content)
        return path

    def test_load_valid_file(self, tmp_path):
        path = self.write(tmp_path, yaml.safe_dump({
            "use_testnet": True,
            "ping_interval": 0.5,
            "channel_capacity": 16,
            "emit_execution_reports": True,
        }))

        config = load_config(path)

        assert config.use_testnet is True
        assert config.ping_interval == 0.5
        assert config.channel_capacity == 16
        assert config.emit_execution_reports is True

    def test_file_not_found(self, tmp_path):
        with pytest.raises(StreamConfigError, match="Configuration file not found"):
            load_config(tmp_path / "missing.yaml")

    def test_empty_file(self, tmp_path):
        with pytest.raises(StreamConfigError, match="Configuration file is empty"):
            load_config(self.write(tmp_path, ""))

    def test_invalid_yaml(self, tmp_path):
        with pytest.raises(StreamConfigError, match="Failed to parse configuration file"):
            load_config(self.write(tmp_path, "use_testnet: [unclosed"))

    def test_not_a_mapping(self, tmp_path):
        with pytest.raises(StreamConfigError, match="Configuration must be a mapping"):
            load_config(self.write(tmp_path, "- a\n- b\n"))

    @pytest.mark.parametrize("content", [
        "ping_interval: 0\n",
        "shutdown_grace: -1\n",
        "channel_capacity: -2\n",
        "unknown_setting: 1\n",
    ])
    def test_invalid_values(self, tmp_path, content):
        with pytest.raises(StreamConfigError, match="Invalid configuration"):
            load_config(self.write(tmp_path, content))


class TestLoadCredentials:

    def test_testnet_credentials(self, monkeypatch):
        monkeypatch.setenv("BINANCE_TESTNET_API_KEY", "test_key")
        monkeypatch.setenv("BINANCE_TESTNET_API_SECRET", "test_secret")

        assert load_credentials(use_testnet=True) == ("test_key", "test_secret")

    def test_missing_secret(self, monkeypatch):
        monkeypatch.setenv("BINANCE_MAINNET_API_KEY", "live_key")
        monkeypatch.delenv("BINANCE_MAINNET_API_SECRET", raising=False)

        with pytest.raises(StreamCredentialError) as exc_info:
            load_credentials(use_testnet=False)

        assert "BINANCE_MAINNET_API_SECRET" in str(exc_info.value)
        assert "BINANCE_MAINNET_API_KEY," not in str(exc_info.value)

    def test_placeholder_rejected(self, monkeypatch):
        monkeypatch.setenv("BINANCE_TESTNET_API_KEY", "your_testnet_api_key_here")
        monkeypatch.setenv("BINANCE_TESTNET_API_SECRET", "real_secret")

        with pytest.raises(StreamCredentialError, match="appears to be a placeholder"):
            load_credentials(use_testnet=True)
