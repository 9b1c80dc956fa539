"""
Configuration for Binance stream sessions.

Settings are read from a YAML file (``config.yaml`` at the project root by
default) and validated with pydantic. API credentials, which are only needed
to obtain user data stream keys, come from environment variables:
- Testnet: BINANCE_TESTNET_API_KEY, BINANCE_TESTNET_API_SECRET
- Mainnet: BINANCE_MAINNET_API_KEY, BINANCE_MAINNET_API_SECRET

Example config.yaml:
    use_testnet: false
    ping_interval: 1.0
    shutdown_grace: 1.0
    channel_capacity: 0
    emit_execution_reports: false
"""

import os
from pathlib import Path
from typing import Optional, Tuple, Union

import yaml
from loguru import logger
from pydantic import BaseModel, Field, ValidationError

DEFAULT_CONFIG_PATH = Path(__file__).parent.parent / "config.yaml"


class StreamConfigError(Exception):
    """
    Raised when the configuration file is missing or invalid.

    This indicates a problem with config.yaml that must be resolved before
    any stream can be opened from it.
    """
    pass


class StreamCredentialError(Exception):
    """Raised when API credentials are missing or are placeholder values."""
    pass


class StreamConfig(BaseModel):
    """
    Stream session settings.

    Attributes:
        use_testnet: Connect to the spot testnet instead of mainnet
        mainnet_url: Base websocket URL for mainnet streams
        testnet_url: Base websocket URL for testnet streams
        ping_interval: Seconds between keepalive pings
        shutdown_grace: Longest wait for a read loop after shutdown, in seconds
        open_timeout: Websocket handshake timeout in seconds
        channel_capacity: Events buffered per session; 0 means each event
                          waits for the consumer
        emit_execution_reports: Publish execution reports on the account
                                stream instead of only logging them
        log_level: loguru level used by the command line entry point

    Examples:
        >>> config = StreamConfig(use_testnet=True)
        >>> config.stream_url
        'wss://stream.testnet.binance.vision/ws'
    """

    model_config = {"frozen": True, "extra": "forbid"}

    use_testnet: bool = False
    mainnet_url: str = "wss://stream.binance.com:9443/ws"
    testnet_url: str = "wss://stream.testnet.binance.vision/ws"
    ping_interval: float = Field(default=1.0, gt=0)
    shutdown_grace: float = Field(default=1.0, gt=0)
    open_timeout: float = Field(default=10.0, gt=0)
    channel_capacity: int = Field(default=0, ge=0)
    emit_execution_reports: bool = False
    log_level: str = "INFO"

    @property
    def stream_url(self) -> str:
        """Base websocket URL for the selected environment."""
        url = self.testnet_url if self.use_testnet else self.mainnet_url
        return url.rstrip("/")


def load_config(path: Optional[Union[str, Path]] = None) -> StreamConfig:
    """
    Load stream settings from a YAML file.

    Args:
        path (str | Path, optional): Path to the YAML file. Defaults to
                                     config.yaml in the project root.

    Returns:
        StreamConfig: Validated settings

    Raises:
        StreamConfigError: If the file is missing, empty, unparsable or holds
                           invalid values
    """
    config_path = Path(path) if path is not None else DEFAULT_CONFIG_PATH

    if not config_path.exists():
        raise StreamConfigError(f"Configuration file not found: {config_path}")

    try:
        with open(config_path, "r") as f:
            raw = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise StreamConfigError(f"Failed to parse configuration file: {e}")
    except OSError as e:
        raise StreamConfigError(f"Error reading configuration file: {e}")

    if raw is None:
        raise StreamConfigError("Configuration file is empty")
    if not isinstance(raw, dict):
        raise StreamConfigError(
            f"Configuration must be a mapping, got {type(raw).__name__}"
        )

    try:
        config = StreamConfig(**raw)
    except ValidationError as e:
        raise StreamConfigError(f"Invalid configuration in {config_path}: {e}")

    env_name = "testnet" if config.use_testnet else "mainnet"
    logger.debug(f"Loaded {env_name} stream configuration from {config_path}")
    return config


def load_credentials(use_testnet: bool) -> Tuple[str, str]:
    """
    Load API credentials from environment variables.

    Args:
        use_testnet (bool): Whether to load testnet credentials

    Returns:
        tuple[str, str]: API key and secret

    Raises:
        StreamCredentialError: If a variable is missing or holds a placeholder

    Security:
        Credentials are never logged.
    """
    env_name = "testnet" if use_testnet else "mainnet"
    api_key_var = f"BINANCE_{env_name.upper()}_API_KEY"
    api_secret_var = f"BINANCE_{env_name.upper()}_API_SECRET"

    api_key = os.getenv(api_key_var)
    api_secret = os.getenv(api_secret_var)

    missing_vars = [
        name for name, value in ((api_key_var, api_key), (api_secret_var, api_secret))
        if not value
    ]
    if missing_vars:
        raise StreamCredentialError(
            f"Missing required {env_name} credentials: {', '.join(missing_vars)}. "
            f"Please set these environment variables in your .env file or environment."
        )

    placeholder_texts = ["your_", "_here", "placeholder"]
    for var_name, value in [(api_key_var, api_key), (api_secret_var, api_secret)]:
        if any(placeholder in value.lower() for placeholder in placeholder_texts):
            raise StreamCredentialError(
                f"{var_name} appears to be a placeholder value. "
                f"Please set your actual {env_name} API credentials."
            )

    logger.debug(f"Loaded {env_name} credentials successfully")
    return api_key, api_secret
