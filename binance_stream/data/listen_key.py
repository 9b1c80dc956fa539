"""
User data stream keys.

The account update stream is addressed by an opaque stream key (listen key)
issued by the exchange's REST API. These helpers obtain and release a key
with python-binance's AsyncClient, using the credentials selected by the
configuration's testnet flag. Keeping a key alive is left to the caller.
"""

from typing import Optional

from binance import AsyncClient
from binance.exceptions import BinanceAPIException, BinanceRequestException
from loguru import logger

from binance_stream.config import StreamConfig, load_credentials


class StreamKeyError(Exception):
    """Raised when the exchange refuses to issue or release a stream key."""
    pass


async def _create_client(config: StreamConfig) -> AsyncClient:
    api_key, api_secret = load_credentials(config.use_testnet)
    return await AsyncClient.create(
        api_key=api_key,
        api_secret=api_secret,
        testnet=config.use_testnet
    )


async def create_stream_key(config: Optional[StreamConfig] = None) -> str:
    """
    Obtain a user data stream key.

    Args:
        config (StreamConfig, optional): Selects testnet or mainnet

    Returns:
        str: The stream key to pass to open_user_data_stream()

    Raises:
        StreamCredentialError: If credentials are missing
        StreamKeyError: If the exchange rejects the request
    """
    config = config or StreamConfig()
    client = await _create_client(config)
    try:
        stream_key = await client.stream_get_listen_key()
    except (BinanceAPIException, BinanceRequestException) as e:
        raise StreamKeyError(f"Failed to create stream key: {e}") from e
    finally:
        await client.close_connection()

    logger.info("Created user data stream key")
    return stream_key


async def close_stream_key(stream_key: str, config: Optional[StreamConfig] = None) -> None:
    """
    Release a user data stream key.

    Raises:
        StreamCredentialError: If credentials are missing
        StreamKeyError: If the exchange rejects the request
    """
    config = config or StreamConfig()
    client = await _create_client(config)
    try:
        await client.stream_close(listenKey=stream_key)
    except (BinanceAPIException, BinanceRequestException) as e:
        raise StreamKeyError(f"Failed to close stream key: {e}") from e
    finally:
        await client.close_connection()

    logger.info("Closed user data stream key")
