"""
Decoded stream event models.

This module defines the typed events published by stream sessions:
- DepthUpdate: Order book bid/ask deltas
- KlineUpdate: Candlestick bar updates (forming or final)
- AggTradeUpdate: Aggregated trades
- TradeUpdate: Raw trades
- BalanceSnapshot / ExecutionReport: Account stream updates

All prices, quantities, volumes and commissions are Decimal values parsed
from the exchange's string encoding. Event times are timezone-aware UTC
datetimes.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional, Union

from pydantic import BaseModel, Field


class StreamTopic(Enum):
    """
    Stream categories served by the exchange.

    The topic selects both the connection path and the frame decoder.

    Examples:
        >>> StreamTopic.AGG_TRADE.value
        'aggTrade'
    """

    DEPTH = "depth"
    KLINE = "kline"
    AGG_TRADE = "aggTrade"
    TRADE = "trade"
    ACCOUNT_UPDATE = "userData"

    def __str__(self) -> str:
        return self.value


class Interval(Enum):
    """
    Kline intervals accepted by the exchange.

    Values are case-sensitive: ``1m`` is one minute, ``1M`` is one month.

    Examples:
        >>> Interval("15m")
        <Interval.MINUTE_15: '15m'>
    """

    MINUTE_1 = "1m"
    MINUTE_3 = "3m"
    MINUTE_5 = "5m"
    MINUTE_15 = "15m"
    MINUTE_30 = "30m"
    HOUR_1 = "1h"
    HOUR_2 = "2h"
    HOUR_4 = "4h"
    HOUR_6 = "6h"
    HOUR_8 = "8h"
    HOUR_12 = "12h"
    DAY_1 = "1d"
    DAY_3 = "3d"
    WEEK_1 = "1w"
    MONTH_1 = "1M"

    def __str__(self) -> str:
        return self.value


class StreamEvent(BaseModel):
    """
    Common envelope of every decoded stream event.

    Attributes:
        event_type: Exchange event tag (e.g. 'depthUpdate', 'kline')
        event_time: Server event time
        symbol: Trading pair; None on account streams
    """

    model_config = {"frozen": True}

    event_type: str = Field(description="Exchange event tag")
    event_time: datetime = Field(description="Server event time (UTC)")
    symbol: Optional[str] = Field(
        default=None,
        description="Trading pair symbol, absent on account streams"
    )


class PriceLevel(BaseModel):
    """One (price, quantity) delta of an order book side."""

    model_config = {"frozen": True}

    price: Decimal
    quantity: Decimal


class DepthUpdate(StreamEvent):
    """
    Order book delta.

    A quantity of zero means the price level was removed from the book.

    Examples:
        >>> update.bids[0]
        PriceLevel(price=Decimal('100.5'), quantity=Decimal('0.001'))
    """

    update_id: int = Field(description="Final update id in the event")
    bids: List[PriceLevel] = Field(default_factory=list)
    asks: List[PriceLevel] = Field(default_factory=list)


class KlineUpdate(StreamEvent):
    """
    Candlestick bar update.

    ``final`` is True once the bar is closed; until then the OHLCV fields
    describe the bar as it is still forming.
    """

    interval: str
    first_trade_id: int
    last_trade_id: int
    final: bool
    open_time: datetime
    close_time: datetime
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    volume: Decimal
    number_of_trades: int
    quote_asset_volume: Decimal
    taker_buy_base_asset_volume: Decimal
    taker_buy_quote_asset_volume: Decimal


class AggTradeUpdate(StreamEvent):
    """Trades aggregated by price, taker and time."""

    trade_id: int
    price: Decimal
    quantity: Decimal
    first_trade_id: int
    last_trade_id: int
    timestamp: datetime
    buyer_is_maker: bool


class TradeUpdate(StreamEvent):
    """Single raw trade."""

    trade_id: int
    price: Decimal
    quantity: Decimal
    buyer_id: int
    seller_id: int
    trade_time: datetime
    buyer_is_maker: bool


class Balance(BaseModel):
    """Free and locked amounts of one asset."""

    model_config = {"frozen": True}

    asset: str
    free: Decimal
    locked: Decimal


class BalanceSnapshot(StreamEvent):
    """
    Account snapshot pushed on the user data stream.

    Commission rates are expressed in basis points as sent by the exchange.
    """

    maker_commission: Decimal
    taker_commission: Decimal
    buyer_commission: Decimal
    seller_commission: Decimal
    can_trade: bool
    can_withdraw: bool
    can_deposit: bool
    update_time: datetime
    balances: List[Balance] = Field(default_factory=list)


class ExecutionReport(StreamEvent):
    """
    Order execution report pushed on the user data stream.

    Whether reports are published to consumers or only logged depends on the
    ``emit_execution_reports`` setting.
    """

    client_order_id: str
    side: str
    order_type: str
    time_in_force: str
    quantity: Decimal
    price: Decimal
    stop_price: Decimal
    iceberg_quantity: Decimal
    original_client_order_id: str
    execution_type: str
    order_status: str
    reject_reason: str
    order_id: int
    last_executed_quantity: Decimal
    cumulative_filled_quantity: Decimal
    last_executed_price: Decimal
    commission_amount: Decimal
    commission_asset: Optional[str] = None
    transaction_time: datetime
    trade_id: int
    is_working: bool
    is_maker: bool
    order_creation_time: datetime
    cumulative_quote_quantity: Decimal


AccountUpdate = Union[BalanceSnapshot, ExecutionReport]
