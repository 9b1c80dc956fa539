"""
Frame decoders for Binance stream payloads.

Each decoder turns one raw text frame into a typed event from
``binance_stream.core.models``. Decoding happens in two phases:

1. Structural parse: the JSON object is validated into a topic-specific wire
   record. JSON numbers are parsed as Decimal, never as binary floats, and
   fields the exchange sends as numeric strings are declared as strict
   strings.
2. Field conversion: numeric strings become Decimal values and epoch
   millisecond timestamps become UTC datetimes.

Any failure raises FrameDecodeError naming the offending field and carrying
the raw frame. A decoder returns None for frames that should be dropped
(unknown account event types, unpublished execution reports).
"""

import json
from datetime import datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, List, Optional, Union

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictInt, StrictStr, ValidationError

from binance_stream.core.models import (
    AggTradeUpdate,
    Balance,
    BalanceSnapshot,
    DepthUpdate,
    ExecutionReport,
    KlineUpdate,
    PriceLevel,
    StreamEvent,
    StreamTopic,
    TradeUpdate,
)

Frame = Union[str, bytes]
Decoder = Callable[[Frame], Optional[StreamEvent]]

# Epoch milliseconds, sent as JSON integers
Millis = StrictInt

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class FrameDecodeError(Exception):
    """
    Raised when a frame does not match the expected wire shape.

    Attributes:
        field: Wire field tag that failed (e.g. 'k.o', 'b[0].price'), or None
               when the frame as a whole is unusable
        frame: The raw frame, for diagnostics
    """

    def __init__(self, message: str, frame: Frame, field: Optional[str] = None):
        self.field = field
        self.frame = frame.decode("utf-8", errors="replace") if isinstance(frame, bytes) else frame
        super().__init__(f"{message} (field={field})" if field else message)


class FieldConversionError(FrameDecodeError):
    """Raised when a numeric or timestamp field cannot be converted."""


class _WireRecord(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    event_type: StrictStr = Field(alias="e")
    event_time: Millis = Field(alias="E")


class _DepthFrame(_WireRecord):
    symbol: StrictStr = Field(alias="s")
    update_id: StrictInt = Field(alias="u")
    bids: List[List[Any]] = Field(alias="b")
    asks: List[List[Any]] = Field(alias="a")


class _KlineBar(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    interval: StrictStr = Field(alias="i")
    first_trade_id: StrictInt = Field(alias="f")
    last_trade_id: StrictInt = Field(alias="L")
    final: StrictBool = Field(alias="x")
    open_time: Millis = Field(alias="t")
    close_time: Millis = Field(alias="T")
    open: StrictStr = Field(alias="o")
    high: StrictStr = Field(alias="h")
    low: StrictStr = Field(alias="l")
    close: StrictStr = Field(alias="c")
    volume: StrictStr = Field(alias="v")
    number_of_trades: StrictInt = Field(alias="n")
    quote_asset_volume: StrictStr = Field(alias="q")
    taker_buy_base_asset_volume: StrictStr = Field(alias="V")
    taker_buy_quote_asset_volume: StrictStr = Field(alias="Q")


class _KlineFrame(_WireRecord):
    # The kline envelope carries the symbol under 'S'
    symbol_upper: Optional[StrictStr] = Field(default=None, alias="S")
    symbol: Optional[StrictStr] = Field(default=None, alias="s")
    kline: _KlineBar = Field(alias="k")


class _AggTradeFrame(_WireRecord):
    symbol: StrictStr = Field(alias="s")
    trade_id: StrictInt = Field(alias="a")
    price: StrictStr = Field(alias="p")
    quantity: StrictStr = Field(alias="q")
    first_trade_id: StrictInt = Field(alias="f")
    last_trade_id: StrictInt = Field(alias="l")
    timestamp: Millis = Field(alias="T")
    buyer_is_maker: StrictBool = Field(alias="m")


class _TradeFrame(_WireRecord):
    symbol: StrictStr = Field(alias="s")
    trade_id: StrictInt = Field(alias="t")
    # JSON number or numeric string
    price: Any = Field(alias="p")
    quantity: Any = Field(alias="q")
    buyer_id: StrictInt = Field(alias="b")
    seller_id: StrictInt = Field(alias="a")
    trade_time: Millis = Field(alias="T")
    buyer_is_maker: StrictBool = Field(alias="m")


class _BalanceEntry(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    asset: StrictStr = Field(alias="a")
    free: StrictStr = Field(alias="f")
    locked: StrictStr = Field(alias="l")


class _AccountInfoFrame(_WireRecord):
    maker_commission: Any = Field(alias="m")
    taker_commission: Any = Field(alias="t")
    buyer_commission: Any = Field(alias="b")
    seller_commission: Any = Field(alias="s")
    can_trade: StrictBool = Field(alias="T")
    can_withdraw: StrictBool = Field(alias="W")
    can_deposit: StrictBool = Field(alias="D")
    update_time: Millis = Field(alias="u")
    balances: List[_BalanceEntry] = Field(alias="B")


class _ExecutionReportFrame(_WireRecord):
    symbol: StrictStr = Field(alias="s")
    client_order_id: StrictStr = Field(alias="c")
    side: StrictStr = Field(alias="S")
    order_type: StrictStr = Field(alias="o")
    time_in_force: StrictStr = Field(alias="f")
    quantity: StrictStr = Field(alias="q")
    price: StrictStr = Field(alias="p")
    stop_price: StrictStr = Field(alias="P")
    iceberg_quantity: StrictStr = Field(alias="F")
    original_client_order_id: StrictStr = Field(alias="C")
    execution_type: StrictStr = Field(alias="x")
    order_status: StrictStr = Field(alias="X")
    reject_reason: StrictStr = Field(alias="r")
    order_id: StrictInt = Field(alias="i")
    last_executed_quantity: StrictStr = Field(alias="l")
    cumulative_filled_quantity: StrictStr = Field(alias="z")
    last_executed_price: StrictStr = Field(alias="L")
    commission_amount: StrictStr = Field(alias="n")
    commission_asset: Optional[StrictStr] = Field(default=None, alias="N")
    transaction_time: Millis = Field(alias="T")
    trade_id: StrictInt = Field(alias="t")
    is_working: StrictBool = Field(alias="w")
    is_maker: StrictBool = Field(alias="m")
    order_creation_time: Millis = Field(alias="O")
    cumulative_quote_quantity: StrictStr = Field(alias="Z")


def _load_object(frame: Frame) -> dict:
    """Parse a frame into a JSON object without going through binary floats."""
    try:
        payload = json.loads(frame, parse_float=Decimal)
    except (ValueError, TypeError) as e:
        raise FrameDecodeError(f"invalid JSON: {e}", frame) from e

    if not isinstance(payload, dict):
        raise FrameDecodeError(
            f"expected JSON object, got {type(payload).__name__}", frame
        )
    return payload


def _validate(record_type, payload: dict, frame: Frame):
    try:
        return record_type.model_validate(payload)
    except ValidationError as e:
        error = e.errors()[0]
        field = ".".join(str(part) for part in error["loc"]) or None
        raise FrameDecodeError(error["msg"], frame, field=field) from e


def _decimal(value: Any, field: str, frame: Frame) -> Decimal:
    if isinstance(value, bool) or not isinstance(value, (str, int, Decimal)):
        raise FieldConversionError(f"expected number, got {value!r}", frame, field=field)

    try:
        number = value if isinstance(value, Decimal) else Decimal(value)
    except (InvalidOperation, TypeError, ValueError) as e:
        raise FieldConversionError(f"invalid number {value!r}", frame, field=field) from e

    if not number.is_finite():
        raise FieldConversionError(f"non-finite number {value!r}", frame, field=field)
    return number


def _timestamp(value: int, field: str, frame: Frame) -> datetime:
    try:
        return _EPOCH + timedelta(milliseconds=value)
    except OverflowError as e:
        raise FieldConversionError(f"invalid timestamp {value!r}", frame, field=field) from e


def _price_levels(levels: List[List[Any]], side: str, frame: Frame) -> List[PriceLevel]:
    result = []
    for index, level in enumerate(levels):
        if len(level) < 2:
            raise FrameDecodeError(
                f"expected [price, quantity], got {level!r}", frame, field=f"{side}[{index}]"
            )
        price, quantity = level[0], level[1]
        for name, value in (("price", price), ("quantity", quantity)):
            if not isinstance(value, str):
                raise FieldConversionError(
                    f"expected numeric string, got {value!r}",
                    frame,
                    field=f"{side}[{index}].{name}",
                )
        result.append(PriceLevel(
            price=_decimal(price, f"{side}[{index}].price", frame),
            quantity=_decimal(quantity, f"{side}[{index}].quantity", frame),
        ))
    return result


def decode_depth(frame: Frame) -> DepthUpdate:
    """
    Decode a ``<symbol>@depth`` frame.

    Examples:
        >>> update = decode_depth('{"e":"depthUpdate","E":1,"s":"BTCUSDT",'
        ...                       '"u":7,"b":[["100.5","0.001"]],"a":[]}')
        >>> update.bids[0].price
        Decimal('100.5')
    """
    raw = _validate(_DepthFrame, _load_object(frame), frame)
    return DepthUpdate(
        event_type=raw.event_type,
        event_time=_timestamp(raw.event_time, "E", frame),
        symbol=raw.symbol,
        update_id=raw.update_id,
        bids=_price_levels(raw.bids, "b", frame),
        asks=_price_levels(raw.asks, "a", frame),
    )


def decode_kline(frame: Frame) -> KlineUpdate:
    """Decode a ``<symbol>@kline_<interval>`` frame."""
    raw = _validate(_KlineFrame, _load_object(frame), frame)
    bar = raw.kline
    return KlineUpdate(
        event_type=raw.event_type,
        event_time=_timestamp(raw.event_time, "E", frame),
        symbol=raw.symbol_upper if raw.symbol_upper is not None else raw.symbol,
        interval=bar.interval,
        first_trade_id=bar.first_trade_id,
        last_trade_id=bar.last_trade_id,
        final=bar.final,
        open_time=_timestamp(bar.open_time, "k.t", frame),
        close_time=_timestamp(bar.close_time, "k.T", frame),
        open=_decimal(bar.open, "k.o", frame),
        high=_decimal(bar.high, "k.h", frame),
        low=_decimal(bar.low, "k.l", frame),
        close=_decimal(bar.close, "k.c", frame),
        volume=_decimal(bar.volume, "k.v", frame),
        number_of_trades=bar.number_of_trades,
        quote_asset_volume=_decimal(bar.quote_asset_volume, "k.q", frame),
        taker_buy_base_asset_volume=_decimal(bar.taker_buy_base_asset_volume, "k.V", frame),
        taker_buy_quote_asset_volume=_decimal(bar.taker_buy_quote_asset_volume, "k.Q", frame),
    )


def decode_agg_trade(frame: Frame) -> AggTradeUpdate:
    """Decode a ``<symbol>@aggTrade`` frame."""
    raw = _validate(_AggTradeFrame, _load_object(frame), frame)
    return AggTradeUpdate(
        event_type=raw.event_type,
        event_time=_timestamp(raw.event_time, "E", frame),
        symbol=raw.symbol,
        trade_id=raw.trade_id,
        price=_decimal(raw.price, "p", frame),
        quantity=_decimal(raw.quantity, "q", frame),
        first_trade_id=raw.first_trade_id,
        last_trade_id=raw.last_trade_id,
        timestamp=_timestamp(raw.timestamp, "T", frame),
        buyer_is_maker=raw.buyer_is_maker,
    )


def decode_trade(frame: Frame) -> TradeUpdate:
    """
    Decode a ``<symbol>@trade`` frame.

    Price and quantity are accepted either as JSON numbers or as numeric
    strings.
    """
    raw = _validate(_TradeFrame, _load_object(frame), frame)
    return TradeUpdate(
        event_type=raw.event_type,
        event_time=_timestamp(raw.event_time, "E", frame),
        symbol=raw.symbol,
        trade_id=raw.trade_id,
        price=_decimal(raw.price, "p", frame),
        quantity=_decimal(raw.quantity, "q", frame),
        buyer_id=raw.buyer_id,
        seller_id=raw.seller_id,
        trade_time=_timestamp(raw.trade_time, "T", frame),
        buyer_is_maker=raw.buyer_is_maker,
    )


def _balance_snapshot(payload: dict, frame: Frame) -> BalanceSnapshot:
    raw = _validate(_AccountInfoFrame, payload, frame)
    return BalanceSnapshot(
        event_type=raw.event_type,
        event_time=_timestamp(raw.event_time, "E", frame),
        maker_commission=_decimal(raw.maker_commission, "m", frame),
        taker_commission=_decimal(raw.taker_commission, "t", frame),
        buyer_commission=_decimal(raw.buyer_commission, "b", frame),
        seller_commission=_decimal(raw.seller_commission, "s", frame),
        can_trade=raw.can_trade,
        can_withdraw=raw.can_withdraw,
        can_deposit=raw.can_deposit,
        update_time=_timestamp(raw.update_time, "u", frame),
        balances=[
            Balance(
                asset=entry.asset,
                free=_decimal(entry.free, f"B[{index}].f", frame),
                locked=_decimal(entry.locked, f"B[{index}].l", frame),
            )
            for index, entry in enumerate(raw.balances)
        ],
    )


def _execution_report(payload: dict, frame: Frame) -> ExecutionReport:
    raw = _validate(_ExecutionReportFrame, payload, frame)
    return ExecutionReport(
        event_type=raw.event_type,
        event_time=_timestamp(raw.event_time, "E", frame),
        symbol=raw.symbol,
        client_order_id=raw.client_order_id,
        side=raw.side,
        order_type=raw.order_type,
        time_in_force=raw.time_in_force,
        quantity=_decimal(raw.quantity, "q", frame),
        price=_decimal(raw.price, "p", frame),
        stop_price=_decimal(raw.stop_price, "P", frame),
        iceberg_quantity=_decimal(raw.iceberg_quantity, "F", frame),
        original_client_order_id=raw.original_client_order_id,
        execution_type=raw.execution_type,
        order_status=raw.order_status,
        reject_reason=raw.reject_reason,
        order_id=raw.order_id,
        last_executed_quantity=_decimal(raw.last_executed_quantity, "l", frame),
        cumulative_filled_quantity=_decimal(raw.cumulative_filled_quantity, "z", frame),
        last_executed_price=_decimal(raw.last_executed_price, "L", frame),
        commission_amount=_decimal(raw.commission_amount, "n", frame),
        commission_asset=raw.commission_asset,
        transaction_time=_timestamp(raw.transaction_time, "T", frame),
        trade_id=raw.trade_id,
        is_working=raw.is_working,
        is_maker=raw.is_maker,
        order_creation_time=_timestamp(raw.order_creation_time, "O", frame),
        cumulative_quote_quantity=_decimal(raw.cumulative_quote_quantity, "Z", frame),
    )


class AccountDecoder:
    """
    Decoder for the user data stream.

    The ``e`` tag of each frame selects the wire shape: ``outboundAccountInfo``
    frames become BalanceSnapshot events and ``executionReport`` frames become
    ExecutionReport events. Frames with any other tag are dropped.

    Execution reports are always fully decoded, so a malformed report still
    ends the session. Whether a decoded report is published or only logged is
    controlled by ``emit_execution_reports``.

    Examples:
        >>> decode = AccountDecoder(emit_execution_reports=True)
        >>> decode('{"e": "unknownType", "E": 1}') is None
        True
    """

    BALANCE_SNAPSHOT = "outboundAccountInfo"
    EXECUTION_REPORT = "executionReport"

    def __init__(self, emit_execution_reports: bool = False):
        self.emit_execution_reports = emit_execution_reports

    def __call__(self, frame: Frame) -> Optional[StreamEvent]:
        payload = _load_object(frame)
        event_type = payload.get("e")

        if event_type == self.BALANCE_SNAPSHOT:
            return _balance_snapshot(payload, frame)

        if event_type == self.EXECUTION_REPORT:
            report = _execution_report(payload, frame)
            if self.emit_execution_reports:
                return report
            logger.info(
                f"Execution report {report.symbol} order={report.order_id} "
                f"status={report.order_status} execution={report.execution_type}"
            )
            return None

        logger.debug(f"Dropping unrecognized account event type {event_type!r}")
        return None

    def __repr__(self) -> str:
        return f"AccountDecoder(emit_execution_reports={self.emit_execution_reports})"


def decoder_for(topic: StreamTopic, emit_execution_reports: bool = False) -> Decoder:
    """
    Select the frame decoder for a stream topic.

    Args:
        topic (StreamTopic): Stream topic
        emit_execution_reports (bool): Publish execution reports on the
                                       account stream instead of logging them

    Returns:
        Decoder: Callable mapping one frame to an event or None
    """
    if topic is StreamTopic.ACCOUNT_UPDATE:
        return AccountDecoder(emit_execution_reports=emit_execution_reports)

    decoders = {
        StreamTopic.DEPTH: decode_depth,
        StreamTopic.KLINE: decode_kline,
        StreamTopic.AGG_TRADE: decode_agg_trade,
        StreamTopic.TRADE: decode_trade,
    }
    return decoders[topic]
