"""Domain models used by the stock ledger and its metrics."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Dict, List, Optional, Tuple

from .config import DEFAULT_CURRENCY


class TransactionType(str, Enum):
    """Closed set of event kinds understood by the ledger."""

    BUY = "buy"
    SELL = "sell"
    DIVIDEND = "dividend"
    SPLIT = "split"
    UNKNOWN = "unknown"


class PositionStatus(str, Enum):
    ACTIVE = "Active"
    CLOSED = "Closed"


@dataclass(frozen=True)
class Transaction:
    """A normalized trade, dividend or split event."""

    date: date
    instrument_key: str
    type: TransactionType
    quantity: float = 0.0
    price: float = 0.0
    fees: float = 0.0
    currency: str = DEFAULT_CURRENCY
    split_ratio: Optional[float] = None
    sequence: int = 0

    @property
    def key(self) -> Tuple[str, str]:
        """Grouping key for the ledger."""

        return (self.instrument_key, self.currency)

    @property
    def gross_amount(self) -> float:
        return self.quantity * self.price

    @property
    def cash_amount(self) -> float:
        """Cash paid (buy) or received (sell, dividend) including fees."""

        if self.type is TransactionType.BUY:
            return self.gross_amount + self.fees
        if self.type is TransactionType.SELL:
            return self.gross_amount - self.fees
        if self.type is TransactionType.DIVIDEND:
            return self.gross_amount
        return 0.0


@dataclass(frozen=True)
class PriceRecord:
    """Daily market data for one instrument."""

    date: date
    close: float
    open: Optional[float] = None
    high: Optional[float] = None
    low: Optional[float] = None
    volume: Optional[float] = None


@dataclass
class Position:
    """Weighted-average-cost holding for one (instrument, currency) pair."""

    instrument_key: str
    currency: str
    shares: float = 0.0
    average_cost: float = 0.0
    total_cost: float = 0.0
    current_price: Optional[float] = None
    current_value: Optional[float] = None
    gain_loss: Optional[float] = None
    gain_loss_percent: Optional[float] = None

    @property
    def is_closed(self) -> bool:
        return self.shares == 0


@dataclass(frozen=True)
class StockMetrics:
    """Performance figures for one instrument, recomputed on demand."""

    total_return: float
    total_return_percent: float
    annualized_return: float
    holding_period_days: int
    first_purchase_date: Optional[date]
    last_transaction_date: Optional[date]
    highest_price: float
    lowest_price: float
    price_volatility: float
    max_drawdown: float
    max_drawdown_percent: float
    best_day_gain: float
    best_day_gain_date: Optional[date]
    worst_day_loss: float
    worst_day_loss_date: Optional[date]
    days_since_positive: Optional[int]
    as_of: date


@dataclass(frozen=True)
class DividendPeriodSummary:
    period: str
    total: float
    count: int


@dataclass(frozen=True)
class DividendSummary:
    total_dividends: float
    dividend_count: int
    average_dividend: float
    last_dividend_date: Optional[date]
    annual_yield: Optional[float]
    per_year_totals: List[DividendPeriodSummary] = field(default_factory=list)
    per_quarter_totals: List[DividendPeriodSummary] = field(default_factory=list)


@dataclass(frozen=True)
class ChartDataPoint:
    """One price-history day with the position replayed onto it."""

    date: date
    close: float
    value: float
    cost_basis: float
    shares: float
    volume: Optional[float] = None


@dataclass(frozen=True)
class TransactionEvent:
    """Trade marker for charts."""

    date: date
    type: TransactionType
    quantity: float
    price: float
    amount: float
    shares_after: float


@dataclass(frozen=True)
class WindowReturn:
    """Approximate money-weighted return over a date window."""

    start: date
    end: date
    nav_start: float
    nav_end: float
    buy_amount: float
    sell_amount: float
    net_flow: float
    change: float
    percent_change: float


@dataclass(frozen=True)
class PositionHistoryEntry:
    instrument_key: str
    currency: str
    shares: float
    invested: float
    remaining_cost: float
    average_cost: float
    realized_pnl: float
    dividends: float
    last_transaction: Optional[date]
    status: PositionStatus


@dataclass(frozen=True)
class CurrencyBreakdown:
    currency: str
    value: float
    cost: float
    gain_loss: float
    gain_loss_percent: float
    positions: int


@dataclass(frozen=True)
class TransactionStats:
    total: int
    buys: int
    sells: int
    dividends: int
    splits: int
    unknown: int
    by_currency: Dict[str, int] = field(default_factory=dict)


__all__ = [
    "TransactionType",
    "PositionStatus",
    "Transaction",
    "PriceRecord",
    "Position",
    "StockMetrics",
    "DividendPeriodSummary",
    "DividendSummary",
    "ChartDataPoint",
    "TransactionEvent",
    "WindowReturn",
    "PositionHistoryEntry",
    "CurrencyBreakdown",
    "TransactionStats",
]
