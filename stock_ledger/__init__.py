"""Weighted-average-cost position ledger and performance metrics."""

from .models import (
    ChartDataPoint,
    DividendSummary,
    Position,
    PriceRecord,
    StockMetrics,
    Transaction,
    TransactionEvent,
    TransactionType,
    WindowReturn,
)
from .errors import InvalidTransactionError, LedgerError, OversellError
from .parsing import parse_amount, parse_price_records, parse_transactions, parse_type
from .ledger import build_position_history, build_positions, transaction_stats
from .valuation import summarize_by_currency, value_position
from .ranges import ChartTimeRange
from .metrics import PerformanceHistory, calculate_stock_metrics, extract_transaction_events
from .dividends import summarize_dividends

__all__ = [
    "Transaction",
    "TransactionType",
    "PriceRecord",
    "Position",
    "StockMetrics",
    "DividendSummary",
    "ChartDataPoint",
    "TransactionEvent",
    "WindowReturn",
    "LedgerError",
    "OversellError",
    "InvalidTransactionError",
    "parse_amount",
    "parse_type",
    "parse_transactions",
    "parse_price_records",
    "build_positions",
    "build_position_history",
    "transaction_stats",
    "value_position",
    "summarize_by_currency",
    "ChartTimeRange",
    "PerformanceHistory",
    "calculate_stock_metrics",
    "extract_transaction_events",
    "summarize_dividends",
]
