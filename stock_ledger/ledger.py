"""Weighted-average-cost position ledger.

All position building in the package goes through :func:`apply_event`, the
single buy/sell/dividend/split transition, so the ledger, the full position
history and the day-by-day replay in :mod:`stock_ledger.metrics` can never
disagree about how an event changes a holding.
"""
from __future__ import annotations

import logging
import math
from collections import Counter
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from opentelemetry import trace

from .config import LedgerSettings, get_settings
from .errors import OversellError
from .models import (
    Position,
    PositionHistoryEntry,
    PositionStatus,
    Transaction,
    TransactionStats,
    TransactionType,
)

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class HoldingState(str, Enum):
    EMPTY = "empty"
    HELD = "held"
    CLOSED = "closed"


@dataclass
class LedgerState:
    """Running ``{shares, total_cost}`` for one (instrument, currency) group."""

    instrument_key: str
    currency: str
    shares: float = 0.0
    total_cost: float = 0.0
    opened: bool = False

    @property
    def average_cost(self) -> float:
        if self.shares > 0:
            return self.total_cost / self.shares
        return 0.0

    @property
    def status(self) -> HoldingState:
        if self.shares > 0:
            return HoldingState.HELD
        return HoldingState.CLOSED if self.opened else HoldingState.EMPTY

    def to_position(self) -> Position:
        return Position(
            instrument_key=self.instrument_key,
            currency=self.currency,
            shares=self.shares,
            average_cost=self.average_cost,
            total_cost=self.total_cost,
        )


def apply_event(state: LedgerState, tx: Transaction, *, epsilon: float = 0.0) -> float:
    """Apply one event to ``state`` in place and return the cost it removed.

    Only sells remove cost; every other event returns ``0.0``. A sell of more
    shares than are held raises :class:`OversellError`. Splits on an empty
    state, splits without a usable ratio and unknown event types are skipped
    with a warning.
    """

    quantity = abs(tx.quantity)

    if tx.type is TransactionType.BUY:
        state.total_cost += quantity * tx.price + tx.fees
        state.shares += quantity
        if state.shares > epsilon:
            state.opened = True
        return 0.0

    if tx.type is TransactionType.SELL:
        if quantity > state.shares + epsilon:
            raise OversellError(tx.instrument_key, tx.currency, tx.date, quantity, state.shares)
        removed = quantity * state.average_cost
        state.shares -= quantity
        state.total_cost -= removed
        if state.shares <= epsilon:
            # Fold leftover float dust into the removed cost
            removed += state.total_cost
            state.shares = 0.0
            state.total_cost = 0.0
        return removed

    if tx.type is TransactionType.DIVIDEND:
        return 0.0

    if tx.type is TransactionType.SPLIT:
        ratio = tx.split_ratio
        if ratio is None or not math.isfinite(ratio) or ratio <= 0:
            logger.warning(
                "Skipping split for %s on %s: invalid ratio %r",
                tx.instrument_key,
                tx.date.isoformat(),
                ratio,
            )
            return 0.0
        if state.shares <= epsilon:
            logger.warning(
                "Ignoring split for %s on %s: no shares held",
                tx.instrument_key,
                tx.date.isoformat(),
            )
            return 0.0
        state.shares *= ratio
        return 0.0

    logger.warning(
        "Skipping %s event for %s on %s: unknown transaction type",
        tx.type.value,
        tx.instrument_key,
        tx.date.isoformat(),
    )
    return 0.0


def chronological(transactions: Iterable[Transaction]) -> List[Transaction]:
    """Sort by date, then by source row ``sequence``.

    The sort is stable, so same-day events with equal sequences keep their
    input order.
    """

    return sorted(transactions, key=lambda tx: (tx.date, tx.sequence))


def group_transactions(
    transactions: Iterable[Transaction],
) -> Dict[Tuple[str, str], List[Transaction]]:
    grouped: Dict[Tuple[str, str], List[Transaction]] = {}
    for tx in transactions:
        grouped.setdefault(tx.key, []).append(tx)
    return grouped


def fold_group(
    instrument_key: str,
    currency: str,
    transactions: Sequence[Transaction],
    *,
    epsilon: float = 0.0,
) -> LedgerState:
    """Fold one group's events, in date order, into a fresh state."""

    state = LedgerState(instrument_key=instrument_key, currency=currency)
    for tx in chronological(transactions):
        apply_event(state, tx, epsilon=epsilon)
    return state


def build_positions(
    transactions: Sequence[Transaction],
    *,
    settings: LedgerSettings | None = None,
    include_closed: bool | None = None,
) -> List[Position]:
    """Build one weighted-average-cost position per (instrument, currency).

    Groups that never held shares (only splits and/or dividends) produce no
    position. Fully sold groups are emitted with zero shares unless
    ``include_closed`` (or the ``include_closed_positions`` setting) is off.
    """

    settings = settings or get_settings()
    if include_closed is None:
        include_closed = settings.include_closed_positions

    with tracer.start_as_current_span("ledger.build_positions") as span:
        span.set_attribute("ledger.transaction_count", len(transactions))
        positions: List[Position] = []
        for (instrument_key, currency), group in group_transactions(transactions).items():
            state = fold_group(
                instrument_key, currency, group, epsilon=settings.share_epsilon
            )
            if state.status is HoldingState.EMPTY:
                continue
            if state.status is HoldingState.CLOSED and not include_closed:
                continue
            positions.append(state.to_position())
        span.set_attribute("ledger.position_count", len(positions))

    logger.debug(
        "Built %d positions from %d transactions", len(positions), len(transactions)
    )
    return positions


def build_position_history(
    transactions: Sequence[Transaction],
    *,
    settings: LedgerSettings | None = None,
) -> List[PositionHistoryEntry]:
    """Summarise every group with invested capital, realized P&L and dividends."""

    settings = settings or get_settings()
    entries: List[PositionHistoryEntry] = []

    with tracer.start_as_current_span("ledger.build_position_history") as span:
        span.set_attribute("ledger.transaction_count", len(transactions))
        for (instrument_key, currency), group in group_transactions(transactions).items():
            state = LedgerState(instrument_key=instrument_key, currency=currency)
            invested = 0.0
            realized = 0.0
            dividends = 0.0
            paid_dividend = False
            last_transaction: Optional[date] = None
            for tx in chronological(group):
                removed = apply_event(state, tx, epsilon=settings.share_epsilon)
                last_transaction = tx.date
                if tx.type is TransactionType.BUY:
                    invested += tx.cash_amount
                elif tx.type is TransactionType.SELL:
                    realized += tx.cash_amount - removed
                elif tx.type is TransactionType.DIVIDEND:
                    paid_dividend = True
                    dividends += tx.cash_amount
                    realized += tx.cash_amount
            if state.status is HoldingState.EMPTY and not paid_dividend:
                continue
            entries.append(
                PositionHistoryEntry(
                    instrument_key=instrument_key,
                    currency=currency,
                    shares=state.shares,
                    invested=invested,
                    remaining_cost=state.total_cost,
                    average_cost=state.average_cost,
                    realized_pnl=realized,
                    dividends=dividends,
                    last_transaction=last_transaction,
                    status=(
                        PositionStatus.ACTIVE
                        if state.status is HoldingState.HELD
                        else PositionStatus.CLOSED
                    ),
                )
            )
        span.set_attribute("ledger.entry_count", len(entries))

    entries.sort(key=lambda e: e.last_transaction or date.min, reverse=True)
    return entries


def transaction_stats(transactions: Iterable[Transaction]) -> TransactionStats:
    """Count transactions by type and by currency."""

    by_type: Counter[TransactionType] = Counter()
    by_currency: Counter[str] = Counter()
    total = 0
    for tx in transactions:
        total += 1
        by_type[tx.type] += 1
        by_currency[tx.currency] += 1
    return TransactionStats(
        total=total,
        buys=by_type[TransactionType.BUY],
        sells=by_type[TransactionType.SELL],
        dividends=by_type[TransactionType.DIVIDEND],
        splits=by_type[TransactionType.SPLIT],
        unknown=by_type[TransactionType.UNKNOWN],
        by_currency=dict(by_currency),
    )


__all__ = [
    "HoldingState",
    "LedgerState",
    "apply_event",
    "chronological",
    "group_transactions",
    "fold_group",
    "build_positions",
    "build_position_history",
    "transaction_stats",
]
