"""Time-series performance metrics for a single instrument.

:class:`PerformanceHistory` replays an instrument's events onto its price
history once, producing the NAV curve and prefix sums of cash flows. Range
switches (1W, MTD, YTD, ...) then only bisect those arrays instead of walking
the whole history again. The stateless helpers below work directly on price
records and back :func:`calculate_stock_metrics`.
"""

from __future__ import annotations

import logging
import math
from bisect import bisect_left, bisect_right
from datetime import date
from typing import List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from opentelemetry import trace

from .config import LedgerSettings, get_settings
from .ledger import LedgerState, apply_event, chronological
from .models import (
    ChartDataPoint,
    Position,
    PriceRecord,
    StockMetrics,
    Transaction,
    TransactionEvent,
    TransactionType,
    WindowReturn,
)
from .ranges import ChartTimeRange, range_start, years_before

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


def price_series(prices: Sequence[PriceRecord]) -> pd.Series:
    """Closing prices as a float series indexed by date, ascending."""

    ordered = sorted(prices, key=lambda p: p.date)
    return pd.Series(
        [p.close for p in ordered],
        index=pd.Index([p.date for p in ordered], name="date"),
        dtype="float64",
        name="close",
    )


def calculate_max_drawdown(prices: Sequence[PriceRecord]) -> Tuple[float, float]:
    """Largest fall from a running peak: ``(amount, percent of that peak)``."""

    closes = price_series(prices)
    if closes.empty:
        return 0.0, 0.0
    peaks = closes.cummax().to_numpy()
    drawdowns = peaks - closes.to_numpy()
    worst = int(np.argmax(drawdowns))
    amount = float(drawdowns[worst])
    if amount <= 0:
        return 0.0, 0.0
    peak = float(peaks[worst])
    percent = amount / peak * 100 if peak > 0 else 0.0
    return amount, percent


def calculate_volatility(prices: Sequence[PriceRecord], trading_days: int = 252) -> float:
    """Annualized volatility of daily simple returns, in percent."""

    closes = price_series(prices)
    if len(closes) < 2:
        return 0.0
    returns = (closes / closes.shift(1) - 1).replace([np.inf, -np.inf], np.nan).dropna()
    if returns.empty:
        return 0.0
    return float(returns.std(ddof=0) * math.sqrt(trading_days) * 100)


def calculate_annualized_return(
    current_value: float,
    invested: float,
    holding_days: int,
    day_basis: float = 365.0,
) -> float:
    """CAGR in percent; ``0.0`` when the holding period or invested amount is empty."""

    if holding_days <= 0 or invested <= 0:
        return 0.0
    if current_value <= 0:
        return -100.0
    try:
        growth = (current_value / invested) ** (day_basis / holding_days)
    except OverflowError:
        logger.warning(
            "Annualized return overflowed for growth %.2f over %d days",
            current_value / invested,
            holding_days,
        )
        return 0.0
    return (growth - 1) * 100


def best_and_worst_day(
    prices: Sequence[PriceRecord],
) -> Tuple[float, Optional[date], float, Optional[date]]:
    """Largest single-day rise and fall in price, each with its date."""

    closes = price_series(prices)
    changes = closes.diff().iloc[1:]
    best, best_date = 0.0, None
    worst, worst_date = 0.0, None
    if changes.empty:
        return best, best_date, worst, worst_date
    values = changes.to_numpy()
    top, bottom = int(np.argmax(values)), int(np.argmin(values))
    if values[top] > 0:
        best, best_date = float(values[top]), changes.index[top]
    if values[bottom] < 0:
        worst, worst_date = float(values[bottom]), changes.index[bottom]
    return best, best_date, worst, worst_date


class PerformanceHistory:
    """Day-by-day replay of one instrument's position over its price history."""

    def __init__(
        self,
        prices: Sequence[PriceRecord],
        shares: Sequence[float],
        cost_basis: Sequence[float],
        flow_dates: Sequence[date],
        buy_amounts: Sequence[float],
        sell_amounts: Sequence[float],
        final_state: LedgerState,
    ) -> None:
        self.prices: Tuple[PriceRecord, ...] = tuple(prices)
        self.dates: Tuple[date, ...] = tuple(p.date for p in self.prices)
        self.closes = np.array([p.close for p in self.prices], dtype="float64")
        self.shares = np.array(shares, dtype="float64")
        self.cost_basis = np.array(cost_basis, dtype="float64")
        self.nav = self.shares * self.closes
        self.flow_dates: Tuple[date, ...] = tuple(flow_dates)
        self._cum_buys = np.concatenate(([0.0], np.cumsum(np.asarray(buy_amounts, dtype="float64"))))
        self._cum_sells = np.concatenate(([0.0], np.cumsum(np.asarray(sell_amounts, dtype="float64"))))
        self.final_state = final_state

    @classmethod
    def build(
        cls,
        transactions: Sequence[Transaction],
        prices: Sequence[PriceRecord],
        *,
        settings: LedgerSettings | None = None,
    ) -> "PerformanceHistory":
        """Replay ``transactions`` onto ``prices`` in a single ordered pass.

        Events dated on or before a price date are applied before that day's
        NAV is taken, so a buy on a trading day is already in that day's value.
        """

        settings = settings or get_settings()
        ordered_prices = sorted(prices, key=lambda p: p.date)
        ordered_txs = chronological(transactions)

        with tracer.start_as_current_span("metrics.performance_history") as span:
            span.set_attribute("metrics.price_count", len(ordered_prices))
            span.set_attribute("metrics.transaction_count", len(ordered_txs))

            first = ordered_txs[0] if ordered_txs else None
            state = LedgerState(
                instrument_key=first.instrument_key if first else "",
                currency=first.currency if first else settings.default_currency,
            )
            shares: List[float] = []
            cost_basis: List[float] = []
            tx_index = 0
            for record in ordered_prices:
                while tx_index < len(ordered_txs) and ordered_txs[tx_index].date <= record.date:
                    apply_event(state, ordered_txs[tx_index], epsilon=settings.share_epsilon)
                    tx_index += 1
                shares.append(state.shares)
                cost_basis.append(state.average_cost)
            # Events after the last price still have to be valid
            for tx in ordered_txs[tx_index:]:
                apply_event(state, tx, epsilon=settings.share_epsilon)

            flow_dates: List[date] = []
            buy_amounts: List[float] = []
            sell_amounts: List[float] = []
            for tx in ordered_txs:
                if tx.type is TransactionType.BUY:
                    flow_dates.append(tx.date)
                    buy_amounts.append(tx.cash_amount)
                    sell_amounts.append(0.0)
                elif tx.type is TransactionType.SELL:
                    flow_dates.append(tx.date)
                    buy_amounts.append(0.0)
                    sell_amounts.append(tx.cash_amount)

        logger.debug(
            "Replayed %d transactions over %d price days", len(ordered_txs), len(ordered_prices)
        )
        return cls(
            ordered_prices,
            shares,
            cost_basis,
            flow_dates,
            buy_amounts,
            sell_amounts,
            state,
        )

    def __len__(self) -> int:
        return len(self.dates)

    def _window_indices(
        self,
        time_range: ChartTimeRange | str,
        start: Optional[date],
        end: Optional[date],
    ) -> Tuple[int, int]:
        if not self.dates:
            raise ValueError("No price history to take a window from")
        end = end or self.dates[-1]
        end_idx = bisect_right(self.dates, end) - 1
        if end_idx < 0:
            raise ValueError(f"No price history on or before {end.isoformat()}")
        if start is None:
            start = range_start(time_range, self.dates[end_idx], self.dates[0])
        start_idx = min(bisect_left(self.dates, start), end_idx)
        return start_idx, end_idx

    def nav_at(self, on: date) -> float:
        """NAV on the last price date at or before ``on``; ``0.0`` before history."""

        idx = bisect_right(self.dates, on) - 1
        return float(self.nav[idx]) if idx >= 0 else 0.0

    def window_return(
        self,
        time_range: ChartTimeRange | str = ChartTimeRange.ALL,
        *,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> WindowReturn:
        """Net-cash-flow adjusted return over a window.

        ``change = (nav_end - nav_start) - (buys - sells)`` and the percentage
        is taken against ``nav_start + buys``. Flows dated on the window's first
        day are already part of ``nav_start`` and are not counted again.
        """

        start_idx, end_idx = self._window_indices(time_range, start, end)
        window_start, window_end = self.dates[start_idx], self.dates[end_idx]
        nav_start = float(self.nav[start_idx])
        nav_end = float(self.nav[end_idx])

        lo = bisect_right(self.flow_dates, window_start)
        hi = bisect_right(self.flow_dates, window_end)
        buys = float(self._cum_buys[hi] - self._cum_buys[lo])
        sells = float(self._cum_sells[hi] - self._cum_sells[lo])
        net_flow = buys - sells
        change = (nav_end - nav_start) - net_flow
        base = nav_start + buys
        return WindowReturn(
            start=window_start,
            end=window_end,
            nav_start=nav_start,
            nav_end=nav_end,
            buy_amount=buys,
            sell_amount=sells,
            net_flow=net_flow,
            change=change,
            percent_change=change / base * 100 if base > 0 else 0.0,
        )

    def chart_data(
        self,
        time_range: ChartTimeRange | str = ChartTimeRange.ALL,
        *,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> List[ChartDataPoint]:
        if not self.dates:
            return []
        start_idx, end_idx = self._window_indices(time_range, start, end)
        return [
            ChartDataPoint(
                date=self.dates[i],
                close=float(self.closes[i]),
                value=float(self.nav[i]),
                cost_basis=float(self.cost_basis[i]),
                shares=float(self.shares[i]),
                volume=self.prices[i].volume,
            )
            for i in range(start_idx, end_idx + 1)
        ]

    def to_frame(self) -> pd.DataFrame:
        """The replay as a DataFrame indexed by date."""

        return pd.DataFrame(
            {
                "close": self.closes,
                "shares": self.shares,
                "nav": self.nav,
                "cost_basis": self.cost_basis,
                "volume": [p.volume for p in self.prices],
            },
            index=pd.Index(self.dates, name="date"),
        )


def _resolve_as_of(
    prices: Sequence[PriceRecord],
    transactions: Sequence[Transaction],
    as_of: Optional[date],
) -> date:
    if as_of is not None:
        return as_of
    if prices:
        return max(p.date for p in prices)
    if transactions:
        return max(t.date for t in transactions)
    raise ValueError("as_of is required when there is no price or transaction history")


def calculate_stock_metrics(
    position: Position,
    prices: Sequence[PriceRecord],
    transactions: Sequence[Transaction],
    *,
    as_of: Optional[date] = None,
    settings: LedgerSettings | None = None,
) -> StockMetrics:
    """Compute return, risk and range statistics for one holding.

    ``as_of`` defaults to the last price date so results depend only on the
    inputs. Drawdown, volatility and best/worst day use the trailing
    ``trailing_window_years`` window, falling back to the full history when
    that window holds fewer than two prices.
    """

    settings = settings or get_settings()
    as_of = _resolve_as_of(prices, transactions, as_of)

    with tracer.start_as_current_span("metrics.stock_metrics") as span:
        span.set_attribute("metrics.instrument", position.instrument_key)
        history = sorted((p for p in prices if p.date <= as_of), key=lambda p: p.date)
        ordered = [t for t in chronological(transactions) if t.date <= as_of]
        buys = [t for t in ordered if t.type is TransactionType.BUY]
        first_purchase = buys[0].date if buys else None
        last_transaction = ordered[-1].date if ordered else None
        holding_days = max((as_of - first_purchase).days, 0) if first_purchase else 0

        if position.current_value is not None:
            current_value = position.current_value
        elif history:
            current_value = position.shares * history[-1].close
        else:
            current_value = 0.0
        total_return = current_value - position.total_cost
        total_return_percent = (
            total_return / position.total_cost * 100 if position.total_cost > 0 else 0.0
        )
        annualized = calculate_annualized_return(
            current_value, position.total_cost, holding_days, settings.cagr_day_basis
        )

        if history:
            highest = max(p.close for p in history)
            lowest = min(p.close for p in history)
        else:
            highest = lowest = position.current_price or 0.0

        cutoff = years_before(as_of, settings.trailing_window_years)
        trailing = [p for p in history if p.date >= cutoff]
        if len(trailing) < 2:
            trailing = history

        volatility = calculate_volatility(trailing, settings.trading_days_per_year)
        drawdown, drawdown_percent = calculate_max_drawdown(trailing)
        best, best_date, worst, worst_date = best_and_worst_day(trailing)

        days_since_positive: Optional[int] = None
        if total_return >= 0 and position.shares > 0:
            for record in reversed(history):
                if record.close * position.shares >= position.total_cost:
                    days_since_positive = (as_of - record.date).days
                    break

    return StockMetrics(
        total_return=total_return,
        total_return_percent=total_return_percent,
        annualized_return=annualized,
        holding_period_days=holding_days,
        first_purchase_date=first_purchase,
        last_transaction_date=last_transaction,
        highest_price=highest,
        lowest_price=lowest,
        price_volatility=volatility,
        max_drawdown=drawdown,
        max_drawdown_percent=drawdown_percent,
        best_day_gain=best,
        best_day_gain_date=best_date,
        worst_day_loss=worst,
        worst_day_loss_date=worst_date,
        days_since_positive=days_since_positive,
        as_of=as_of,
    )


def extract_transaction_events(
    transactions: Sequence[Transaction],
    *,
    settings: LedgerSettings | None = None,
) -> List[TransactionEvent]:
    """Trade markers with the share count after each event."""

    settings = settings or get_settings()
    events: List[TransactionEvent] = []
    ordered = chronological(transactions)
    if not ordered:
        return events
    state = LedgerState(instrument_key=ordered[0].instrument_key, currency=ordered[0].currency)
    for tx in ordered:
        if tx.type is TransactionType.UNKNOWN:
            continue
        apply_event(state, tx, epsilon=settings.share_epsilon)
        events.append(
            TransactionEvent(
                date=tx.date,
                type=tx.type,
                quantity=tx.quantity,
                price=tx.price,
                amount=tx.gross_amount,
                shares_after=state.shares,
            )
        )
    return events


__all__ = [
    "PerformanceHistory",
    "price_series",
    "calculate_max_drawdown",
    "calculate_volatility",
    "calculate_annualized_return",
    "best_and_worst_day",
    "calculate_stock_metrics",
    "extract_transaction_events",
]
