"""Dividend income aggregation."""

from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Dict, List, Optional, Sequence

from opentelemetry import trace

from .config import LedgerSettings, get_settings
from .models import DividendPeriodSummary, DividendSummary, Transaction, TransactionType

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


def quarter_label(d: date) -> str:
    return f"{d.year}-Q{(d.month - 1) // 3 + 1}"


def _period_totals(buckets: Dict[str, List[float]]) -> List[DividendPeriodSummary]:
    return [
        DividendPeriodSummary(period=period, total=sum(amounts), count=len(amounts))
        for period, amounts in sorted(buckets.items(), reverse=True)
    ]


def summarize_dividends(
    transactions: Sequence[Transaction],
    current_price: float,
    *,
    shares: Optional[float] = None,
    as_of: Optional[date] = None,
    settings: LedgerSettings | None = None,
) -> DividendSummary:
    """Totals, per-year/per-quarter buckets and trailing yield for dividends.

    The yield divides the dividends received in the trailing
    ``dividend_lookback_days`` by ``current_price``, or by the position value
    ``current_price * shares`` when ``shares`` is given. It is ``None`` when
    that denominator is not positive. ``as_of`` defaults to the latest
    transaction date.
    """

    settings = settings or get_settings()
    dividends = [t for t in transactions if t.type is TransactionType.DIVIDEND]
    if as_of is None:
        as_of = max((t.date for t in transactions), default=None)

    with tracer.start_as_current_span("dividends.summary") as span:
        span.set_attribute("dividends.count", len(dividends))
        per_year: Dict[str, List[float]] = {}
        per_quarter: Dict[str, List[float]] = {}
        total = 0.0
        trailing_total = 0.0
        cutoff = as_of - timedelta(days=settings.dividend_lookback_days) if as_of else None
        for tx in dividends:
            amount = tx.cash_amount
            total += amount
            per_year.setdefault(str(tx.date.year), []).append(amount)
            per_quarter.setdefault(quarter_label(tx.date), []).append(amount)
            if cutoff is not None and cutoff <= tx.date <= as_of:
                trailing_total += amount

    denominator = current_price * shares if shares is not None else current_price
    annual_yield = trailing_total / denominator * 100 if denominator > 0 else None
    count = len(dividends)
    logger.debug("Summarised %d dividends, trailing total %.2f", count, trailing_total)
    return DividendSummary(
        total_dividends=total,
        dividend_count=count,
        average_dividend=total / count if count else 0.0,
        last_dividend_date=max((t.date for t in dividends), default=None),
        annual_yield=annual_yield,
        per_year_totals=_period_totals(per_year),
        per_quarter_totals=_period_totals(per_quarter),
    )


__all__ = ["summarize_dividends", "quarter_label"]
