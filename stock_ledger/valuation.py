"""Attach prices to ledger positions."""
from __future__ import annotations

from dataclasses import replace
from typing import Dict, Iterable, List

from .models import CurrencyBreakdown, Position


def value_position(position: Position, current_price: float) -> Position:
    """Return a copy of ``position`` valued at ``current_price``.

    The input is left untouched, so the same position can be valued against
    several prices for what-if display.
    """

    current_value = position.shares * current_price
    gain_loss = current_value - position.total_cost
    if position.total_cost != 0:
        gain_loss_percent = (current_value / position.total_cost - 1) * 100
    else:
        gain_loss_percent = 0.0
    return replace(
        position,
        current_price=current_price,
        current_value=current_value,
        gain_loss=gain_loss,
        gain_loss_percent=gain_loss_percent,
    )


def summarize_by_currency(positions: Iterable[Position]) -> List[CurrencyBreakdown]:
    """Per-currency totals; unvalued positions count at their cost.

    Amounts are never converted between currencies.
    """

    totals: Dict[str, Dict[str, float]] = {}
    for position in positions:
        value = (
            position.current_value
            if position.current_value is not None
            else position.total_cost
        )
        bucket = totals.setdefault(
            position.currency, {"value": 0.0, "cost": 0.0, "positions": 0}
        )
        bucket["value"] += value
        bucket["cost"] += position.total_cost
        bucket["positions"] += 1

    breakdowns: List[CurrencyBreakdown] = []
    for currency in sorted(totals):
        bucket = totals[currency]
        gain_loss = bucket["value"] - bucket["cost"]
        breakdowns.append(
            CurrencyBreakdown(
                currency=currency,
                value=bucket["value"],
                cost=bucket["cost"],
                gain_loss=gain_loss,
                gain_loss_percent=(
                    gain_loss / bucket["cost"] * 100 if bucket["cost"] > 0 else 0.0
                ),
                positions=int(bucket["positions"]),
            )
        )
    return breakdowns


__all__ = ["value_position", "summarize_by_currency"]
