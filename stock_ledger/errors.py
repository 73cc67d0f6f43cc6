"""Exceptions raised by the stock ledger."""

from __future__ import annotations

from datetime import date


class LedgerError(Exception):
    """Base class for ledger failures."""


class OversellError(LedgerError, ValueError):
    """A sell asked for more shares than the position holds."""

    def __init__(
        self,
        instrument_key: str,
        currency: str,
        on: date,
        requested: float,
        held: float,
    ) -> None:
        self.instrument_key = instrument_key
        self.currency = currency
        self.date = on
        self.requested = requested
        self.held = held
        super().__init__(
            f"Sell of {requested:g} {instrument_key} ({currency}) on {on.isoformat()} "
            f"exceeds held quantity {held:g}"
        )


class InvalidTransactionError(LedgerError, ValueError):
    """A raw transaction row could not be turned into a transaction."""

    def __init__(self, reason: str, row: object | None = None) -> None:
        self.reason = reason
        self.row = row
        super().__init__(reason)


__all__ = ["LedgerError", "OversellError", "InvalidTransactionError"]
