"""Parsing helpers that turn raw CSV-style rows into typed ledger inputs.

Every helper is tolerant: malformed input yields ``None`` (for scalar fields)
or a :class:`ParseSkip` (for whole rows) instead of raising, so a single bad
row never aborts processing of the rest of a transaction stream.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Iterable, List, Mapping, Optional, Tuple, Union

import pandas as pd

from .config import LedgerSettings, get_settings
from .errors import InvalidTransactionError
from .models import PriceRecord, Transaction, TransactionType

logger = logging.getLogger(__name__)

_CURRENCY_PREFIX = re.compile(r"^[^\d\s().,+\-]+")
_GROUPING = re.compile(r"[,\s]")
_PLAIN_NUMBER = re.compile(r"[-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?")
_RATIO_PAIR = re.compile(
    r"^\s*(\d+(?:\.\d+)?)\s*(?::|/|-?\s*for\s*-?)\s*(\d+(?:\.\d+)?)\s*$",
    re.IGNORECASE,
)

_TYPE_SYNONYMS = {
    "buy": TransactionType.BUY,
    "purchase": TransactionType.BUY,
    "bought": TransactionType.BUY,
    "sell": TransactionType.SELL,
    "sale": TransactionType.SELL,
    "sold": TransactionType.SELL,
    "dividend": TransactionType.DIVIDEND,
    "dividends": TransactionType.DIVIDEND,
    "div": TransactionType.DIVIDEND,
    "split": TransactionType.SPLIT,
    "stock split": TransactionType.SPLIT,
    "reverse split": TransactionType.SPLIT,
}

_INSTRUMENT_FIELDS = ("stock", "instrument_key", "instrument", "symbol")


def _is_blank(raw: Any) -> bool:
    return raw is None or (isinstance(raw, str) and not raw.strip())


def _finite_or_none(value: float) -> Optional[float]:
    return value if math.isfinite(value) else None


def parse_amount(raw: Any) -> Optional[float]:
    """Parse a money-like string such as ``"$1,234.50"`` or ``"(12.00)"``.

    A leading currency symbol or code, whitespace and ``,`` thousands
    separators are stripped. A value wrapped in parentheses, or carrying a
    leading or trailing minus sign (ASCII or U+2212), is negative. Anything
    else that is not part of a plain decimal or exponent number makes the
    whole value unparseable, so the result is ``None`` rather than a guess.
    """

    if _is_blank(raw) or isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        return _finite_or_none(float(raw))

    text = str(raw).strip().replace("\u2212", "-")
    negative = False
    if text[:1] in ("-", "+"):
        negative = text[0] == "-"
        text = text[1:].lstrip()
    text = _CURRENCY_PREFIX.sub("", text).strip()
    if text.startswith("(") and text.endswith(")"):
        negative = True
        text = _CURRENCY_PREFIX.sub("", text[1:-1].strip()).strip()
    if text.endswith("-"):
        negative = True
        text = text[:-1]
    text = _GROUPING.sub("", text)
    if not _PLAIN_NUMBER.fullmatch(text):
        return None
    value = float(text)
    if not math.isfinite(value):
        return None
    return -abs(value) if negative else value


def parse_number(raw: Any) -> Optional[float]:
    """Strict numeric parse without symbol stripping."""

    if _is_blank(raw) or isinstance(raw, bool):
        return None
    try:
        value = float(str(raw).strip())
    except ValueError:
        return None
    return _finite_or_none(value)


def parse_type(raw: Any) -> TransactionType:
    """Normalize a transaction type tag; unrecognized tags map to ``UNKNOWN``."""

    if _is_blank(raw):
        return TransactionType.UNKNOWN
    normalized = " ".join(str(raw).strip().lower().split())
    if normalized in _TYPE_SYNONYMS:
        return _TYPE_SYNONYMS[normalized]
    if normalized.startswith("div"):
        return TransactionType.DIVIDEND
    if "split" in normalized:
        return TransactionType.SPLIT
    return TransactionType.UNKNOWN


def parse_date(raw: Any) -> Optional[date]:
    """Parse a date field, returning ``None`` when it cannot be understood."""

    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    if _is_blank(raw):
        return None
    parsed = pd.to_datetime(str(raw).strip(), errors="coerce")
    if pd.isna(parsed):
        return None
    return parsed.date()


def parse_split_ratio(
    raw: Any = None,
    *,
    numerator: Any = None,
    denominator: Any = None,
) -> Optional[float]:
    """Resolve a split ratio from a factor, an ``"N:D"`` style string or a pair.

    ``numerator / denominator`` wins when both are given. Zero, negative and
    non-finite ratios are failures and yield ``None``.
    """

    ratio: Optional[float] = None
    num = parse_number(numerator)
    den = parse_number(denominator)
    if num is not None and den is not None:
        ratio = num / den if den else None
    elif isinstance(raw, str) and (match := _RATIO_PAIR.match(raw)):
        top, bottom = float(match.group(1)), float(match.group(2))
        ratio = top / bottom if bottom else None
    else:
        ratio = parse_amount(raw)
    if ratio is None or not math.isfinite(ratio) or ratio <= 0:
        return None
    return ratio


@dataclass(frozen=True)
class ParseOk:
    transaction: Transaction


@dataclass(frozen=True)
class ParseSkip:
    reason: str
    row: Optional[Mapping[str, Any]] = None
    sequence: int = 0


ParseResult = Union[ParseOk, ParseSkip]


def _normalize_row(row: Mapping[str, Any]) -> dict[str, Any]:
    return {str(key).strip().lower(): value for key, value in row.items()}


def _first(fields: Mapping[str, Any], *names: str) -> Any:
    for name in names:
        value = fields.get(name)
        if not _is_blank(value):
            return value
    return None


def parse_transaction(
    row: Mapping[str, Any],
    sequence: int = 0,
    *,
    settings: LedgerSettings | None = None,
) -> ParseResult:
    """Validate one raw row and turn it into a :class:`Transaction`."""

    settings = settings or get_settings()
    fields = _normalize_row(row)

    def skip(reason: str) -> ParseSkip:
        return ParseSkip(reason=reason, row=row, sequence=sequence)

    instrument = _first(fields, *_INSTRUMENT_FIELDS)
    if instrument is None:
        return skip("missing instrument")
    raw_type = fields.get("type")
    tx_type = parse_type(raw_type)
    if tx_type is TransactionType.UNKNOWN:
        return skip(f"unrecognized transaction type {raw_type!r}")
    tx_date = parse_date(fields.get("date"))
    if tx_date is None:
        return skip(f"unparseable date {fields.get('date')!r}")

    currency = str(_first(fields, "currency") or settings.default_currency).strip().upper()
    fees = abs(parse_amount(fields.get("fees", fields.get("fee"))) or 0.0)
    quantity = parse_amount(fields.get("quantity"))
    price = parse_amount(fields.get("price"))
    split_ratio: Optional[float] = None

    if tx_type in (TransactionType.BUY, TransactionType.SELL, TransactionType.DIVIDEND):
        if quantity is None:
            return skip(f"unparseable quantity {fields.get('quantity')!r}")
        if price is None:
            return skip(f"unparseable price {fields.get('price')!r}")
        quantity = abs(quantity)
        if price < 0:
            return skip(f"negative price {price!r}")
        if quantity == 0 and tx_type is not TransactionType.DIVIDEND:
            return skip("zero quantity")
    else:
        split_ratio = parse_split_ratio(
            fields.get("split_ratio"),
            numerator=_first(fields, "numerator", "split_to"),
            denominator=_first(fields, "denominator", "split_from"),
        )
        if split_ratio is None:
            return skip(f"invalid split ratio {fields.get('split_ratio')!r}")
        quantity = abs(quantity or 0.0)
        price = price or 0.0

    return ParseOk(
        Transaction(
            date=tx_date,
            instrument_key=str(instrument).strip(),
            type=tx_type,
            quantity=quantity,
            price=price,
            fees=fees,
            currency=currency,
            split_ratio=split_ratio,
            sequence=sequence,
        )
    )


def parse_transaction_strict(
    row: Mapping[str, Any],
    sequence: int = 0,
    *,
    settings: LedgerSettings | None = None,
) -> Transaction:
    """Like :func:`parse_transaction` but raises on a skipped row."""

    result = parse_transaction(row, sequence, settings=settings)
    if isinstance(result, ParseSkip):
        raise InvalidTransactionError(result.reason, row)
    return result.transaction


def parse_transactions(
    rows: Iterable[Mapping[str, Any]],
    *,
    settings: LedgerSettings | None = None,
) -> Tuple[List[Transaction], List[ParseSkip]]:
    """Parse a batch of rows, logging and collecting the ones that were skipped."""

    settings = settings or get_settings()
    transactions: List[Transaction] = []
    skipped: List[ParseSkip] = []
    for index, row in enumerate(rows):
        result = parse_transaction(row, index, settings=settings)
        if isinstance(result, ParseSkip):
            logger.warning("Skipping transaction row %d: %s", index, result.reason)
            skipped.append(result)
        else:
            transactions.append(result.transaction)
    return transactions, skipped


def parse_price_records(rows: Iterable[Mapping[str, Any]]) -> List[PriceRecord]:
    """Parse price rows into an ascending series with one record per date."""

    by_date: dict[date, PriceRecord] = {}
    for index, row in enumerate(rows):
        fields = _normalize_row(row)
        record_date = parse_date(fields.get("date"))
        close = parse_amount(_first(fields, "close", "adj_close", "price"))
        if record_date is None or close is None:
            logger.warning("Skipping price row %d: missing date or close", index)
            continue
        by_date[record_date] = PriceRecord(
            date=record_date,
            close=close,
            open=parse_amount(fields.get("open")),
            high=parse_amount(fields.get("high")),
            low=parse_amount(fields.get("low")),
            volume=parse_amount(fields.get("volume")),
        )
    return [by_date[d] for d in sorted(by_date)]


__all__ = [
    "ParseOk",
    "ParseSkip",
    "ParseResult",
    "parse_amount",
    "parse_number",
    "parse_type",
    "parse_date",
    "parse_split_ratio",
    "parse_transaction",
    "parse_transaction_strict",
    "parse_transactions",
    "parse_price_records",
]
