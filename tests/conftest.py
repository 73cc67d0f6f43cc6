import pathlib
import sys
from datetime import date

import pytest

ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from stock_ledger.config import LedgerSettings, get_settings  # noqa: E402
from stock_ledger.models import PriceRecord, Transaction, TransactionType  # noqa: E402


@pytest.fixture(autouse=True)
def _fresh_settings_cache():
    """Keep cached settings from leaking between tests."""

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture()
def settings() -> LedgerSettings:
    return LedgerSettings()


def make_tx(
    kind: TransactionType,
    on: date,
    quantity: float = 0.0,
    price: float = 0.0,
    *,
    fees: float = 0.0,
    ratio: float | None = None,
    instrument: str = "NASDAQ:AAPL",
    currency: str = "USD",
) -> Transaction:
    return Transaction(
        date=on,
        instrument_key=instrument,
        type=kind,
        quantity=quantity,
        price=price,
        fees=fees,
        currency=currency,
        split_ratio=ratio,
    )


def make_prices(*points: tuple[date, float]) -> list[PriceRecord]:
    return [PriceRecord(date=d, close=close) for d, close in points]
