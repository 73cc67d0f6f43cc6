from datetime import date

import pytest

from conftest import make_tx
from stock_ledger.dividends import quarter_label, summarize_dividends
from stock_ledger.models import TransactionType

DIVIDEND = TransactionType.DIVIDEND

TRANSACTIONS = [
    make_tx(TransactionType.BUY, date(2023, 1, 2), 100, 20),
    make_tx(DIVIDEND, date(2023, 2, 15), 100, 0.5),
    make_tx(DIVIDEND, date(2023, 5, 15), 100, 0.5),
    make_tx(DIVIDEND, date(2023, 8, 15), 100, 0.6),
    make_tx(DIVIDEND, date(2024, 2, 15), 100, 0.6),
]


@pytest.mark.parametrize(
    "on, label",
    [
        (date(2024, 1, 1), "2024-Q1"),
        (date(2024, 3, 31), "2024-Q1"),
        (date(2024, 4, 1), "2024-Q2"),
        (date(2024, 9, 30), "2024-Q3"),
        (date(2024, 12, 31), "2024-Q4"),
    ],
)
def test_quarter_label(on, label):
    assert quarter_label(on) == label


def test_dividend_totals():
    summary = summarize_dividends(TRANSACTIONS, 25.0, as_of=date(2024, 3, 1))
    assert summary.total_dividends == pytest.approx(220)
    assert summary.dividend_count == 4
    assert summary.average_dividend == pytest.approx(55)
    assert summary.last_dividend_date == date(2024, 2, 15)


def test_dividend_periods_are_newest_first():
    summary = summarize_dividends(TRANSACTIONS, 25.0, as_of=date(2024, 3, 1))
    assert [(p.period, p.count) for p in summary.per_year_totals] == [("2024", 1), ("2023", 3)]
    assert [p.total for p in summary.per_year_totals] == pytest.approx([60, 160])
    assert [p.period for p in summary.per_quarter_totals] == [
        "2024-Q1",
        "2023-Q3",
        "2023-Q2",
        "2023-Q1",
    ]
    assert [p.total for p in summary.per_quarter_totals] == pytest.approx([60, 60, 50, 50])


def test_trailing_yield_per_share():
    summary = summarize_dividends(TRANSACTIONS, 25.0, as_of=date(2024, 3, 1))
    # Only the last three payments fall inside the trailing year
    assert summary.annual_yield == pytest.approx(170 / 25 * 100)


def test_trailing_yield_against_position_value():
    summary = summarize_dividends(TRANSACTIONS, 25.0, shares=100, as_of=date(2024, 3, 1))
    assert summary.annual_yield == pytest.approx(6.8)


def test_as_of_defaults_to_latest_transaction():
    summary = summarize_dividends(TRANSACTIONS, 25.0, shares=100)
    assert summary.annual_yield == pytest.approx(220 / 2500 * 100)


def test_lookback_is_configurable(settings):
    short = settings.model_copy(update={"dividend_lookback_days": 30})
    summary = summarize_dividends(
        TRANSACTIONS, 25.0, shares=100, as_of=date(2024, 3, 1), settings=short
    )
    assert summary.annual_yield == pytest.approx(60 / 2500 * 100)


@pytest.mark.parametrize("price, shares", [(0.0, None), (-1.0, None), (25.0, 0)])
def test_yield_is_undefined_without_positive_denominator(price, shares):
    summary = summarize_dividends(TRANSACTIONS, price, shares=shares, as_of=date(2024, 3, 1))
    assert summary.annual_yield is None
    assert summary.total_dividends == pytest.approx(220)


def test_no_dividends():
    summary = summarize_dividends(TRANSACTIONS[:1], 25.0)
    assert summary.total_dividends == 0
    assert summary.dividend_count == 0
    assert summary.average_dividend == 0
    assert summary.last_dividend_date is None
    assert summary.annual_yield == 0
    assert summary.per_year_totals == []
    assert summary.per_quarter_totals == []


def test_empty_input():
    summary = summarize_dividends([], 25.0)
    assert summary.dividend_count == 0
    assert summary.annual_yield == 0
