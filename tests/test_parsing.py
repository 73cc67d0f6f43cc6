from __future__ import annotations

import logging
from datetime import date, datetime

import pytest

from stock_ledger.errors import InvalidTransactionError
from stock_ledger.models import TransactionType
from stock_ledger.parsing import (
    ParseOk,
    ParseSkip,
    parse_amount,
    parse_date,
    parse_number,
    parse_price_records,
    parse_split_ratio,
    parse_transaction,
    parse_transaction_strict,
    parse_transactions,
    parse_type,
)


def _row(**overrides: str) -> dict[str, str]:
    row = {
        "date": "2024-01-01",
        "stock": "NASDAQ:AAPL",
        "type": "Buy",
        "quantity": "100",
        "price": "$150.00",
        "fees": "$10.00",
        "split_ratio": "",
        "currency": "USD",
    }
    row.update(overrides)
    return row


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("$1,234.50", 1234.5),
        ("(12.00)", -12.0),
        ("-$5", -5.0),
        ("NT$1,000", 1000.0),
        ("0", 0.0),
        ("USD 1 234.5", 1234.5),
        (3, 3.0),
        (2.5, 2.5),
    ],
)
def test_parse_amount_strips_symbols_and_separators(raw, expected):
    assert parse_amount(raw) == pytest.approx(expected)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("$(12.00)", -12.0),
        ("($12.00)", -12.0),
        ("−12", -12.0),
        ("−$12", -12.0),
        ("12-", -12.0),
        ("$-5", -5.0),
        ("+7", 7.0),
    ],
)
def test_parse_amount_keeps_sign(raw, expected):
    assert parse_amount(raw) == pytest.approx(expected)


@pytest.mark.parametrize(
    "raw, expected",
    [("1e2", 100.0), ("1.5e3", 1500.0), ("2.5E-1", 0.25), (".5", 0.5)],
)
def test_parse_amount_reads_exponents(raw, expected):
    assert parse_amount(raw) == pytest.approx(expected)


@pytest.mark.parametrize(
    "raw",
    [
        "",
        "   ",
        None,
        "abc",
        "1.2.3",
        "-",
        "()",
        "12abc",
        "1e2x",
        "12 USD",
        "1e999",
        float("nan"),
        float("inf"),
        True,
    ],
)
def test_parse_amount_returns_none_for_missing_or_garbage(raw):
    assert parse_amount(raw) is None


def test_parse_number_is_strict():
    assert parse_number(" 42.5 ") == 42.5
    assert parse_number("$42.5") is None
    assert parse_number("") is None
    assert parse_number("inf") is None


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("Buy", TransactionType.BUY),
        (" PURCHASE ", TransactionType.BUY),
        ("sell", TransactionType.SELL),
        ("Sale", TransactionType.SELL),
        ("DIV", TransactionType.DIVIDEND),
        ("Dividend", TransactionType.DIVIDEND),
        ("Dividend Reinvested", TransactionType.DIVIDEND),
        ("Split", TransactionType.SPLIT),
        ("Reverse  Split", TransactionType.SPLIT),
        ("transfer", TransactionType.UNKNOWN),
        ("", TransactionType.UNKNOWN),
        (None, TransactionType.UNKNOWN),
    ],
)
def test_parse_type_normalizes_tags(raw, expected):
    assert parse_type(raw) is expected


def test_parse_date_accepts_text_and_date_objects():
    assert parse_date("2024-01-15") == date(2024, 1, 15)
    assert parse_date(date(2024, 1, 15)) == date(2024, 1, 15)
    assert parse_date(datetime(2024, 1, 15, 9, 30)) == date(2024, 1, 15)
    assert parse_date("") is None
    assert parse_date("not a date") is None


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("4", 4.0),
        ("4:1", 4.0),
        ("1:2", 0.5),
        ("2/1", 2.0),
        ("1-for-2", 0.5),
        ("3 for 2", 1.5),
        (10, 10.0),
    ],
)
def test_parse_split_ratio_forms(raw, expected):
    assert parse_split_ratio(raw) == pytest.approx(expected)


def test_parse_split_ratio_prefers_explicit_pair():
    assert parse_split_ratio("4", numerator="1", denominator="2") == pytest.approx(0.5)


@pytest.mark.parametrize("raw", ["0", "", "abc", "-2", "4:0"])
def test_parse_split_ratio_rejects_invalid(raw):
    assert parse_split_ratio(raw) is None


def test_parse_split_ratio_rejects_zero_denominator():
    assert parse_split_ratio(numerator="1", denominator="0") is None


def test_parse_split_ratio_pair_must_be_plain_numbers():
    assert parse_split_ratio(numerator="$4", denominator="1") is None
    assert parse_split_ratio("2", numerator="1,0", denominator="1") == pytest.approx(2)


def test_parse_transaction_builds_typed_buy():
    result = parse_transaction(_row(), sequence=7)
    assert isinstance(result, ParseOk)
    tx = result.transaction
    assert tx.date == date(2024, 1, 1)
    assert tx.instrument_key == "NASDAQ:AAPL"
    assert tx.type is TransactionType.BUY
    assert tx.quantity == 100
    assert tx.price == 150
    assert tx.fees == 10
    assert tx.currency == "USD"
    assert tx.sequence == 7


def test_parse_transaction_handles_header_case_and_defaults():
    row = {"Date": "2024-02-01", "Symbol": "TSE:7203", "Type": "SALE", "Quantity": "-50", "Price": "2,500"}
    result = parse_transaction(row)
    assert isinstance(result, ParseOk)
    tx = result.transaction
    assert tx.type is TransactionType.SELL
    assert tx.quantity == 50
    assert tx.price == 2500
    assert tx.fees == 0
    assert tx.currency == "USD"


def test_parse_transaction_reads_exponent_quantity():
    result = parse_transaction(_row(quantity="1e2"))
    assert isinstance(result, ParseOk)
    assert result.transaction.quantity == pytest.approx(100)


def test_parse_transaction_skips_quantity_with_trailing_text():
    result = parse_transaction(_row(quantity="12abc"))
    assert isinstance(result, ParseSkip)
    assert result.reason.startswith("unparseable quantity")


def test_parse_transaction_uppercases_currency():
    result = parse_transaction(_row(currency="twd"))
    assert isinstance(result, ParseOk)
    assert result.transaction.currency == "TWD"


def test_parse_transaction_split_row():
    result = parse_transaction(
        _row(type="Split", quantity="0", price="$0.00", fees="$0.00", split_ratio="4")
    )
    assert isinstance(result, ParseOk)
    assert result.transaction.type is TransactionType.SPLIT
    assert result.transaction.split_ratio == 4


def test_parse_transaction_split_from_explicit_pair():
    row = _row(type="Split", quantity="", price="", split_ratio="")
    row.update({"split_from": "1", "split_to": "2"})
    result = parse_transaction(row)
    assert isinstance(result, ParseOk)
    assert result.transaction.split_ratio == pytest.approx(2)


def test_parse_transaction_split_numerator_denominator_columns():
    row = _row(type="Split", quantity="", price="", split_ratio="")
    row.update({"Numerator": "1", "Denominator": "10"})
    result = parse_transaction(row)
    assert isinstance(result, ParseOk)
    assert result.transaction.split_ratio == pytest.approx(0.1)


@pytest.mark.parametrize(
    "overrides, reason",
    [
        ({"type": "Transfer"}, "unrecognized transaction type"),
        ({"date": "not-a-date"}, "unparseable date"),
        ({"quantity": "abc"}, "unparseable quantity"),
        ({"price": ""}, "unparseable price"),
        ({"quantity": "0"}, "zero quantity"),
        ({"stock": ""}, "missing instrument"),
        ({"type": "Split", "split_ratio": ""}, "invalid split ratio"),
        ({"type": "Split", "split_ratio": "0"}, "invalid split ratio"),
        ({"type": "Dividend", "quantity": ""}, "unparseable quantity"),
    ],
)
def test_parse_transaction_skips_bad_rows(overrides, reason):
    result = parse_transaction(_row(**overrides), sequence=3)
    assert isinstance(result, ParseSkip)
    assert reason in result.reason
    assert result.sequence == 3


def test_parse_transaction_strict_raises():
    with pytest.raises(InvalidTransactionError) as excinfo:
        parse_transaction_strict(_row(type="Transfer"))
    assert isinstance(excinfo.value, ValueError)
    assert excinfo.value.row["type"] == "Transfer"


def test_parse_transactions_collects_skips_and_logs(caplog):
    rows = [_row(), _row(quantity="n/a"), _row(date="2024-03-01", type="Sell", quantity="10")]
    with caplog.at_level(logging.WARNING, logger="stock_ledger.parsing"):
        transactions, skipped = parse_transactions(rows)
    assert [t.sequence for t in transactions] == [0, 2]
    assert len(skipped) == 1
    assert skipped[0].sequence == 1
    assert "Skipping transaction row 1" in caplog.text


def test_parse_price_records_sorts_and_dedups():
    rows = [
        {"date": "2024-01-03", "close": "11"},
        {"Date": "2024-01-02", "Close": "$10.00", "Volume": "1,000"},
        {"date": "2024-01-03", "close": "12"},
        {"date": "", "close": "5"},
        {"date": "2024-01-04", "close": "n/a"},
    ]
    records = parse_price_records(rows)
    assert [r.date for r in records] == [date(2024, 1, 2), date(2024, 1, 3)]
    assert records[0].volume == 1000
    assert records[1].close == 12
