"""Tests for brokerage CSV import."""

from datetime import date

import pytest
from sqlmodel import select

from backend.config import settings
from backend.models.transaction import Transaction
from backend.services.ledger_import import (
    import_transactions_csv,
    parse_transaction_date,
    parse_transactions_csv,
)
from backend.services.reconciliation import reconcile_underlying

COMMA_EXPORT = b"""TransactionDate,TransactionType,SecurityType,Symbol,Quantity,Amount,Price,Commission,Strike,Description
06/23/25,Sold Short,OPTN,CLSK Jul 25 '25 $9 Call,-1,45.34,0.46,0.65,9,CALL CLSK 07/25/25 9.000
06/23/25,Sold Short,OPTN,CLSK Jul 25 '25 $9 Call,-1,45.34,0.46,0.65,9,CALL CLSK 07/25/25 9.000
06/20/25,Bought,EQ,CLSK,100,-850.00,8.50,0,0,CLEANSPARK INC
"""

PIPE_EXPORT = b"""Transaction Date | Transaction Type | Security Type | Calculated Symbol | Symbol | Quantity | Amount | Price | Commission | Strike | Description
2025-07-26 | Option Assigned | OPTN | CLSK | CLSK--250725C00009000 | 1 | 0 | 0 | 0 | 9 | ASSIGNED
Transaction Date | Transaction Type | Security Type | Calculated Symbol | Symbol | Quantity | Amount | Price | Commission | Strike | Description
not-a-date | Sold Short | OPTN | CLSK | CLSK Aug 1 '25 $9 Call | -1 | 10 | 0.10 | 0 | 9 | bad row
"""


# ---------------------------------------------------------------------------
# 1. Date parsing
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("text", ["2025-06-23", "06/23/2025", "06/23/25", "23/06/2025", " 6/23/2025 "])
def test_parse_transaction_date(text):
    assert parse_transaction_date(text) == date(2025, 6, 23)


@pytest.mark.parametrize("text", ["", "yesterday", "13/13/2025", "2025-02-30"])
def test_parse_transaction_date_rejects(text):
    with pytest.raises(ValueError):
        parse_transaction_date(text)


# ---------------------------------------------------------------------------
# 2. CSV parsing
# ---------------------------------------------------------------------------

class TestParseCsv:
    def test_comma_export(self):
        result = parse_transactions_csv(COMMA_EXPORT)
        assert result.total_rows == 3
        assert result.processed_count == 3
        assert result.warnings == []

        first = result.transactions[0]
        assert first.transaction_date == date(2025, 6, 23)
        assert first.transaction_type == "Sold Short"
        assert first.security_type == "OPTN"
        assert first.calculated_symbol == "CLSK"  # derived from the contract symbol
        assert first.quantity == -1
        assert first.amount == pytest.approx(45.34)
        assert first.strike == pytest.approx(9.0)

        equity = result.transactions[2]
        assert equity.calculated_symbol == "CLSK"
        assert equity.quantity == 100

    def test_pipe_export_skips_headers_and_bad_rows(self):
        result = parse_transactions_csv(PIPE_EXPORT)
        assert result.total_rows == 2
        assert result.processed_count == 1
        assert result.skipped_count == 1
        assert len(result.warnings) == 1
        assert "line 4" in result.warnings[0]

        assigned = result.transactions[0]
        assert assigned.transaction_type == "Option Assigned"
        assert assigned.symbol == "CLSK--250725C00009000"
        assert assigned.calculated_symbol == "CLSK"

    def test_bom_is_ignored(self):
        result = parse_transactions_csv(b"\xef\xbb\xbf" + COMMA_EXPORT)
        assert result.processed_count == 3

    def test_empty_file_rejected(self):
        with pytest.raises(ValueError, match="header"):
            parse_transactions_csv(b"")

    def test_binary_file_rejected(self):
        with pytest.raises(ValueError, match="UTF-8"):
            parse_transactions_csv(b"\xff\xfe\x00garbage")

    def test_oversized_file_rejected(self, monkeypatch):
        monkeypatch.setattr(settings, "max_upload_mb", 0)
        with pytest.raises(ValueError, match="limit"):
            parse_transactions_csv(COMMA_EXPORT)

    def test_non_numeric_quantity_skipped(self):
        content = b"Date,Type,Symbol,Qty\n06/23/25,Sold Short,CLSK Jul 25 '25 $9 Call,one\n"
        result = parse_transactions_csv(content)
        assert result.processed_count == 0
        assert result.skipped_count == 1

    @pytest.mark.parametrize("qty", ["-1.5", "0.5", "inf", "-Infinity", "NaN", "1e400"])
    def test_quantity_must_be_a_whole_number(self, qty):
        content = f"Date|Type|Symbol|Qty\n06/23/25|Sold Short|CLSK Jul 25 '25 $9 Call|{qty}\n".encode()
        result = parse_transactions_csv(content)
        assert result.processed_count == 0
        assert result.skipped_count == 1
        assert "line 2" in result.warnings[0]

    def test_whole_decimal_quantity_accepted(self):
        content = b"Date|Type|Symbol|Qty\n06/23/25|Sold Short|CLSK Jul 25 '25 $9 Call|-2.00\n"
        result = parse_transactions_csv(content)
        assert [t.quantity for t in result.transactions] == [-2]

    def test_non_finite_amount_skipped(self):
        content = b"Date|Type|Symbol|Qty|Amount\n06/23/25|Sold Short|CLSK Jul 25 '25 $9 Call|-1|inf\n"
        result = parse_transactions_csv(content)
        assert result.skipped_count == 1


class TestSecurityType:
    def test_inferred_from_symbol_without_column(self):
        content = (
            b"Date,Type,Symbol,Qty\n"
            b"06/23/25,Sold Short,CLSK Jul 25 '25 $9 Call,-1\n"
            b"06/20/25,Bought,CLSK,100\n"
        )
        result = parse_transactions_csv(content)
        assert [t.security_type for t in result.transactions] == ["OPTN", "EQ"]

    def test_inferred_from_description(self):
        content = (
            b"Date,Type,Symbol,Qty,Description\n"
            b"08/01/25,Sold Short,CIFR,-1,CALL CIFR 08/29/25 5.500 CALL CIPHER MINING INC\n"
        )
        tx = parse_transactions_csv(content).transactions[0]
        assert tx.security_type == "OPTN"
        assert tx.calculated_symbol == "CIFR"

    def test_lowercase_column_value_normalised(self):
        content = b"Date,Type,Security Type,Symbol,Qty\n06/23/25,Sold Short,optn,CLSK Jul 25 '25 $9 Call,-1\n"
        assert parse_transactions_csv(content).transactions[0].security_type == "OPTN"

    def test_unknown_value_skipped(self):
        content = b"Date,Type,Security Type,Symbol,Qty\n06/23/25,Bought,BOND,US10Y,1\n"
        result = parse_transactions_csv(content)
        assert result.processed_count == 0
        assert "BOND" in result.warnings[0]

    def test_imported_options_reach_reconciliation(self, session):
        content = b"Date,Type,Symbol,Qty\n06/23/25,Sold Short,CLSK Jul 25 '25 $9 Call,-1\n"
        import_transactions_csv(session, content)

        report = reconcile_underlying(session, "CLSK", as_of=date(2025, 7, 1))
        assert [(p.contract_id, p.net_quantity) for p in report.positions] == [
            ("CLSK Jul 25 '25 $9 Call", -1),
        ]


# ---------------------------------------------------------------------------
# 3. Storing
# ---------------------------------------------------------------------------

def test_import_keeps_duplicate_rows(session):
    result = import_transactions_csv(session, COMMA_EXPORT)
    assert result.processed_count == 3

    rows = session.exec(select(Transaction).where(Transaction.security_type == "OPTN")).all()
    assert len(rows) == 2
    assert all(row.id is not None for row in rows)


def test_imported_sample_ledger_reconciles(session, clsk_ledger_csv):
    result = import_transactions_csv(session, clsk_ledger_csv)
    assert result.processed_count == 12

    report = reconcile_underlying(session, "CLSK", as_of=date(2025, 7, 1))
    assert [p.contract_id for p in report.positions] == [
        "CLSK Sep 19 '25 $7 Call",
        "CLSK Jul 25 '25 $8.50 Call",
    ]
    assert report.anomalies == []
