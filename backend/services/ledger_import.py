"""Brokerage CSV import: eTrade transaction exports into the ledger.

Exports come comma- or pipe-separated with a handful of header spellings
(see CSV_COLUMN_ALIASES). Each row becomes one Transaction; rows that cannot
be parsed are skipped with a warning rather than coerced to defaults.
"""

import csv
import io
import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation

from sqlmodel import Session

from backend.config import settings
from backend.engine.contracts import parse_contract
from backend.models.transaction import Transaction
from backend.utils.constants import (
    CSV_COLUMN_ALIASES,
    SECURITY_TYPE_EQUITY,
    SECURITY_TYPE_OPTION,
    VALID_SECURITY_TYPES,
)

logger = logging.getLogger(__name__)

_MAX_QUANTITY = 2**31 - 1
_DATE_FORMATS = ["%Y-%m-%d", "%m/%d/%Y", "%m/%d/%y"]


@dataclass
class ImportResult:
    total_rows: int = 0
    transactions: list[Transaction] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def processed_count(self) -> int:
        return len(self.transactions)

    @property
    def skipped_count(self) -> int:
        return self.total_rows - self.processed_count


def parse_transaction_date(value: str) -> date:
    """Parse export dates: ISO, MM/DD/YYYY or MM/DD/YY.

    A slash date whose first part cannot be a month is read as DD/MM.
    Raises ValueError for anything else.
    """
    text = value.strip()
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    parts = text.split("/")
    if len(parts) == 3 and parts[0].isdigit() and int(parts[0]) > 12:
        swapped = "/".join([parts[1], parts[0], parts[2]])
        for fmt in _DATE_FORMATS[1:]:
            try:
                return datetime.strptime(swapped, fmt).date()
            except ValueError:
                continue
    raise ValueError(f"unrecognised date {value!r}")


def _clean(value: str | None) -> str:
    return (value or "").strip().replace(",", "").replace("$", "")


def _number(value: str | None) -> float:
    text = _clean(value)
    if not text:
        return 0.0
    number = float(text)
    if not math.isfinite(number):
        raise ValueError(f"invalid number {value!r}")
    return number


def _quantity(value: str | None) -> int:
    """Whole-contract quantity; fractional or non-finite values are rejected."""
    text = _clean(value)
    if not text:
        return 0
    try:
        qty = Decimal(text)
    except InvalidOperation:
        raise ValueError(f"invalid quantity {value!r}")
    if not qty.is_finite() or qty != qty.to_integral_value():
        raise ValueError(f"quantity must be a whole number, got {value!r}")
    if abs(qty) > _MAX_QUANTITY:
        raise ValueError(f"quantity out of range: {value!r}")
    return int(qty)


def _pick(row: dict[str, str], column: str) -> str:
    for alias in CSV_COLUMN_ALIASES[column]:
        value = row.get(alias)
        if value is not None and value.strip() != "":
            return value.strip()
    return ""


def _row_to_transaction(row: dict[str, str]) -> Transaction:
    transaction_date = parse_transaction_date(_pick(row, "transaction_date"))
    transaction_type = _pick(row, "transaction_type")
    if not transaction_type:
        raise ValueError("missing transaction type")
    symbol = _pick(row, "symbol")
    description = _pick(row, "description")
    contract = parse_contract(symbol) or parse_contract(description)

    security_type = _pick(row, "security_type").upper()
    if not security_type:
        # No security type column: rows naming a contract are options
        security_type = SECURITY_TYPE_OPTION if contract else SECURITY_TYPE_EQUITY
    elif security_type not in VALID_SECURITY_TYPES:
        raise ValueError(f"unknown security type {security_type!r}")

    calculated_symbol = _pick(row, "calculated_symbol")
    if not calculated_symbol:
        calculated_symbol = contract.underlying if contract else symbol
    if not calculated_symbol:
        raise ValueError("missing symbol")

    return Transaction(
        transaction_date=transaction_date,
        transaction_type=transaction_type,
        security_type=security_type,
        calculated_symbol=calculated_symbol.upper(),
        symbol=symbol,
        quantity=_quantity(_pick(row, "quantity")),
        amount=_number(_pick(row, "amount")),
        price=_number(_pick(row, "price")),
        commission=_number(_pick(row, "commission")),
        strike=_number(_pick(row, "strike")),
        description=description,
    )


def parse_transactions_csv(content: bytes) -> ImportResult:
    """Parse an export into unsaved Transaction rows.

    Raises ValueError if the file is too large, not text, or has no header.
    """
    max_bytes = settings.max_upload_mb * 1024 * 1024
    if len(content) > max_bytes:
        raise ValueError(f"File exceeds {settings.max_upload_mb}MB limit")

    try:
        text = content.decode("utf-8-sig")  # Handle BOM
    except UnicodeDecodeError as e:
        raise ValueError(f"File is not UTF-8 text: {e}")

    separator = "|" if "|" in text else ","
    reader = csv.DictReader(io.StringIO(text), delimiter=separator)
    if reader.fieldnames is None:
        raise ValueError("CSV has no header row")
    # Exports pad headers and cells with spaces around pipes
    reader.fieldnames = [name.strip() for name in reader.fieldnames]

    result = ImportResult()
    for line_no, raw in enumerate(reader, start=2):
        row = {k: (v or "") for k, v in raw.items() if k is not None}
        if not _pick(row, "transaction_date"):
            continue  # blank line or repeated header
        if _pick(row, "transaction_date") in CSV_COLUMN_ALIASES["transaction_date"]:
            continue
        result.total_rows += 1
        try:
            result.transactions.append(_row_to_transaction(row))
        except ValueError as e:
            message = f"line {line_no}: {e}"
            logger.warning(f"CSV import: skipping {message}")
            result.warnings.append(message)

    return result


def import_transactions_csv(session: Session, content: bytes) -> ImportResult:
    """Parse an export and store every parsed row.

    Identical rows are all kept: repeated same-day trades are legitimate.
    """
    result = parse_transactions_csv(content)
    for tx in result.transactions:
        session.add(tx)
    session.commit()
    logger.info(
        f"CSV import: {result.processed_count} of {result.total_rows} rows stored, "
        f"{result.skipped_count} skipped"
    )
    return result
