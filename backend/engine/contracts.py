"""Option contract identification.

Brokerage exports name the same contract several ways. The sample CLSK ledger
records the sale as ``CLSK Jul 25 '25 $9 Call`` but the assignment as
``CLSK--250725C00009000``. Both must reconcile against one timeline, so every
recognised spelling is parsed into an OptionContract and keyed by its label.

Recognised forms:
    display     CLSK Jul 25 '25 $8.50 Call
    statement   CALL CIFR   08/29/25     5.500 CALL CIPHER MINING INC
    OCC-style   CLSK--250725C00009000
"""

import re
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation

from backend.utils.constants import MONTH_ABBREVIATIONS

_DISPLAY_RE = re.compile(
    r"\b([A-Z][A-Z.]*)\s+([A-Za-z]{3})\s+(\d{1,2})\s+'(\d{2})\s+\$?(\d+(?:\.\d+)?)\s+(call|put)\b",
    re.IGNORECASE,
)
_STATEMENT_RE = re.compile(
    r"\b(call|put)\s+([A-Z][A-Z.]*)\s+(\d{2})/(\d{2})/(\d{2})\s+(\d+(?:\.\d+)?)",
    re.IGNORECASE,
)
_OCC_RE = re.compile(r"^([A-Z][A-Z.]*)[-\s]*(\d{2})(\d{2})(\d{2})([CP])(\d{8})$")

_MONTHS = {name.lower(): i + 1 for i, name in enumerate(MONTH_ABBREVIATIONS)}


@dataclass(frozen=True)
class OptionContract:
    """A single listed option: underlying, expiration, strike and right."""
    underlying: str
    expiration: date
    strike: Decimal
    right: str  # "Call" or "Put"

    @property
    def label(self) -> str:
        """Canonical display form, e.g. ``CLSK Jul 25 '25 $9 Call``."""
        month = MONTH_ABBREVIATIONS[self.expiration.month - 1]
        return (
            f"{self.underlying} {month} {self.expiration.day} "
            f"'{self.expiration:%y} ${format_strike(self.strike)} {self.right}"
        )

    def __str__(self) -> str:
        return self.label


def format_strike(strike: Decimal) -> str:
    """Whole strikes print bare ("9"), fractional ones with cents ("8.50")."""
    if strike == strike.to_integral_value():
        return str(int(strike))
    return f"{strike:.2f}"


def _build(underlying: str, year: int, month: int, day: int, strike: str, right: str) -> OptionContract | None:
    try:
        expiration = date(2000 + year, month, day)
        strike_value = Decimal(strike)
    except (ValueError, InvalidOperation):
        return None
    return OptionContract(
        underlying=underlying.upper(),
        expiration=expiration,
        strike=strike_value,
        right=right.capitalize(),
    )


def parse_contract(text: str | None) -> OptionContract | None:
    """Parse any recognised contract spelling; None when nothing matches."""
    if not text:
        return None

    # Case-insensitive, so skip hits whose "month" is just another word
    for match in _DISPLAY_RE.finditer(text):
        underlying, month_name, day, year, strike, right = match.groups()
        month = _MONTHS.get(month_name.lower())
        if month is not None:
            return _build(underlying, int(year), month, int(day), strike, right)

    match = _STATEMENT_RE.search(text)
    if match:
        right, underlying, month, day, year, strike = match.groups()
        return _build(underlying, int(year), int(month), int(day), strike, right)

    match = _OCC_RE.match(text.strip().upper())
    if match:
        underlying, year, month, day, right, strike_digits = match.groups()
        strike = str(Decimal(strike_digits) / 1000)
        return _build(
            underlying, int(year), int(month), int(day), strike,
            "Call" if right == "C" else "Put",
        )

    return None


def contract_id_for(symbol: str | None, description: str | None = None) -> str | None:
    """Contract identifier for a ledger row.

    Prefers the canonical label parsed from the symbol, then from the
    description, and falls back to the raw symbol. Returns None when the row
    names no contract at all.
    """
    contract = parse_contract(symbol) or parse_contract(description)
    if contract is not None:
        return contract.label
    if symbol and symbol.strip():
        return symbol.strip()
    return None
