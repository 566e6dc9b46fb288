"""Shared constants: brokerage transaction vocabulary."""

SECURITY_TYPE_EQUITY = "EQ"
SECURITY_TYPE_OPTION = "OPTN"
VALID_SECURITY_TYPES = [SECURITY_TYPE_EQUITY, SECURITY_TYPE_OPTION]

# Brokerage transaction_type -> reconciler action name.
# Keys are compared case-insensitively with whitespace collapsed.
TRANSACTION_TYPE_ACTIONS: dict[str, str] = {
    "sold short": "SoldShort",
    "bought to cover": "BoughtToCover",
    "bought to open": "BoughtToOpen",
    "sold to close": "SoldToClose",
    "option assigned": "Assigned",
    "assigned": "Assigned",
    "option expired": "Expired",
    "expired": "Expired",
}

MONTH_ABBREVIATIONS = [
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
]

# eTrade export header aliases, first match wins
CSV_COLUMN_ALIASES: dict[str, list[str]] = {
    "transaction_date": ["TransactionDate", "Transaction Date", "Date"],
    "transaction_type": ["TransactionType", "Transaction Type", "Type"],
    "security_type": ["SecurityType", "Security Type", "Instrument"],
    "calculated_symbol": ["Calculated Symbol", "CalculatedSymbol", "Ticker"],
    "symbol": ["Symbol", "Ticker"],
    "quantity": ["Quantity", "Qty"],
    "amount": ["Amount", "Net Amount"],
    "price": ["Price", "Unit Price"],
    "commission": ["Commission", "Fees"],
    "strike": ["Strike", "Strike Price"],
    "description": ["Description", "Transaction Description"],
}
