"""Transaction model: one row of a brokerage transaction export."""

from datetime import date, datetime, timezone
from sqlmodel import SQLModel, Field


class Transaction(SQLModel, table=True):
    __tablename__ = "transactions"

    id: int | None = Field(default=None, primary_key=True)
    transaction_date: date = Field(index=True)
    transaction_type: str  # "Sold Short", "Bought To Cover", "Option Assigned", ...
    security_type: str = "EQ"  # "EQ" or "OPTN"
    calculated_symbol: str = Field(index=True)  # underlying ticker, e.g. "CLSK"
    symbol: str = ""  # contract identifier as exported, e.g. "CLSK Jul 25 '25 $9 Call"
    quantity: int = 0  # signed as exported
    amount: float = 0.0
    price: float = 0.0
    commission: float = 0.0
    strike: float = 0.0
    description: str = ""
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
