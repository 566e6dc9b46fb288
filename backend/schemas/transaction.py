"""Pydantic schemas for the transactions API."""

from datetime import date, datetime
from pydantic import BaseModel, Field, field_validator

from backend.utils.constants import VALID_SECURITY_TYPES


class TransactionCreate(BaseModel):
    transaction_date: date
    transaction_type: str = Field(min_length=1, max_length=64)
    security_type: str = "EQ"
    calculated_symbol: str = Field(min_length=1, max_length=32)
    symbol: str = Field(default="", max_length=120)
    quantity: int
    amount: float = 0.0
    price: float = 0.0
    commission: float = Field(default=0.0, ge=0)
    strike: float = Field(default=0.0, ge=0)
    description: str = Field(default="", max_length=500)

    @field_validator("transaction_type", "calculated_symbol")
    @classmethod
    def _trim_required_text(cls, value: str) -> str:
        text = value.strip()
        if not text:
            raise ValueError("must not be empty")
        return text

    @field_validator("calculated_symbol")
    @classmethod
    def _upper_symbol(cls, value: str) -> str:
        return value.upper()

    @field_validator("security_type")
    @classmethod
    def _validate_security_type(cls, value: str) -> str:
        if value not in VALID_SECURITY_TYPES:
            allowed = ", ".join(VALID_SECURITY_TYPES)
            raise ValueError(f"must be one of: {allowed}")
        return value


class TransactionUpdate(BaseModel):
    transaction_date: date | None = None
    transaction_type: str | None = Field(default=None, min_length=1, max_length=64)
    security_type: str | None = None
    calculated_symbol: str | None = Field(default=None, min_length=1, max_length=32)
    symbol: str | None = Field(default=None, max_length=120)
    quantity: int | None = None
    amount: float | None = None
    price: float | None = None
    commission: float | None = Field(default=None, ge=0)
    strike: float | None = Field(default=None, ge=0)
    description: str | None = Field(default=None, max_length=500)


class TransactionRead(BaseModel):
    id: int
    transaction_date: date
    transaction_type: str
    security_type: str
    calculated_symbol: str
    symbol: str
    quantity: int
    amount: float
    price: float
    commission: float
    strike: float
    description: str
    created_at: datetime

    model_config = {"from_attributes": True}


class UploadSummary(BaseModel):
    message: str = "Transactions uploaded successfully"
    total_rows: int
    processed_count: int
    skipped_count: int
    warnings: list[str] = Field(default_factory=list)
