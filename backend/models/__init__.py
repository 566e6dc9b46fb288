"""Database models."""

from backend.models.transaction import Transaction

__all__ = [
    "Transaction",
]
