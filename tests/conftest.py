"""Shared fixtures: in-memory ledger database and API client."""

import os

# Point settings at SQLite before backend.database builds its engine
os.environ.setdefault("TRACKER_DATABASE_URL", "sqlite://")

from datetime import date

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, create_engine

from backend.database import create_db_and_tables, get_session
from backend.main import app
from backend.models.transaction import Transaction


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    create_db_and_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def client(engine):
    def _session_override():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = _session_override
    yield TestClient(app)
    app.dependency_overrides.clear()


def option_row(day: str, symbol: str, transaction_type: str, quantity: int, underlying: str = "CLSK") -> Transaction:
    return Transaction(
        transaction_date=date.fromisoformat(day),
        transaction_type=transaction_type,
        security_type="OPTN",
        calculated_symbol=underlying,
        symbol=symbol,
        quantity=quantity,
    )


# CLSK ledger in booking order. Ends with two open shorts:
# Jul 25 '25 $8.50 Call and Sep 19 '25 $7 Call.
CLSK_LEDGER = [
    ("2025-04-25", "CLSK Sep 19 '25 $7 Call", "Sold Short", -1),
    ("2025-06-02", "CLSK Jul 11 '25 $9.50 Call", "Sold Short", -1),
    ("2025-06-02", "CLSK Jul 11 '25 $8.50 Call", "Sold Short", -1),
    ("2025-06-17", "CLSK Jul 11 '25 $9.50 Call", "Bought To Cover", 1),
    ("2025-06-17", "CLSK Jul 18 '25 $9 Call", "Sold Short", -1),
    ("2025-06-23", "CLSK Jul 11 '25 $8.50 Call", "Bought To Cover", 1),
    ("2025-06-23", "CLSK Jul 18 '25 $9 Call", "Bought To Cover", 1),
    ("2025-06-23", "CLSK Jul 18 '25 $8.50 Call", "Sold Short", -1),
    ("2025-06-23", "CLSK Jul 18 '25 $8.50 Call", "Bought To Cover", 1),
    ("2025-06-23", "CLSK Jul 25 '25 $8.50 Call", "Sold Short", -1),
    ("2025-06-23", "CLSK Jul 25 '25 $9 Call", "Sold Short", -1),
    ("2025-07-26", "CLSK--250725C00009000", "Option Assigned", 1),
]


@pytest.fixture
def clsk_ledger(session):
    rows = [option_row(*entry) for entry in CLSK_LEDGER]
    for row in rows:
        session.add(row)
    session.commit()
    return rows


@pytest.fixture
def add_option_rows(session):
    """Store (day, symbol, transaction_type, quantity[, underlying]) tuples."""
    def _add(entries):
        rows = [option_row(*entry) for entry in entries]
        for row in rows:
            session.add(row)
        session.commit()
        return rows
    return _add


@pytest.fixture
def clsk_ledger_csv() -> bytes:
    """The CLSK ledger as a pipe-separated brokerage export."""
    lines = ["Transaction Date | Transaction Type | Security Type | Calculated Symbol | Symbol | Quantity"]
    for day, symbol, transaction_type, quantity in CLSK_LEDGER:
        lines.append(f"{day} | {transaction_type} | OPTN | CLSK | {symbol} | {quantity}")
    return ("\n".join(lines) + "\n").encode()
