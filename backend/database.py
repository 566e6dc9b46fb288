"""SQLModel database engine and session management."""

import logging

from sqlalchemy import inspect
from sqlmodel import SQLModel, create_engine, Session

from backend.config import settings

logger = logging.getLogger(__name__)

# SQLite needs check_same_thread=False; PostgreSQL does not
connect_args = {}
if settings.database_url.startswith("sqlite"):
    connect_args["check_same_thread"] = False

engine = create_engine(
    settings.database_url,
    echo=False,
    connect_args=connect_args,
)

# Columns of the old dedupe key; rows sharing them are legitimate repeated trades
_LEGACY_DEDUPE_COLUMNS = {"transaction_date", "calculated_symbol", "quantity", "amount"}
_LOOKUP_INDEX = "ix_transactions_symbol_date"


def _run_migrations(bind=None):
    """Run lightweight schema migrations on the transactions table."""
    from sqlalchemy import text

    bind = bind or engine
    inspector = inspect(bind)

    if "transactions" not in inspector.get_table_names():
        return

    # Drop unique keys over trade fields: they rejected same-day duplicate trades
    for idx in inspector.get_indexes("transactions"):
        # PostgreSQL lists constraint-backed indexes too; those go via DROP CONSTRAINT below
        if idx.get("duplicates_constraint"):
            continue
        if idx.get("unique") and _LEGACY_DEDUPE_COLUMNS <= set(idx["column_names"]):
            logger.info(f"Migrating: dropping unique index {idx['name']}")
            with bind.connect() as conn:
                conn.execute(text(f'DROP INDEX "{idx["name"]}"'))
                conn.commit()

    for constraint in inspector.get_unique_constraints("transactions"):
        if not _LEGACY_DEDUPE_COLUMNS <= set(constraint["column_names"]):
            continue
        if bind.dialect.name == "sqlite":
            # SQLite cannot drop table constraints in place
            logger.warning(
                f"Unique constraint {constraint['name']} blocks duplicate trades; "
                f"rebuild the transactions table to remove it"
            )
            continue
        logger.info(f"Migrating: dropping unique constraint {constraint['name']}")
        with bind.connect() as conn:
            conn.execute(text(
                f'ALTER TABLE transactions DROP CONSTRAINT "{constraint["name"]}"'
            ))
            conn.commit()

    existing_indexes = {idx["name"] for idx in inspect(bind).get_indexes("transactions")}
    if _LOOKUP_INDEX not in existing_indexes:
        with bind.connect() as conn:
            conn.execute(text(
                f"CREATE INDEX {_LOOKUP_INDEX} "
                "ON transactions (calculated_symbol, transaction_date)"
            ))
            conn.commit()


def create_db_and_tables(bind=None):
    """Create all tables. Called on startup."""
    # Import models so metadata is populated
    import backend.models  # noqa: F401

    SQLModel.metadata.create_all(bind or engine)
    _run_migrations(bind)


def get_session() -> Session:
    """Dependency that yields a database session."""
    with Session(engine) as session:
        yield session
