"""CLI tool for ledger operations.

Usage:
    python -m backend.cli init-db
    python -m backend.cli import-csv <path>
    python -m backend.cli reconcile <UNDERLYING> [YYYY-MM-DD]
"""

import sys
from datetime import date
from pathlib import Path

from sqlmodel import Session

from backend.database import engine, create_db_and_tables
from backend.engine.reconciler import InvalidEvent
from backend.schemas.position import PositionReport
from backend.services.ledger_import import import_transactions_csv
from backend.services.reconciliation import reconcile_underlying
from backend.utils.logging import setup_logging

USAGE = """Usage: python -m backend.cli <command>
Commands:
  init-db                              create tables and run migrations
  import-csv <path>                    load a brokerage CSV export
  reconcile <UNDERLYING> [YYYY-MM-DD]  show open option contracts"""


def init_db():
    create_db_and_tables()
    print("Database ready.")


def import_csv(path: str):
    csv_path = Path(path)
    if not csv_path.is_file():
        print(f"File not found: {path}")
        sys.exit(1)

    create_db_and_tables()
    with Session(engine) as session:
        try:
            result = import_transactions_csv(session, csv_path.read_bytes())
        except ValueError as e:
            print(f"Import failed: {e}")
            sys.exit(1)

    print(f"Rows found:     {result.total_rows}")
    print(f"Rows imported:  {result.processed_count}")
    print(f"Rows skipped:   {result.skipped_count}")
    for warning in result.warnings:
        print(f"  - {warning}")


def print_report(report: PositionReport):
    as_of = f" as of {report.as_of}" if report.as_of else ""
    print(f"=== {report.underlying} open option contracts{as_of} ===")
    if not report.positions:
        print("  (none)")
    for i, pos in enumerate(report.positions, start=1):
        print(f"{i}. {pos.contract_id} | Net: {pos.net_quantity:+d} | Opened: {pos.opened_on}")

    if report.lapsed:
        print("\n--- Past expiration, no closing transaction ---")
        for pos in report.lapsed:
            print(f"  {pos.contract_id} | Net: {pos.net_quantity:+d}")

    if report.anomalies:
        print(f"\n--- {len(report.anomalies)} anomalies ---")
        for a in report.anomalies:
            ref = f"#{a.source_id}" if a.source_id is not None else f"event {a.index}"
            print(f"  [{a.kind}] {a.date} {a.contract_id} ({ref}): {a.message}")


def reconcile(underlying: str, as_of_text: str | None = None):
    as_of = None
    if as_of_text:
        try:
            as_of = date.fromisoformat(as_of_text)
        except ValueError:
            print(f"Invalid date: {as_of_text} (expected YYYY-MM-DD)")
            sys.exit(1)

    create_db_and_tables()
    with Session(engine) as session:
        try:
            report = reconcile_underlying(session, underlying, as_of)
        except InvalidEvent as e:
            print(f"Cannot reconcile {underlying.upper()}: {e}")
            sys.exit(1)

    print_report(report)


def main(argv: list[str] | None = None):
    args = sys.argv[1:] if argv is None else argv
    if not args:
        print(USAGE)
        sys.exit(1)

    setup_logging()
    command, rest = args[0], args[1:]
    if command == "init-db":
        init_db()
    elif command == "import-csv" and len(rest) == 1:
        import_csv(rest[0])
    elif command == "reconcile" and len(rest) in (1, 2):
        reconcile(*rest)
    else:
        print(f"Unknown command or arguments: {' '.join(args)}")
        print(USAGE)
        sys.exit(1)


if __name__ == "__main__":
    main()
