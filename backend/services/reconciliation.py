"""Ledger-side reconciliation: load option rows, reconcile, report.

Each underlying is reconciled as one bounded batch holding every option row
for it, ordered by (transaction_date, id), so a contract's whole history is
seen before its state is reported.
"""

import logging
from collections.abc import Iterable
from datetime import date

from sqlmodel import Session, select

from backend.config import settings
from backend.engine.contracts import contract_id_for, parse_contract
from backend.engine.reconciler import (
    OpenPosition,
    ReconciliationResult,
    TransactionEvent,
    parse_action,
    reconcile,
)
from backend.models.transaction import Transaction
from backend.schemas.position import AnomalyRead, OpenPositionRead, PositionReport
from backend.utils.constants import SECURITY_TYPE_OPTION

logger = logging.getLogger(__name__)


def events_from_transactions(rows: Iterable[Transaction]) -> list[TransactionEvent]:
    """Map ledger rows to reconciler events, keeping their order.

    Unmapped transaction types pass through as raw strings so the reconciler
    reports them as unknown actions instead of dropping them here.
    """
    events = []
    for row in rows:
        action = parse_action(row.transaction_type)
        events.append(TransactionEvent(
            date=row.transaction_date,
            contract_id=contract_id_for(row.symbol, row.description),
            action=action if action is not None else row.transaction_type,
            signed_quantity=row.quantity,
            source_id=row.id,
        ))
    return events


def load_option_transactions(session: Session, underlying: str) -> list[Transaction]:
    stmt = (
        select(Transaction)
        .where(Transaction.calculated_symbol == underlying.upper())
        .where(Transaction.security_type == SECURITY_TYPE_OPTION)
        .order_by(Transaction.transaction_date, Transaction.id)
    )
    return list(session.exec(stmt).all())


def split_lapsed(
    result: ReconciliationResult, as_of: date
) -> tuple[list[OpenPosition], list[OpenPosition]]:
    """Separate open positions from contracts already past expiration.

    A contract expiring on as_of itself is still open. Contracts whose id
    cannot be parsed are always treated as open.
    """
    still_open, lapsed = [], []
    for position in result.positions.values():
        contract = parse_contract(position.contract_id)
        if contract is not None and contract.expiration < as_of:
            lapsed.append(position)
        else:
            still_open.append(position)
    return still_open, lapsed


def _resolve_as_of(as_of: date | None) -> date | None:
    if as_of is None and settings.expire_lapsed_contracts:
        return date.today()
    return as_of


def build_report(underlying: str, result: ReconciliationResult, as_of: date | None = None) -> PositionReport:
    if as_of is not None:
        still_open, lapsed = split_lapsed(result, as_of)
    else:
        still_open, lapsed = list(result.positions.values()), []

    return PositionReport(
        underlying=underlying,
        as_of=as_of,
        positions=[OpenPositionRead.model_validate(p) for p in still_open],
        lapsed=[OpenPositionRead.model_validate(p) for p in lapsed],
        anomalies=[
            AnomalyRead(
                kind=a.kind.value,
                contract_id=a.contract_id,
                date=a.date,
                action=a.action,
                index=a.index,
                source_id=a.source_id,
                message=a.message,
            )
            for a in result.anomalies
        ],
    )


def reconcile_underlying(session: Session, underlying: str, as_of: date | None = None) -> PositionReport:
    """Reconcile every option row of one underlying.

    Raises InvalidEvent if a row cannot be attributed to a contract.
    """
    underlying = underlying.upper()
    rows = load_option_transactions(session, underlying)
    result = reconcile(events_from_transactions(rows))

    for anomaly in result.anomalies:
        logger.warning(
            f"Reconcile {underlying}: {anomaly.kind.value} on {anomaly.contract_id} "
            f"({anomaly.date}, transaction {anomaly.source_id}): {anomaly.message}"
        )

    report = build_report(underlying, result, _resolve_as_of(as_of))
    logger.info(
        f"Reconcile {underlying}: {len(rows)} option rows, {len(report.positions)} open, "
        f"{len(report.lapsed)} lapsed, {len(report.anomalies)} anomalies"
    )
    return report


def option_underlyings(session: Session) -> list[str]:
    stmt = (
        select(Transaction.calculated_symbol)
        .where(Transaction.security_type == SECURITY_TYPE_OPTION)
        .distinct()
        .order_by(Transaction.calculated_symbol)
    )
    return list(session.exec(stmt).all())


def reconcile_all(session: Session, as_of: date | None = None) -> list[PositionReport]:
    """One independent batch per underlying that has option activity."""
    return [
        reconcile_underlying(session, underlying, as_of)
        for underlying in option_underlyings(session)
    ]
