"""Open option positions API: reconciled from the transaction ledger."""

import logging
from datetime import date

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session

from backend.database import get_session
from backend.engine.reconciler import InvalidEvent
from backend.schemas.position import PositionReport
from backend.services.reconciliation import reconcile_all, reconcile_underlying

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/positions", tags=["positions"])


def _invalid_ledger(e: InvalidEvent) -> HTTPException:
    logger.error(f"Reconciliation aborted: {e}")
    return HTTPException(
        status_code=422,
        detail={
            "error": "InvalidEvent",
            "message": e.reason,
            "index": e.index,
            "transaction_id": getattr(e.event, "source_id", None),
        },
    )


@router.get("/options", response_model=list[PositionReport])
def list_option_positions(
    as_of: date | None = None,
    session: Session = Depends(get_session),
):
    """Open contracts and anomalies for every underlying with option activity."""
    try:
        return reconcile_all(session, as_of)
    except InvalidEvent as e:
        raise _invalid_ledger(e)


@router.get("/options/{underlying}", response_model=PositionReport)
def option_positions(
    underlying: str,
    as_of: date | None = None,
    session: Session = Depends(get_session),
):
    try:
        return reconcile_underlying(session, underlying, as_of)
    except InvalidEvent as e:
        raise _invalid_ledger(e)
