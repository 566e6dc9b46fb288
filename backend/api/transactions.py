"""Transaction ledger API: CRUD and CSV upload."""

import logging

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from sqlmodel import Session, select

from backend.database import get_session
from backend.models.transaction import Transaction
from backend.schemas.transaction import (
    TransactionCreate,
    TransactionRead,
    TransactionUpdate,
    UploadSummary,
)
from backend.services.ledger_import import import_transactions_csv

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/transactions", tags=["transactions"])


@router.get("", response_model=list[TransactionRead])
def list_transactions(
    symbol: str | None = None,
    security_type: str | None = None,
    limit: int = 100,
    offset: int = 0,
    session: Session = Depends(get_session),
):
    stmt = select(Transaction).order_by(Transaction.transaction_date.desc(), Transaction.id.desc())
    if symbol is not None:
        stmt = stmt.where(Transaction.calculated_symbol == symbol.upper())
    if security_type is not None:
        stmt = stmt.where(Transaction.security_type == security_type)
    stmt = stmt.offset(offset).limit(limit)
    return session.exec(stmt).all()


@router.get("/symbol/{symbol}", response_model=list[TransactionRead])
def transactions_by_symbol(symbol: str, session: Session = Depends(get_session)):
    stmt = (
        select(Transaction)
        .where(Transaction.calculated_symbol == symbol.upper())
        .order_by(Transaction.transaction_date.desc(), Transaction.id.desc())
    )
    return session.exec(stmt).all()


@router.post("/upload", response_model=UploadSummary)
async def upload_transactions(
    file: UploadFile = File(...),
    session: Session = Depends(get_session),
):
    """Import a brokerage CSV export (comma or pipe separated)."""
    content = await file.read()
    logger.info(f"CSV upload: {file.filename} ({len(content)} bytes)")
    try:
        result = import_transactions_csv(session, content)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return UploadSummary(
        total_rows=result.total_rows,
        processed_count=result.processed_count,
        skipped_count=result.skipped_count,
        warnings=result.warnings,
    )


@router.post("", response_model=TransactionRead, status_code=201)
def create_transaction(data: TransactionCreate, session: Session = Depends(get_session)):
    tx = Transaction(**data.model_dump())
    session.add(tx)
    session.commit()
    session.refresh(tx)
    return tx


@router.get("/{transaction_id}", response_model=TransactionRead)
def get_transaction(transaction_id: int, session: Session = Depends(get_session)):
    tx = session.get(Transaction, transaction_id)
    if not tx:
        raise HTTPException(status_code=404, detail="Transaction not found")
    return tx


@router.put("/{transaction_id}", response_model=TransactionRead)
def update_transaction(
    transaction_id: int,
    data: TransactionUpdate,
    session: Session = Depends(get_session),
):
    tx = session.get(Transaction, transaction_id)
    if not tx:
        raise HTTPException(status_code=404, detail="Transaction not found")

    update_data = data.model_dump(exclude_unset=True)

    # Validate the merged row so partial updates cannot bypass field rules
    merged = {**tx.model_dump(), **update_data}
    try:
        TransactionCreate.model_validate(merged)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    for key, value in update_data.items():
        setattr(tx, key, value)
    session.add(tx)
    session.commit()
    session.refresh(tx)
    return tx


@router.delete("/{transaction_id}", status_code=204)
def delete_transaction(transaction_id: int, session: Session = Depends(get_session)):
    tx = session.get(Transaction, transaction_id)
    if not tx:
        raise HTTPException(status_code=404, detail="Transaction not found")
    session.delete(tx)
    session.commit()
