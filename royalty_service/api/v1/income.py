"""/v1/income - ledger listing, manual entries and totals"""

import logging
import uuid
from datetime import date
from decimal import Decimal
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from royalty_service.api.dependencies import get_user_id
from royalty_service.api.v1.schemas import (
    IncomeCreateRequest,
    IncomeEntrySchema,
    IncomeListResponse,
    IncomeSummaryResponse,
    SourceTotal,
)
from royalty_service.domain.sources import get_source
from royalty_service.infrastructure.database.repositories import IncomeFilters, IncomeRepository
from royalty_service.infrastructure.database.session import get_db

router = APIRouter()


@router.get("/income", response_model=IncomeListResponse)
def list_income(
    user_id: str = Depends(get_user_id),
    source_type: Optional[str] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    min_amount: Optional[Decimal] = Query(None),
    max_amount: Optional[Decimal] = Query(None),
    db: Session = Depends(get_db),
):
    """Income entries for the calling user, newest period first"""
    filters = IncomeFilters(
        source_type=source_type,
        start_date=start_date,
        end_date=end_date,
        min_amount=min_amount,
        max_amount=max_amount,
    )
    entries = IncomeRepository(db).list_entries(user_id, filters)

    return IncomeListResponse(
        entries=[IncomeEntrySchema.from_record(e) for e in entries],
        total=float(sum((Decimal(str(e.amount)) for e in entries), Decimal("0"))),
    )


@router.post("/income", response_model=IncomeEntrySchema, status_code=201)
def create_income(
    request_body: IncomeCreateRequest,
    user_id: str = Depends(get_user_id),
    db: Session = Depends(get_db),
):
    """Record a manually entered income line not tied to any statement"""
    try:
        entry = IncomeRepository(db).create_entry(
            user_id=user_id,
            source_type=request_body.source_type,
            amount=Decimal(str(request_body.amount)),
            period_start=request_body.period_start,
            period_end=request_body.period_end,
            notes=request_body.notes,
        )
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logging.error(f"Failed to create income entry: {e}", extra={"user_id": user_id})
        raise HTTPException(status_code=500, detail="Failed to create income entry")

    return IncomeEntrySchema.from_record(entry)


@router.get("/income/summary", response_model=IncomeSummaryResponse)
def income_summary(
    user_id: str = Depends(get_user_id),
    db: Session = Depends(get_db),
):
    """Collected totals overall and per source type"""
    totals = IncomeRepository(db).totals_by_source(user_id)

    by_source = [
        SourceTotal(source_type=source, label=get_source(source).label, total=float(total))
        for source, total in sorted(totals.items(), key=lambda item: item[1], reverse=True)
    ]
    return IncomeSummaryResponse(total=float(sum(totals.values(), Decimal("0"))), by_source=by_source)


@router.delete("/income/{entry_id}", status_code=204)
def delete_income(
    entry_id: uuid.UUID,
    user_id: str = Depends(get_user_id),
    db: Session = Depends(get_db),
):
    try:
        deleted = IncomeRepository(db).delete_entry(user_id, entry_id)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logging.error(f"Failed to delete income entry: {e}", extra={"user_id": user_id})
        raise HTTPException(status_code=500, detail="Failed to delete income entry")

    if not deleted:
        raise HTTPException(status_code=404, detail="Income entry not found")
