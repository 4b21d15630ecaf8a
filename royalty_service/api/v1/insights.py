"""/v1/insights - missing-money estimates and income dropoff trends"""

from typing import List
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from royalty_service.api.dependencies import get_user_id
from royalty_service.api.v1.schemas import (
    DropoffTrendSchema,
    MissingMoneyEstimateSchema,
    MissingMoneyResponse,
    TrendsResponse,
)
from royalty_service.domain.estimator import analyze_missing_money
from royalty_service.domain.models import ArtistProfile, DropoffTrend, LedgerEntry
from royalty_service.domain.trends import analyze_trends
from royalty_service.infrastructure.database.repositories import IncomeRepository, ProfileRepository
from royalty_service.infrastructure.database.session import get_db

router = APIRouter()


def _ledger_snapshot(db: Session, user_id: str) -> List[LedgerEntry]:
    return [
        LedgerEntry(
            source_type=e.source_type,
            amount=e.amount,
            period_start=e.period_start,
            period_end=e.period_end,
        )
        for e in IncomeRepository(db).list_entries(user_id)
    ]


def _trend_schema(trend: DropoffTrend) -> DropoffTrendSchema:
    return DropoffTrendSchema(
        source=trend.source,
        has_dropoff=trend.has_dropoff,
        dropoff_percentage=trend.dropoff_percentage,
        last_amount=float(trend.last_amount) if trend.last_amount is not None else None,
    )


@router.get("/insights/missing-money", response_model=MissingMoneyResponse)
def missing_money(
    user_id: str = Depends(get_user_id),
    db: Session = Depends(get_db),
):
    """
    Estimate annual royalties the user is not collecting.

    Users without a profile are treated as non-songwriters with no streams.
    """
    record = ProfileRepository(db).get_profile(user_id)
    profile = ArtistProfile(
        writes_own_songs=bool(record.writes_own_songs) if record else False,
        monthly_streams=int(record.monthly_streams or 0) if record else 0,
    )

    analysis = analyze_missing_money(profile, _ledger_snapshot(db, user_id))

    return MissingMoneyResponse(
        total_estimated=analysis.total_estimated,
        estimates=[
            MissingMoneyEstimateSchema(
                source=e.source,
                source_name=e.source_name,
                estimated_annual=e.estimated_annual,
                confidence=e.confidence,
                confidence_label=e.confidence_label,
                priority=e.priority,
                reason=e.reason,
                action_url=e.action_url,
                action_label=e.action_label,
            )
            for e in analysis.estimates
        ],
        has_collected_income=analysis.has_collected_income,
        has_trend_data=analysis.has_trend_data,
        trends=[_trend_schema(t) for t in analysis.trends],
    )


@router.get("/insights/trends", response_model=TrendsResponse)
def trends(
    user_id: str = Depends(get_user_id),
    db: Session = Depends(get_db),
):
    return TrendsResponse(trends=[_trend_schema(t) for t in analyze_trends(_ledger_snapshot(db, user_id))])
