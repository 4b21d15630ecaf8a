"""Data access layer for statements, income entries and profiles.

Every query is filtered by ``user_id``. Repositories only ``flush``; the
calling service owns the transaction.
"""

import uuid
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence
from sqlalchemy import func
from sqlalchemy.orm import Session
from royalty_service.infrastructure.database.models import ArtistProfileRecord, IncomeEntry, RawStatement
from royalty_service.domain.models import NormalizedRow


@dataclass
class IncomeFilters:
    source_type: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    min_amount: Optional[Decimal] = None
    max_amount: Optional[Decimal] = None


class StatementRepository:
    """Repository for raw statements"""

    def __init__(self, db: Session):
        self.db = db

    def create_statement(
        self,
        user_id: str,
        provider: str,
        source_system: str,
        raw_payload: Dict[str, Any],
        file_name: str,
        file_size: int,
        parsed_entries_count: int,
        dedup_key: Optional[str] = None,
    ) -> RawStatement:
        """Add statement row and flush to obtain its id"""
        db_statement = RawStatement(
            user_id=user_id,
            provider=provider,
            source_system=source_system,
            raw_payload=raw_payload,
            label=file_name,
            file_name=file_name,
            file_size=file_size,
            parsed_entries_count=parsed_entries_count,
            dedup_key=dedup_key,
        )
        self.db.add(db_statement)
        self.db.flush()  # Get ID without committing
        return db_statement

    def get_statement(self, user_id: str, statement_id: uuid.UUID) -> Optional[RawStatement]:
        return (
            self.db.query(RawStatement)
            .filter(RawStatement.id == statement_id, RawStatement.user_id == user_id)
            .first()
        )

    def list_statements(self, user_id: str, limit: int = 100) -> List[RawStatement]:
        """Most recent statements first"""
        return (
            self.db.query(RawStatement)
            .filter(RawStatement.user_id == user_id)
            .order_by(RawStatement.created_at.desc())
            .limit(limit)
            .all()
        )

    def exists_with_dedup_key(self, user_id: str, dedup_key: str) -> bool:
        return (
            self.db.query(RawStatement.id)
            .filter(RawStatement.user_id == user_id, RawStatement.dedup_key == dedup_key)
            .first()
            is not None
        )

    def update_entries_count(self, statement: RawStatement, count: int) -> None:
        statement.parsed_entries_count = count
        self.db.flush()

    def delete_statement(self, user_id: str, statement_id: uuid.UUID) -> int:
        """Delete the statement row; entries must be removed first"""
        deleted = (
            self.db.query(RawStatement)
            .filter(RawStatement.id == statement_id, RawStatement.user_id == user_id)
            .delete(synchronize_session=False)
        )
        self.db.flush()
        return deleted


class IncomeRepository:
    """Repository for normalized income entries"""

    def __init__(self, db: Session):
        self.db = db

    def add_entries(self, user_id: str, statement_id: Optional[uuid.UUID], rows: Sequence[NormalizedRow]) -> int:
        """Bulk-insert parser output linked to a statement"""
        for row in rows:
            self.db.add(
                IncomeEntry(
                    user_id=user_id,
                    statement_id=statement_id,
                    source_type=row.source_type,
                    amount=row.amount,
                    period_start=row.period_start,
                    period_end=row.period_end,
                    notes=row.notes,
                )
            )
        self.db.flush()
        return len(rows)

    def create_entry(
        self,
        user_id: str,
        source_type: str,
        amount: Decimal,
        period_start: date,
        period_end: date,
        notes: Optional[str] = None,
    ) -> IncomeEntry:
        """Single manually entered row (no statement)"""
        entry = IncomeEntry(
            user_id=user_id,
            source_type=source_type,
            amount=amount,
            period_start=period_start,
            period_end=period_end,
            notes=notes,
        )
        self.db.add(entry)
        self.db.flush()
        return entry

    def delete_for_statement(self, user_id: str, statement_id: uuid.UUID) -> int:
        deleted = (
            self.db.query(IncomeEntry)
            .filter(IncomeEntry.statement_id == statement_id, IncomeEntry.user_id == user_id)
            .delete(synchronize_session=False)
        )
        self.db.flush()
        return deleted

    def delete_entry(self, user_id: str, entry_id: uuid.UUID) -> int:
        deleted = (
            self.db.query(IncomeEntry)
            .filter(IncomeEntry.id == entry_id, IncomeEntry.user_id == user_id)
            .delete(synchronize_session=False)
        )
        self.db.flush()
        return deleted

    def list_entries(self, user_id: str, filters: Optional[IncomeFilters] = None) -> List[IncomeEntry]:
        """Ledger snapshot, newest period first"""
        query = self.db.query(IncomeEntry).filter(IncomeEntry.user_id == user_id)

        if filters is not None:
            if filters.source_type:
                query = query.filter(IncomeEntry.source_type == filters.source_type)
            if filters.start_date:
                query = query.filter(IncomeEntry.period_start >= filters.start_date)
            if filters.end_date:
                query = query.filter(IncomeEntry.period_end <= filters.end_date)
            if filters.min_amount is not None:
                query = query.filter(IncomeEntry.amount >= filters.min_amount)
            if filters.max_amount is not None:
                query = query.filter(IncomeEntry.amount <= filters.max_amount)

        return query.order_by(IncomeEntry.period_start.desc()).all()

    def list_for_statement(self, user_id: str, statement_id: uuid.UUID) -> List[IncomeEntry]:
        return (
            self.db.query(IncomeEntry)
            .filter(IncomeEntry.statement_id == statement_id, IncomeEntry.user_id == user_id)
            .order_by(IncomeEntry.period_start.desc())
            .all()
        )

    def totals_by_source(self, user_id: str) -> Dict[str, Decimal]:
        rows = (
            self.db.query(IncomeEntry.source_type, func.sum(IncomeEntry.amount))
            .filter(IncomeEntry.user_id == user_id)
            .group_by(IncomeEntry.source_type)
            .all()
        )
        return {source: Decimal(str(total or 0)) for source, total in rows}


class ProfileRepository:
    """Repository for artist profiles"""

    def __init__(self, db: Session):
        self.db = db

    def get_profile(self, user_id: str) -> Optional[ArtistProfileRecord]:
        return self.db.query(ArtistProfileRecord).filter(ArtistProfileRecord.user_id == user_id).first()

    def upsert_profile(
        self,
        user_id: str,
        writes_own_songs: bool,
        monthly_streams: int,
        artist_name: Optional[str] = None,
    ) -> ArtistProfileRecord:
        profile = self.get_profile(user_id)
        if profile is None:
            profile = ArtistProfileRecord(user_id=user_id)
            self.db.add(profile)

        profile.writes_own_songs = writes_own_songs
        profile.monthly_streams = monthly_streams
        if artist_name is not None:
            profile.artist_name = artist_name

        self.db.flush()
        return profile
