"""SQLAlchemy ORM models for the statement ledger"""

import uuid
from sqlalchemy import (
    Column,
    String,
    BigInteger,
    Boolean,
    DateTime,
    Date,
    Integer,
    ForeignKey,
    Numeric,
    Text,
    JSON,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()


class RawStatement(Base):
    """One uploaded or harvested statement file"""

    __tablename__ = "raw_statements"
    __table_args__ = (UniqueConstraint("user_id", "dedup_key", name="uq_raw_statements_user_dedup"),)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Text, nullable=False, index=True)
    provider = Column(String(32), nullable=False)  # manual_upload | gmail | other
    source_system = Column(String(32), nullable=False)  # upload | email_csv | api
    raw_payload = Column(JSON, nullable=False)
    label = Column(Text, nullable=True)
    file_name = Column(Text, nullable=True)
    file_size = Column(BigInteger, nullable=True)
    parsed_entries_count = Column(Integer, nullable=False, default=0)
    dedup_key = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    entries = relationship("IncomeEntry", back_populates="statement")


class IncomeEntry(Base):
    """Normalized revenue line (USD)"""

    __tablename__ = "income_entries"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Text, nullable=False, index=True)
    statement_id = Column(UUID(as_uuid=True), ForeignKey("raw_statements.id"), nullable=True, index=True)
    source_type = Column(String(32), nullable=False)
    amount = Column(Numeric(14, 6), nullable=False)
    period_start = Column(Date, nullable=False)
    period_end = Column(Date, nullable=False)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    statement = relationship("RawStatement", back_populates="entries")


class ArtistProfileRecord(Base):
    """Estimator inputs collected during onboarding"""

    __tablename__ = "artist_profiles"

    user_id = Column(Text, primary_key=True)
    artist_name = Column(Text, nullable=True)
    writes_own_songs = Column(Boolean, nullable=False, default=False)
    monthly_streams = Column(BigInteger, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
