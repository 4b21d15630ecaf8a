"""Pydantic schemas for API request/response validation"""

from pydantic import BaseModel, Field, field_validator, model_validator
from datetime import date, datetime
from typing import List, Optional

from royalty_service.domain.sources import SOURCE_TYPES


class RowErrorSchema(BaseModel):
    row: int
    error: str
    raw_row: List[str] = []


class StatementCreateRequest(BaseModel):
    """Request body for POST /v1/statements"""

    csv_content: str = Field(..., min_length=1, description="Raw CSV text")
    file_name: str = Field(..., min_length=1, description="Original file name")


class StatementPreviewRequest(BaseModel):
    """Request body for POST /v1/statements/preview"""

    csv_content: str = Field(..., min_length=1)


class StatementOutcomeResponse(BaseModel):
    """Response for statement create and reprocess"""

    success: bool
    statement_id: Optional[str] = None
    entries_created: int = 0
    parser: Optional[str] = None


class StatementSummary(BaseModel):
    id: str
    provider: str
    source_system: str
    label: Optional[str] = None
    file_name: Optional[str] = None
    file_size: Optional[int] = None
    parsed_entries_count: int
    created_at: Optional[datetime] = None


class StatementListResponse(BaseModel):
    statements: List[StatementSummary]


class IncomeEntrySchema(BaseModel):
    id: str
    statement_id: Optional[str] = None
    source_type: str
    amount: float
    period_start: date
    period_end: date
    notes: Optional[str] = None

    @classmethod
    def from_record(cls, entry) -> "IncomeEntrySchema":
        return cls(
            id=str(entry.id),
            statement_id=str(entry.statement_id) if entry.statement_id else None,
            source_type=entry.source_type,
            amount=float(entry.amount),
            period_start=entry.period_start,
            period_end=entry.period_end,
            notes=entry.notes,
        )


class StatementDetailResponse(StatementSummary):
    entries: List[IncomeEntrySchema]


class NormalizedRowSchema(BaseModel):
    source_type: str
    amount: float
    period_start: date
    period_end: date
    notes: Optional[str] = None


class ParseMetadataSchema(BaseModel):
    parser: str
    parser_name: str
    total_rows: int
    successful_rows: int
    failed_rows: int
    skipped_rows: int


class ParsePreviewResponse(BaseModel):
    """Parser output for POST /v1/statements/preview, nothing persisted"""

    success: bool
    entries: List[NormalizedRowSchema]
    errors: List[RowErrorSchema]
    metadata: ParseMetadataSchema


class IncomeCreateRequest(BaseModel):
    """Request body for POST /v1/income"""

    source_type: str
    amount: float
    period_start: date
    period_end: date
    notes: Optional[str] = None

    @field_validator("source_type")
    @classmethod
    def known_source(cls, value: str) -> str:
        if value not in SOURCE_TYPES:
            raise ValueError(f"Unknown source type: {value}")
        return value

    @model_validator(mode="after")
    def period_order(self) -> "IncomeCreateRequest":
        if self.period_end < self.period_start:
            raise ValueError("period_end must not be before period_start")
        return self


class IncomeListResponse(BaseModel):
    entries: List[IncomeEntrySchema]
    total: float


class SourceTotal(BaseModel):
    source_type: str
    label: str
    total: float


class IncomeSummaryResponse(BaseModel):
    """Response for GET /v1/income/summary"""

    total: float
    by_source: List[SourceTotal]


class ProfileRequest(BaseModel):
    """Request body for PUT /v1/profile"""

    writes_own_songs: bool
    monthly_streams: int = Field(..., ge=0)
    artist_name: Optional[str] = None


class ProfileResponse(BaseModel):
    user_id: str
    artist_name: Optional[str] = None
    writes_own_songs: bool
    monthly_streams: int


class MissingMoneyEstimateSchema(BaseModel):
    source: str
    source_name: str
    estimated_annual: int
    confidence: int
    confidence_label: str
    priority: str
    reason: str
    action_url: Optional[str] = None
    action_label: Optional[str] = None


class DropoffTrendSchema(BaseModel):
    source: str
    has_dropoff: bool
    dropoff_percentage: Optional[int] = None
    last_amount: Optional[float] = None


class MissingMoneyResponse(BaseModel):
    """Response for GET /v1/insights/missing-money"""

    total_estimated: int
    estimates: List[MissingMoneyEstimateSchema]
    has_collected_income: bool
    has_trend_data: bool
    trends: List[DropoffTrendSchema]


class TrendsResponse(BaseModel):
    trends: List[DropoffTrendSchema]


class GmailHarvestRequest(BaseModel):
    """Request body for POST /v1/harvest/gmail"""

    access_token: str = Field(..., min_length=1, description="OAuth bearer token for the mailbox")


class AttachmentUpload(BaseModel):
    message_id: str = Field(..., min_length=1)
    attachment_id: Optional[str] = None
    part_id: Optional[str] = None
    filename: str = Field(..., min_length=1)
    content_base64: str
    sender: Optional[str] = None
    subject: Optional[str] = None


class AttachmentHarvestRequest(BaseModel):
    """Request body for POST /v1/harvest/attachments"""

    attachments: List[AttachmentUpload]


class HarvestItemSchema(BaseModel):
    message_id: str
    filename: str
    status: str
    detail: Optional[str] = None
    entries_created: int = 0


class HarvestResponse(BaseModel):
    success: bool
    statements_created: int
    entries_created: int
    duplicates_skipped: int
    errors: List[str]
    outcomes: List[HarvestItemSchema]