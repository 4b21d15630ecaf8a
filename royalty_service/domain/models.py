"""Domain models - pure Python dataclasses representing business entities"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional


@dataclass
class NormalizedRow:
    """One income line produced by a distributor parser"""

    source_type: str
    amount: Decimal
    period_start: date
    period_end: date
    notes: Optional[str] = None
    raw_data: Dict[str, Any] = field(default_factory=dict)


@dataclass
class RowError:
    """A data row that could not be normalized"""

    row: int  # 1-based line number in the file, header is line 1
    error: str
    raw_row: List[str] = field(default_factory=list)


@dataclass
class ParseMetadata:
    parser: str
    parser_name: str
    total_rows: int
    successful_rows: int
    failed_rows: int
    skipped_rows: int = 0  # zero-amount rows, counted in neither entries nor errors


@dataclass
class ParseResult:
    """Envelope returned by every parser and by the orchestrator"""

    success: bool
    entries: List[NormalizedRow]
    errors: List[RowError]
    metadata: ParseMetadata


@dataclass
class LedgerEntry:
    """Point-in-time view of a persisted income entry"""

    source_type: str
    amount: Decimal
    period_start: date
    period_end: date


@dataclass
class ArtistProfile:
    """Profile inputs for the missing-money estimator"""

    writes_own_songs: bool
    monthly_streams: int


@dataclass
class MissingMoneyEstimate:
    """Projected annual shortfall for one uncollected source"""

    source: str
    source_name: str
    estimated_annual: int
    confidence: int  # 0-100
    confidence_label: str  # "High" | "Medium" | "Low"
    priority: str  # "critical" | "high" | "medium" | "low"
    reason: str
    action_url: Optional[str] = None
    action_label: Optional[str] = None


@dataclass
class DropoffTrend:
    source: str
    has_dropoff: bool
    dropoff_percentage: Optional[int] = None
    last_amount: Optional[Decimal] = None


@dataclass
class MissingMoneyAnalysis:
    total_estimated: int
    estimates: List[MissingMoneyEstimate]
    has_collected_income: bool
    has_trend_data: bool
    trends: List[DropoffTrend]


@dataclass
class AttachmentRef:
    """A CSV attachment discovered in a mailbox, not yet downloaded"""

    message_id: str
    attachment_id: Optional[str]
    filename: str
    sender: Optional[str] = None
    subject: Optional[str] = None
    part_id: Optional[str] = None

    @property
    def dedup_key(self) -> str:
        # attachment_id changes on every Gmail fetch, part_id and filename do not
        return f"{self.message_id}:{self.part_id or self.filename}"


@dataclass
class HarvestedAttachment(AttachmentRef):
    """A downloaded attachment ready for ingestion"""

    content: bytes = b""


@dataclass
class HarvestItemOutcome:
    message_id: str
    filename: str
    status: str  # "created" | "duplicate" | "skipped" | "failed"
    detail: Optional[str] = None
    entries_created: int = 0


@dataclass
class HarvestSummary:
    """Partial-success report for one harvest run"""

    statements_created: int = 0
    entries_created: int = 0
    duplicates_skipped: int = 0
    errors: List[str] = field(default_factory=list)
    outcomes: List[HarvestItemOutcome] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors
