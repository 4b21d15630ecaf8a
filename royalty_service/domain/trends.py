"""Income trend analysis - detects per-source dropoffs"""

from collections import defaultdict
from decimal import Decimal
from typing import Dict, List, Sequence

from royalty_service.domain.models import DropoffTrend, LedgerEntry
from royalty_service.utils.money import round_half_up

MIN_ENTRIES = 3
RECENT_WINDOW = 2
OLDER_WINDOW = 3
DROPOFF_THRESHOLD_PCT = 20


def _average(amounts: Sequence[Decimal]) -> Decimal:
    return sum(amounts, Decimal("0")) / len(amounts)


def analyze_trends(entries: Sequence[LedgerEntry]) -> List[DropoffTrend]:
    """
    Compare recent vs. older income per source.

    Per source with at least 3 entries, newest first by period start:
    - recent = the 2 newest entries
    - older  = the next 3 (or however many exist)
    dropoff % = (older_avg - recent_avg) / older_avg * 100

    A dropoff is flagged only above 20% (exactly 20% is not a dropoff).
    Sources whose older average is not positive are skipped.
    """
    if len(entries) < MIN_ENTRIES:
        return []

    by_source: Dict[str, List[LedgerEntry]] = defaultdict(list)
    for entry in entries:
        by_source[entry.source_type].append(entry)

    trends: List[DropoffTrend] = []
    for source, source_entries in by_source.items():
        if len(source_entries) < MIN_ENTRIES:
            continue

        ordered = sorted(source_entries, key=lambda e: e.period_start, reverse=True)
        recent = [Decimal(str(e.amount)) for e in ordered[:RECENT_WINDOW]]
        older = [Decimal(str(e.amount)) for e in ordered[RECENT_WINDOW:RECENT_WINDOW + OLDER_WINDOW]]

        older_avg = _average(older)
        if older_avg <= 0:
            continue

        dropoff = (older_avg - _average(recent)) / older_avg * 100
        has_dropoff = dropoff > DROPOFF_THRESHOLD_PCT

        trends.append(
            DropoffTrend(
                source=source,
                has_dropoff=has_dropoff,
                dropoff_percentage=round_half_up(dropoff) if has_dropoff else None,
                last_amount=Decimal(str(ordered[0].amount)),
            )
        )

    return trends
