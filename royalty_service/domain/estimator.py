"""Missing-money estimation engine - projects royalties a user is not collecting"""

from decimal import Decimal
from typing import Callable, List, Sequence, Set, Tuple

from royalty_service.domain import sources
from royalty_service.domain.models import ArtistProfile, LedgerEntry, MissingMoneyAnalysis, MissingMoneyEstimate
from royalty_service.domain.trends import analyze_trends
from royalty_service.utils.money import round_half_up

PRIORITY_ORDER = {"critical": 4, "high": 3, "medium": 2, "low": 1}

MIN_ESTIMATE_AMOUNT = 10
MIN_ESTIMATE_CONFIDENCE = 70
TREND_DATA_MIN_ENTRIES = 3


def confidence_label(confidence: int) -> str:
    if confidence >= 70:
        return "High"
    if confidence >= 50:
        return "Medium"
    return "Low"


def _stepped(monthly_streams: int, steps: Sequence[Tuple[int, int]], floor: int) -> int:
    """First value whose stream threshold is strictly exceeded, else floor"""
    for threshold, value in steps:
        if monthly_streams > threshold:
            return value
    return floor


def _tier(monthly_streams: int, tiers: Sequence[Tuple[int, int, int]], floor: Tuple[int, int]) -> Tuple[int, int]:
    """Flat (annual, confidence) pair for the first stream bracket exceeded"""
    for threshold, annual, confidence in tiers:
        if monthly_streams > threshold:
            return annual, confidence
    return floor


def _priority(annual: Decimal, thresholds: Sequence[Tuple[int, str]]) -> str:
    for threshold, priority in thresholds:
        if annual > threshold:
            return priority
    return "low"


def _build(
    source: str,
    source_name: str,
    annual: Decimal,
    confidence: int,
    priority: str,
    reason: str,
    action_url: str,
    action_label: str,
) -> MissingMoneyEstimate:
    confidence = min(100, confidence)
    return MissingMoneyEstimate(
        source=source,
        source_name=source_name,
        estimated_annual=round_half_up(annual),
        confidence=confidence,
        confidence_label=confidence_label(confidence),
        priority=priority,
        reason=reason,
        action_url=action_url,
        action_label=action_label,
    )


def estimate_pro(monthly_streams: int, collected: Set[str]) -> MissingMoneyEstimate:
    """
    Performance royalties (ASCAP/BMI/SESAC).

    ~$0.35 per 1000 streams per month, annualised.
    """
    annual = Decimal(monthly_streams) / 1000 * Decimal("0.35") * 12

    confidence = _stepped(monthly_streams, [(100_000, 90), (50_000, 80), (20_000, 70), (10_000, 60)], 40)
    if sources.STREAMING in collected:
        confidence += 10

    return _build(
        sources.PRO,
        "PRO (ASCAP/BMI/SESAC)",
        annual,
        confidence,
        _priority(annual, [(500, "critical"), (200, "high"), (50, "medium")]),
        "You write your own songs, so you're entitled to performance royalties "
        "when your music is played publicly",
        "https://www.ascap.com/join",
        "Register with ASCAP",
    )


def estimate_mlc(monthly_streams: int, collected: Set[str]) -> MissingMoneyEstimate:
    """Mechanical royalties from streaming, ~$0.0007 per stream"""
    annual = Decimal(monthly_streams) * Decimal("0.0007") * 12

    confidence = _stepped(monthly_streams, [(50_000, 85), (20_000, 75), (10_000, 65), (5_000, 55)], 35)
    if sources.STREAMING in collected:
        confidence += 10

    return _build(
        sources.MLC,
        "MLC (Mechanical Rights)",
        annual,
        confidence,
        _priority(annual, [(300, "critical"), (100, "high"), (30, "medium")]),
        "The MLC collects mechanical royalties from streaming services. "
        "Many artists miss this revenue stream.",
        "https://www.themlc.com/signup",
        "Register with MLC",
    )


def estimate_soundexchange(monthly_streams: int, collected: Set[str]) -> MissingMoneyEstimate:
    """Digital radio royalties, ~$0.002 per stream"""
    annual = Decimal(monthly_streams) * Decimal("0.002") * 12
    confidence = _stepped(monthly_streams, [(100_000, 75), (50_000, 65), (20_000, 55), (10_000, 45)], 25)

    return _build(
        sources.SOUNDEXCHANGE,
        "SoundExchange",
        annual,
        confidence,
        _priority(annual, [(400, "high"), (100, "medium")]),
        "SoundExchange collects royalties from internet radio (Pandora, SiriusXM, etc.)",
        "https://www.soundexchange.com/artist-copyright-owner/registering",
        "Register with SoundExchange",
    )


def estimate_youtube(monthly_streams: int, collected: Set[str]) -> MissingMoneyEstimate:
    # Content ID is hard to model from streams; conservative flat tiers.
    annual, confidence = _tier(monthly_streams, [(100_000, 300, 60), (50_000, 150, 50), (20_000, 75, 40)], (25, 25))

    return _build(
        sources.YOUTUBE,
        "YouTube Content ID",
        Decimal(annual),
        confidence,
        _priority(Decimal(annual), [(200, "medium")]),
        "If your music appears in user-generated YouTube videos, Content ID can collect royalties",
        "https://www.youtube.com/intl/en-GB/creators/support-resources/content-id/",
        "Learn about Content ID",
    )


def estimate_neighbouring(monthly_streams: int, collected: Set[str]) -> MissingMoneyEstimate:
    annual, confidence = _tier(monthly_streams, [(200_000, 500, 65), (100_000, 250, 55), (50_000, 125, 45)], (50, 30))

    return _build(
        sources.NEIGHBOURING,
        "Neighbouring Rights (International)",
        Decimal(annual),
        confidence,
        _priority(Decimal(annual), [(300, "medium")]),
        "If your music is played internationally (radio, TV, clubs), "
        "you may be entitled to neighbouring rights",
        "https://www.ppluk.com/i-am-a/performer/",
        "Learn about PPL/PRS",
    )


# (source, estimator, requires songwriting)
ESTIMATORS: List[Tuple[str, Callable[[int, Set[str]], MissingMoneyEstimate], bool]] = [
    (sources.PRO, estimate_pro, True),
    (sources.MLC, estimate_mlc, True),
    (sources.SOUNDEXCHANGE, estimate_soundexchange, False),
    (sources.YOUTUBE, estimate_youtube, False),
    (sources.NEIGHBOURING, estimate_neighbouring, False),
]


def analyze_missing_money(profile: ArtistProfile, entries: Sequence[LedgerEntry]) -> MissingMoneyAnalysis:
    """
    Main entry point: estimate uncollected royalties and income dropoffs.

    A source is only estimated when the ledger holds no entry of that type.
    Estimates worth under $10 are dropped unless confidence is at least 70.
    Remaining estimates are ordered by priority, then by amount.
    """
    collected = {e.source_type for e in entries}
    monthly_streams = max(0, int(profile.monthly_streams or 0))

    estimates: List[MissingMoneyEstimate] = []
    for source, estimate, requires_songwriting in ESTIMATORS:
        if source in collected:
            continue
        if requires_songwriting and not profile.writes_own_songs:
            continue
        estimates.append(estimate(monthly_streams, collected))

    significant = [
        e
        for e in estimates
        if e.estimated_annual >= MIN_ESTIMATE_AMOUNT or e.confidence >= MIN_ESTIMATE_CONFIDENCE
    ]
    significant.sort(key=lambda e: (-PRIORITY_ORDER[e.priority], -e.estimated_annual))

    return MissingMoneyAnalysis(
        total_estimated=sum(e.estimated_annual for e in significant),
        estimates=significant,
        has_collected_income=len(entries) > 0,
        has_trend_data=len(entries) >= TREND_DATA_MIN_ENTRIES,
        trends=analyze_trends(entries),
    )
