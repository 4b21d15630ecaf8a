"""TuneCore earnings statements.

Expected headers: Period, Store, Song, ISRC, Territory, Net Revenue
"""

import re
from datetime import date, datetime
from typing import List, Optional, Tuple

from royalty_service.domain.models import NormalizedRow, ParseResult
from royalty_service.domain.sources import map_source_type
from royalty_service.parsers.base import (
    UNKNOWN_TRACK,
    ParserDescriptor,
    cell,
    find_column,
    normalize_headers,
    parse_amount,
    parse_date,
    parse_rows,
    require,
)
from royalty_service.utils.date_utils import month_bounds, quarter_bounds

PARSER_ID = "tunecore"
PARSER_NAME = "TuneCore"

_QUARTER = re.compile(r"Q(\d)\s+(\d{4})", re.IGNORECASE)
_YEAR_MONTH = re.compile(r"^(\d{4})-(\d{2})$")
_MONTH_NAME_FORMATS = ("%b %Y", "%B %Y")


def can_parse(content: str, headers: List[str]) -> bool:
    normalized = normalize_headers(headers)
    return (
        "period" in normalized
        and "store" in normalized
        and ("net revenue" in normalized or "revenue" in normalized)
    )


def parse_period(period: str) -> Tuple[date, date]:
    """
    Resolve a TuneCore period label to its first and last day.

    Supports "Q2 2024", "2024-04", "Apr 2024" / "April 2024", and falls back to
    the month containing any other parseable date.
    """
    value = period.strip()

    if "q" in value.lower():
        match = _QUARTER.search(value)
        if match is None:
            raise ValueError(f"Invalid period format: {period}")
        return quarter_bounds(int(match.group(2)), int(match.group(1)))

    match = _YEAR_MONTH.match(value)
    if match:
        return month_bounds(int(match.group(1)), int(match.group(2)))

    for fmt in _MONTH_NAME_FORMATS:
        try:
            parsed = datetime.strptime(value, fmt)
        except ValueError:
            continue
        return month_bounds(parsed.year, parsed.month)

    day = parse_date(value)
    return month_bounds(day.year, day.month)


def _row_to_entry(headers: List[str], row: List[str]) -> Optional[NormalizedRow]:
    amount = parse_amount(cell(row, find_column(headers, "revenue")))
    if amount == 0:
        return None

    period = require(cell(row, find_column(headers, "period")), "period")
    store = require(cell(row, find_column(headers, "store")), "store")
    song = cell(row, find_column(headers, "song")) or UNKNOWN_TRACK

    period_start, period_end = parse_period(period)

    return NormalizedRow(
        source_type=map_source_type(store),
        amount=amount,
        period_start=period_start,
        period_end=period_end,
        notes=f"{store} - {song}",
        raw_data={"store": store, "song": song, "period": period},
    )


def parse(content: str) -> ParseResult:
    return parse_rows(content, PARSER_ID, PARSER_NAME, _row_to_entry)


TUNECORE = ParserDescriptor(id=PARSER_ID, name=PARSER_NAME, can_parse=can_parse, parse=parse)
