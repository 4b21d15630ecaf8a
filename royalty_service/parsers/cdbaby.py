"""CD Baby earnings statements.

Expected headers: Report Date, Service, Artist, Album, Track, Quantity, Amount
"""

from typing import List, Optional

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
from royalty_service.utils.date_utils import month_bounds

PARSER_ID = "cdbaby"
PARSER_NAME = "CD Baby"


def can_parse(content: str, headers: List[str]) -> bool:
    normalized = normalize_headers(headers)
    return (
        ("report date" in normalized or "date" in normalized)
        and ("service" in normalized or "platform" in normalized)
        and "amount" in normalized
    )


def _row_to_entry(headers: List[str], row: List[str]) -> Optional[NormalizedRow]:
    amount = parse_amount(cell(row, find_column(headers, "amount")))
    if amount == 0:
        return None

    date_str = require(cell(row, find_column(headers, "report date", "date")), "report date")
    service = require(cell(row, find_column(headers, "service", "platform")), "service")
    track = cell(row, find_column(headers, "track")) or UNKNOWN_TRACK

    # CD Baby reports are monthly
    report_date = parse_date(date_str)
    period_start, period_end = month_bounds(report_date.year, report_date.month)

    return NormalizedRow(
        source_type=map_source_type(service),
        amount=amount,
        period_start=period_start,
        period_end=period_end,
        notes=f"{service} - {track}",
        raw_data={"service": service, "track": track, "reportDate": date_str},
    )


def parse(content: str) -> ParseResult:
    return parse_rows(content, PARSER_ID, PARSER_NAME, _row_to_entry)


CDBABY = ParserDescriptor(id=PARSER_ID, name=PARSER_NAME, can_parse=can_parse, parse=parse)
