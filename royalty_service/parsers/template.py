"""Generic income template.

Headers: source_type, amount, period_start, period_end, notes (optional).
Used for hand-built spreadsheets and for statements forwarded by email in
the normalized layout.
"""

from typing import List, Optional

from royalty_service.domain.models import NormalizedRow, ParseResult
from royalty_service.domain.sources import SOURCE_TYPES, map_source_type
from royalty_service.parsers.base import (
    ParserDescriptor,
    cell,
    find_column,
    normalize_headers,
    parse_amount,
    parse_date,
    parse_rows,
    require,
)

PARSER_ID = "template"
PARSER_NAME = "Income Template"

REQUIRED_HEADERS = ("source_type", "amount", "period_start", "period_end")


def can_parse(content: str, headers: List[str]) -> bool:
    normalized = normalize_headers(headers)
    return all(h in normalized for h in REQUIRED_HEADERS)


def _row_to_entry(headers: List[str], row: List[str]) -> Optional[NormalizedRow]:
    amount = parse_amount(cell(row, find_column(headers, "amount")))
    if amount == 0:
        return None

    raw_source = require(cell(row, find_column(headers, "source_type")), "source_type")
    start_str = require(cell(row, find_column(headers, "period_start")), "period_start")
    end_str = require(cell(row, find_column(headers, "period_end")), "period_end")
    notes = (cell(row, find_column(headers, "notes")) or "").strip() or None

    source = raw_source.lower().strip()
    source_type = source if source in SOURCE_TYPES else map_source_type(source)

    return NormalizedRow(
        source_type=source_type,
        amount=amount,
        period_start=parse_date(start_str[:10]),
        period_end=parse_date(end_str[:10]),
        notes=notes,
        raw_data={"source_type": raw_source},
    )


def parse(content: str) -> ParseResult:
    return parse_rows(content, PARSER_ID, PARSER_NAME, _row_to_entry)


TEMPLATE = ParserDescriptor(id=PARSER_ID, name=PARSER_NAME, can_parse=can_parse, parse=parse)
