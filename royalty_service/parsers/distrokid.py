"""DistroKid earnings statements.

Expected headers: Sale Month, Store, Artist, Title, ISRC, UPC, Quantity,
Song/Album, Country, Earnings (USD)
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
    parse_rows,
    require,
)
from royalty_service.utils.date_utils import month_bounds

PARSER_ID = "distrokid"
PARSER_NAME = "DistroKid"


def can_parse(content: str, headers: List[str]) -> bool:
    normalized = normalize_headers(headers)
    return "sale month" in normalized and "store" in normalized and "earnings (usd)" in normalized


def _parse_sale_month(sale_month: str):
    # "2024-03" or "03/2024"
    parts = sale_month.split("/")[::-1] if "/" in sale_month else sale_month.split("-")
    if len(parts) < 2:
        raise ValueError(f"Invalid sale month: {sale_month}")
    try:
        year, month = int(parts[0]), int(parts[1])
    except ValueError:
        raise ValueError(f"Invalid sale month: {sale_month}") from None
    return month_bounds(year, month)


def _row_to_entry(headers: List[str], row: List[str]) -> Optional[NormalizedRow]:
    amount = parse_amount(cell(row, find_column(headers, "earnings")))
    if amount == 0:
        return None

    sale_month = require(cell(row, find_column(headers, "sale month")), "sale month")
    store = require(cell(row, find_column(headers, "store")), "store")
    title = cell(row, find_column(headers, "title")) or UNKNOWN_TRACK

    period_start, period_end = _parse_sale_month(sale_month)

    return NormalizedRow(
        source_type=map_source_type(store),
        amount=amount,
        period_start=period_start,
        period_end=period_end,
        notes=f"{store} - {title}",
        raw_data={"store": store, "title": title, "saleMonth": sale_month},
    )


def parse(content: str) -> ParseResult:
    return parse_rows(content, PARSER_ID, PARSER_NAME, _row_to_entry)


DISTROKID = ParserDescriptor(id=PARSER_ID, name=PARSER_NAME, can_parse=can_parse, parse=parse)
