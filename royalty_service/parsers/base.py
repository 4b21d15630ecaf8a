"""Shared CSV parsing helpers for distributor statement parsers.

Every parser is a ``ParserDescriptor``: a pair of pure functions
``can_parse(content, headers)`` and ``parse(content)``. The helpers here
cover tokenizing, column lookup, amount/date parsing and the per-row loop
that isolates row failures.
"""

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Callable, List, Optional, Sequence

from royalty_service.domain.models import NormalizedRow, ParseMetadata, ParseResult, RowError

logger = logging.getLogger(__name__)

UNKNOWN_TRACK = "Unknown Track"

_CURRENCY_NOISE = re.compile(r"[$€£¥,\s]")


@dataclass(frozen=True)
class ParserDescriptor:
    """Registry entry for one statement format"""

    id: str
    name: str
    can_parse: Callable[[str, List[str]], bool]
    parse: Callable[[str], ParseResult]


def split_line(line: str) -> List[str]:
    """Split one CSV line on commas outside double quotes, trimming each cell"""
    cells: List[str] = []
    current: List[str] = []
    in_quotes = False

    for char in line:
        if char == '"':
            in_quotes = not in_quotes
        elif char == "," and not in_quotes:
            cells.append("".join(current).strip())
            current = []
        else:
            current.append(char)
    cells.append("".join(current).strip())

    return cells


def tokenize(content: str) -> List[List[str]]:
    """Split CSV text into rows of cells, dropping blank lines"""
    return [split_line(line) for line in content.split("\n") if line.strip()]


def normalize_headers(headers: Sequence[str]) -> List[str]:
    return [h.lower().strip() for h in headers]


def find_column(headers: Sequence[str], *needles: str) -> int:
    """Index of the first header containing any needle (case-insensitive), or -1"""
    for idx, header in enumerate(headers):
        lowered = header.lower()
        if any(needle in lowered for needle in needles):
            return idx
    return -1


def cell(row: Sequence[str], idx: int) -> Optional[str]:
    """Cell value, or None when the column is absent or the row is short"""
    if idx < 0 or idx >= len(row):
        return None
    return row[idx]


def require(value: Optional[str], label: str) -> str:
    if value is None or value == "":
        raise ValueError(f"Missing {label}")
    return value


def parse_amount(raw: Optional[str]) -> Decimal:
    """
    Parse a currency string into a Decimal.

    Strips currency symbols ($ € £ ¥), thousands separators and whitespace.
    A parenthesized value is negative: "(12.00)" -> -12.00.

    Raises:
        ValueError: If the value is missing or not a finite number
    """
    if raw is None:
        raise ValueError("Missing amount")

    cleaned = _CURRENCY_NOISE.sub("", raw)
    negative = cleaned.startswith("(") and cleaned.endswith(")")
    if negative:
        cleaned = cleaned[1:-1]

    try:
        amount = Decimal(cleaned)
    except InvalidOperation:
        raise ValueError(f"Invalid amount: {raw}") from None

    if not amount.is_finite():
        raise ValueError(f"Invalid amount: {raw}")

    return -amount if negative else amount


def parse_date(raw: Optional[str]) -> date:
    """
    Parse a date string.

    Tries ISO first (YYYY-MM-DD, optionally with a time part), then
    MM/DD/YYYY and M/D/YYYY.

    Raises:
        ValueError: If no format matches
    """
    if raw is None:
        raise ValueError("Missing date")
    value = raw.strip()

    try:
        return datetime.fromisoformat(value).date()
    except ValueError:
        pass

    parts = value.split("/")
    if len(parts) == 3:
        try:
            month, day, year = (int(p) for p in parts)
            return date(year, month, day)
        except ValueError:
            pass

    raise ValueError(f"Invalid date format: {raw}")


def parse_rows(
    content: str,
    descriptor_id: str,
    descriptor_name: str,
    row_to_entry: Callable[[List[str], List[str]], Optional[NormalizedRow]],
) -> ParseResult:
    """
    Run ``row_to_entry`` over every data row, isolating failures.

    ``row_to_entry(headers, row)`` returns a NormalizedRow, or None for a row
    that should be skipped silently (zero amount). Any exception it raises is
    captured as a RowError and the loop continues.
    """
    rows = tokenize(content)
    headers = rows[0] if rows else []
    data_rows = rows[1:]

    entries: List[NormalizedRow] = []
    errors: List[RowError] = []
    skipped = 0

    for i, row in enumerate(data_rows):
        try:
            entry = row_to_entry(headers, row)
        except Exception as e:
            # +2: header is line 1 and enumerate is 0-based
            errors.append(RowError(row=i + 2, error=str(e) or e.__class__.__name__, raw_row=list(row)))
            logger.debug("Row rejected", extra={"parser": descriptor_id, "row": i + 2, "error": str(e)})
            continue

        if entry is None:
            skipped += 1
            continue

        if entry.period_end < entry.period_start:
            errors.append(RowError(row=i + 2, error="Period end precedes period start", raw_row=list(row)))
            continue

        entries.append(entry)

    return ParseResult(
        success=not errors,
        entries=entries,
        errors=errors,
        metadata=ParseMetadata(
            parser=descriptor_id,
            parser_name=descriptor_name,
            total_rows=len(entries) + len(errors),
            successful_rows=len(entries),
            failed_rows=len(errors),
            skipped_rows=skipped,
        ),
    )
