"""Format detection and parse orchestration"""

from typing import List, Optional

from royalty_service.domain.exceptions import UnsupportedFormatError
from royalty_service.domain.models import ParseResult
from royalty_service.parsers.base import ParserDescriptor
from royalty_service.parsers.cdbaby import CDBABY
from royalty_service.parsers.distrokid import DISTROKID
from royalty_service.parsers.template import TEMPLATE
from royalty_service.parsers.tunecore import TUNECORE

# Registry order is the tie-break: when several predicates accept the same
# header row, the earliest entry wins.
PARSERS: List[ParserDescriptor] = [DISTROKID, TUNECORE, CDBABY, TEMPLATE]


def extract_headers(content: str) -> List[str]:
    """Header names from the first line: split on commas, trimmed, quotes removed"""
    first_line = content.split("\n", 1)[0].lstrip("\ufeff")
    return [h.strip().replace('"', "") for h in first_line.split(",")]


def detect_parser(content: str, parsers: Optional[List[ParserDescriptor]] = None) -> Optional[ParserDescriptor]:
    """Return the first registered parser that accepts the header row, or None"""
    headers = extract_headers(content)
    for parser in parsers if parsers is not None else PARSERS:
        if parser.can_parse(content, headers):
            return parser
    return None


def parse_csv(content: str) -> ParseResult:
    """
    Detect the statement format and parse it.

    Raises:
        UnsupportedFormatError: If no parser recognises the header row
    """
    parser = detect_parser(content)
    if parser is None:
        raise UnsupportedFormatError("Unable to detect CSV format. No compatible parser found.")
    return parser.parse(content)
