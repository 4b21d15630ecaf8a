from royalty_service.parsers.base import ParserDescriptor
from royalty_service.parsers.registry import PARSERS, detect_parser, extract_headers, parse_csv

__all__ = ["PARSERS", "ParserDescriptor", "detect_parser", "extract_headers", "parse_csv"]
