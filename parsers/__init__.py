"""
Source file parsers module.
"""

from parsers.csv_parser import (
    parse_csv_text,
    detect_delimiter,
    CsvParseResult,
)

__all__ = [
    "parse_csv_text",
    "detect_delimiter",
    "CsvParseResult",
]
