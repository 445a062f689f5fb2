"""
CSV parser for supplier product files.

Detects the delimiter from the header line, reads rows positionally and
drops rows whose values are all blank.
"""

from dataclasses import dataclass, field
from io import StringIO
from typing import Optional
import structlog

import pandas as pd

from exceptions import CSVParseError

logger = structlog.get_logger(__name__)

# Order matters: ties resolve to the earliest candidate
DELIMITER_CANDIDATES = (",", ";", "\t", "|")


@dataclass
class CsvParseResult:
    """Result of parsing a CSV payload."""
    headers: list[str] = field(default_factory=list)
    records: list[dict[str, str]] = field(default_factory=list)
    skipped_count: int = 0
    delimiter: str = ","
    # File line (1-based) each record started on, parallel to records
    line_numbers: list[int] = field(default_factory=list)

    @property
    def has_data(self) -> bool:
        """True if any record was parsed."""
        return len(self.records) > 0

    def to_dict(self) -> dict:
        """Convert to dictionary for API response."""
        return {
            "headers": self.headers,
            "records": self.records,
            "skipped_count": self.skipped_count,
            "delimiter": self.delimiter,
        }


def detect_delimiter(header_line: str) -> str:
    """
    Pick the candidate delimiter occurring most often in the header line.

    - "a;b;c" → ";"
    - "a,b;c,d" → ","
    - "name" → ","
    """
    best = DELIMITER_CANDIDATES[0]
    best_count = 0

    for candidate in DELIMITER_CANDIDATES:
        count = header_line.count(candidate)
        if count > best_count:
            best, best_count = candidate, count

    return best


def _clean(value: Optional[str]) -> str:
    if value is None:
        return ""
    return str(value).replace('"', "").strip()


def _read_rows(text: str, delimiter: str, width: Optional[int] = None) -> pd.DataFrame:
    """Read delimited lines as strings, truncating rows wider than `width`."""
    options = dict(
        sep=delimiter,
        header=None,
        dtype=str,
        keep_default_na=False,
        engine="python",
        index_col=False,
    )
    if width is not None:
        options["names"] = list(range(width))
        options["on_bad_lines"] = lambda bad_line: bad_line[:width]

    return pd.read_csv(StringIO(text), **options).fillna("")


def parse_csv_text(text: str) -> CsvParseResult:
    """
    Parse a CSV payload into header-keyed records.

    Args:
        text: Raw CSV text (any of , ; tab | as delimiter)

    Returns:
        CsvParseResult with headers, records and the number of blank rows skipped

    Raises:
        CSVParseError: If the payload is empty or unreadable
    """
    if text is None or not text.strip():
        raise CSVParseError(message="CSV payload is empty")

    numbered = [
        (number, line)
        for number, line in enumerate(text.lstrip("\ufeff").splitlines(), start=1)
        if line.strip()
    ]
    lines = [line for _, line in numbered]
    body_line_numbers = [number for number, _ in numbered[1:]]
    delimiter = detect_delimiter(lines[0])

    logger.info("parsing_csv", lines=len(lines), delimiter=repr(delimiter))

    try:
        header_frame = _read_rows(lines[0], delimiter)
        headers = [_clean(h) for h in header_frame.iloc[0].tolist()]

        body = lines[1:]
        rows = []
        if body:
            frame = _read_rows("\n".join(body), delimiter, width=len(headers))
            rows = frame.values.tolist()
    except Exception as e:
        logger.error("csv_read_failed", error=str(e))
        raise CSVParseError(
            message="Failed to read CSV payload",
            details={"original_error": str(e)}
        )

    if not any(headers):
        raise CSVParseError(
            message="CSV header row has no column names",
            details={"header": lines[0]}
        )

    result = CsvParseResult(headers=headers, delimiter=delimiter)

    # Quoted line breaks merge lines into one row; number by position then
    rows_match_lines = len(rows) == len(body_line_numbers)

    for index, row in enumerate(rows):
        values = [_clean(v) for v in row]
        if not any(values):
            result.skipped_count += 1
            continue
        # Short rows were padded by pandas; later duplicate headers win
        result.records.append(dict(zip(headers, values)))
        result.line_numbers.append(body_line_numbers[index] if rows_match_lines else index + 2)

    logger.info(
        "csv_parsed",
        headers=len(headers),
        records=len(result.records),
        skipped=result.skipped_count
    )

    return result
