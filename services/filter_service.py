"""
Attribute filtering of source records.

Two selection rules exist on purpose:
    filter_strict: AND across attributes, exact values (live preview counts)
    select_any:    OR across selected tokens, case-insensitive (final export)

Keys containing "price" compare numerically within PRICE_TOLERANCE.
"""

from decimal import Decimal
from typing import Any, Callable, Iterable, Optional, TypeVar
import structlog

from utils.record_paths import MISSING, get_path
from utils.text_utils import fold_text, parse_money

logger = structlog.get_logger(__name__)

T = TypeVar("T")

PRICE_TOLERANCE = Decimal("0.01")


def is_price_key(key: str) -> bool:
    return "price" in key.lower()


def prices_match(record_value: Any, allowed_value: Any) -> bool:
    left = parse_money(record_value)
    right = parse_money(allowed_value)
    if left is None or right is None:
        return False
    return abs(left - right) <= PRICE_TOLERANCE


def _cell(value: Any) -> str:
    if isinstance(value, (dict, list)):
        return ""
    return str(value)


def _view(record: Any, key: Optional[Callable[[Any], dict]]) -> dict:
    return key(record) if key else record


def filter_strict(
    records: Iterable[T],
    attribute_filter: dict[str, Iterable[str]],
    key: Optional[Callable[[T], dict]] = None
) -> list[T]:
    """
    Keep records matching every filtered attribute.

    Args:
        records: Records (or anything `key` turns into a record view)
        attribute_filter: Attribute key → allowed values; empty = keep all
        key: Optional function returning the dict to filter on

    Returns:
        Matching records, original order
    """
    active = {k: set(v) for k, v in attribute_filter.items() if v}
    if not active:
        return list(records)

    kept = []
    for record in records:
        view = _view(record, key)
        if all(_strict_match(view, attr, allowed) for attr, allowed in active.items()):
            kept.append(record)
    return kept


def _strict_match(view: dict, attr: str, allowed: set[str]) -> bool:
    value = get_path(view, attr)
    if value is MISSING or value is None:
        return False
    if is_price_key(attr):
        return any(prices_match(value, candidate) for candidate in allowed)
    return _cell(value) in allowed


def select_any(
    records: Iterable[T],
    tokens: list[tuple[str, str]],
    key: Optional[Callable[[T], dict]] = None
) -> list[T]:
    """
    Keep records matching at least one selected (key, value) token.

    Values compare trimmed and case-insensitive. No tokens = keep all.
    """
    records = list(records)
    if not tokens:
        return records

    grouped: dict[str, set[str]] = {}
    for attr, value in tokens:
        grouped.setdefault(attr, set()).add(fold_text(value))

    kept = []
    for record in records:
        view = _view(record, key)
        if any(_any_match(view, attr, allowed) for attr, allowed in grouped.items()):
            kept.append(record)

    logger.info("records_selected", total=len(records), selected=len(kept), keys=len(grouped))
    return kept


def _any_match(view: dict, attr: str, allowed: set[str]) -> bool:
    value = get_path(view, attr)
    if value is MISSING or value is None:
        return False
    if is_price_key(attr) and any(prices_match(value, candidate) for candidate in allowed):
        return True
    return fold_text(_cell(value)) in allowed
