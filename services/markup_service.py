"""
Markup rule engine.

Evaluates user-defined pricing conditions against a canonical record and
applies at most one markup. Evaluation never raises: a missing field or an
unparseable number simply does not match.

Selection when conditions overlap:
    between conditions are re-ordered by range width (narrowest first) inside
    the slots they occupy; other conditions keep their position. The first
    condition that individually holds is the one applied.
"""

import re
from decimal import Decimal
from typing import Any, Optional
import structlog

from models.catalog import ReconciliationRecord
from models.markup import (
    ConditionOperator,
    MarkupCondition,
    MarkupConfig,
    MarkupType,
    MatchMode,
)
from utils.record_paths import MISSING, get_path
from utils.text_utils import fold_text, parse_number, round_money

logger = structlog.get_logger(__name__)

_RANGE = re.compile(r"^\s*(-?\d+(?:\.\d+)?)\s*-\s*(-?\d+(?:\.\d+)?)\s*$")

INFINITE_WIDTH = Decimal("Infinity")

NUMERIC_OPERATORS = {ConditionOperator.GT, ConditionOperator.LT, ConditionOperator.BETWEEN}

# Record fields read from the canonical record before falling back to attributes
CANONICAL_FIELDS = {
    "price": ("variant", "price"),
    "compare_at_price": ("variant", "compare_at_price"),
    "compareatprice": ("variant", "compare_at_price"),
    "sku": ("variant", "sku"),
    "barcode": ("variant", "barcode"),
    "inventory_quantity": ("variant", "inventory_quantity"),
    "title": ("record", "title"),
    "vendor": ("record", "vendor"),
    "description": ("record", "description"),
    "body_html": ("record", "description"),
    "type": ("record", "product_type"),
    "product_type": ("record", "product_type"),
}


# ===================
# FIELD RESOLUTION
# ===================

def resolve_field_value(record: ReconciliationRecord, field: str) -> Any:
    """
    Read the value a condition compares against.

    price prefers the variant-level price over a product-level attribute;
    tags are returned as a list. Unknown fields read the source attributes
    (dotted paths allowed).

    Returns:
        The value, or MISSING
    """
    name = field.strip()
    lowered = name.lower()

    if lowered == "tags":
        return record.tags

    target = CANONICAL_FIELDS.get(lowered)
    if target:
        owner = record.variant if target[0] == "variant" else record
        value = getattr(owner, target[1])
        if value is not None:
            return value

    return get_path(record.attributes, name)


def parse_range(value: str) -> Optional[tuple[Decimal, Decimal]]:
    """
    Parse "min-max".

    - "100-200" → (100, 200)
    - "50-0" → (50, 0), 0 meaning unbounded above
    """
    match = _RANGE.match(value or "")
    if not match:
        return None
    return Decimal(match.group(1)), Decimal(match.group(2))


def range_width(condition: MarkupCondition) -> Decimal:
    bounds = parse_range(condition.value)
    if bounds is None or bounds[1] == 0:
        return INFINITE_WIDTH
    return bounds[1] - bounds[0]


# ===================
# CONDITION EVALUATION
# ===================

def check_condition(record: ReconciliationRecord, condition: MarkupCondition) -> bool:
    """True when `record.field operator value` holds."""
    value = resolve_field_value(record, condition.field)
    if value is MISSING or value is None:
        return False

    if condition.operator in NUMERIC_OPERATORS:
        return _check_numeric(value, condition)

    expected = fold_text(condition.value)

    if isinstance(value, list):
        return _check_membership([fold_text(v) for v in value], condition.operator, expected)

    return _check_text(fold_text(value), condition.operator, expected)


def _check_text(actual: str, operator: ConditionOperator, expected: str) -> bool:
    if operator == ConditionOperator.EQ:
        return actual == expected
    if operator == ConditionOperator.NEQ:
        return actual != expected
    if operator == ConditionOperator.STARTS:
        return actual.startswith(expected)
    if operator == ConditionOperator.ENDS:
        return actual.endswith(expected)
    if operator == ConditionOperator.CONTAINS:
        return expected in actual
    if operator == ConditionOperator.NCONTAINS:
        return expected not in actual
    return False


def _check_membership(items: list[str], operator: ConditionOperator, expected: str) -> bool:
    """Tag conditions test each tag, never a joined string."""
    if operator == ConditionOperator.NEQ:
        return expected not in items
    if operator == ConditionOperator.NCONTAINS:
        return not any(expected in item for item in items)
    return any(_check_text(item, operator, expected) for item in items)


def _check_numeric(value: Any, condition: MarkupCondition) -> bool:
    if isinstance(value, list):
        return False

    number = parse_number(value)
    if number is None:
        return False

    if condition.operator == ConditionOperator.BETWEEN:
        bounds = parse_range(condition.value)
        if bounds is None:
            return False
        low, high = bounds
        return number >= low and (high == 0 or number <= high)

    threshold = parse_number(condition.value)
    if threshold is None:
        return False

    if condition.operator == ConditionOperator.GT:
        return number > threshold
    return number < threshold


def conditions_match(record: ReconciliationRecord, config: MarkupConfig) -> bool:
    """Aggregate check: every condition (ALL) or at least one (ANY)."""
    if config.is_empty:
        return False
    results = (check_condition(record, c) for c in config.conditions)
    if config.match_mode == MatchMode.ALL:
        return all(results)
    return any(results)


def order_by_specificity(conditions: list[MarkupCondition]) -> list[MarkupCondition]:
    """
    Narrowest between ranges first, within the slots between conditions hold.

    Non-between conditions keep their original position; the sort is stable.
    """
    slots = [i for i, c in enumerate(conditions) if c.operator == ConditionOperator.BETWEEN]
    ranked = sorted((conditions[i] for i in slots), key=range_width)

    ordered = list(conditions)
    for slot, condition in zip(slots, ranked):
        ordered[slot] = condition
    return ordered


def select_applied_condition(
    record: ReconciliationRecord,
    config: MarkupConfig
) -> Optional[MarkupCondition]:
    """The single condition whose markup applies, or None."""
    if not conditions_match(record, config):
        return None

    for condition in order_by_specificity(config.conditions):
        if check_condition(record, condition):
            return condition

    logger.warning(
        "markup_condition_not_revalidated",
        record=record.label,
        match_mode=config.match_mode.value
    )
    return None


# ===================
# APPLY
# ===================

def calculate_price(price: Decimal, condition: MarkupCondition) -> Decimal:
    """
    percent: price * (1 + amount / 100)
    fixed:   price + amount
    """
    if condition.markup_type == MarkupType.PERCENT:
        raw = price * (Decimal("1") + condition.markup_amount / Decimal("100"))
    else:
        raw = price + condition.markup_amount
    return round_money(raw)


def apply_markup(record: ReconciliationRecord, config: MarkupConfig) -> ReconciliationRecord:
    """
    Apply the selected markup to a record.

    Both price and compare_at_price are set to the marked-up price. The input
    record is never modified; an unmatched record is returned as-is.

    Args:
        record: Canonical record
        config: Markup conditions and match mode

    Returns:
        New record with markup audit fields set, or the input record
    """
    price = record.variant.price
    if price is None:
        return record

    condition = select_applied_condition(record, config)
    if condition is None:
        return record

    new_price = calculate_price(price, condition)

    logger.debug(
        "markup_applied",
        record=record.label,
        field=condition.field,
        markup_type=condition.markup_type.value,
        old_price=str(price),
        new_price=str(new_price)
    )

    variant = record.variant.model_copy(update={
        "price": new_price,
        "compare_at_price": new_price,
    })
    return record.model_copy(update={
        "variant": variant,
        "markup_applied": True,
        "markup_type": condition.markup_type,
        "markup_value": condition.markup_amount,
    })
