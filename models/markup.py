"""
Markup rule schemas.

Operators and markup types accept the legacy spellings stored on older
supplier connections and normalize them on input.
"""

import re
from pydantic import Field, field_validator, model_validator
from typing import Any
from enum import Enum
from decimal import Decimal

from models.base import BaseSchema


class ConditionOperator(str, Enum):
    """Comparison applied between a record field and a condition value."""
    EQ = "eq"
    NEQ = "neq"
    STARTS = "starts"
    ENDS = "ends"
    CONTAINS = "contains"
    NCONTAINS = "ncontains"
    GT = "gt"
    LT = "lt"
    BETWEEN = "between"


OPERATOR_ALIASES = {
    "equals": "eq",
    "not_equals": "neq",
    "starts_with": "starts",
    "ends_with": "ends",
    "not_contains": "ncontains",
    "greater_than": "gt",
    "less_than": "lt",
    "range": "between",
}

# Legacy connections stored numeric ranges under "equals"
LEGACY_RANGE_PATTERN = re.compile(r"^\s*\d+(\.\d+)?\s*-\s*\d+(\.\d+)?\s*$")


class MarkupType(str, Enum):
    """How the markup amount is applied to the price."""
    PERCENT = "percent"
    FIXED = "fixed"


class MatchMode(str, Enum):
    """How conditions combine."""
    ALL = "all"
    ANY = "any"


class MarkupCondition(BaseSchema):
    """A single pricing rule: when `field operator value`, apply the markup."""

    field: str = Field(
        ...,
        min_length=1,
        description="Record field the condition reads (price, vendor, tags, ...)"
    )
    operator: ConditionOperator = Field(
        ...,
        description="Comparison operator"
    )
    value: str = Field(
        ...,
        description="Comparison value; 'min-max' for between"
    )
    markup_type: MarkupType = Field(
        ...,
        description="percent or fixed"
    )
    markup_amount: Decimal = Field(
        ...,
        description="Percentage points or fixed currency amount"
    )

    @model_validator(mode="before")
    @classmethod
    def legacy_equals_range(cls, data: Any) -> Any:
        """Treat 'equals' with a 'min-max' value as between."""
        if not isinstance(data, dict):
            return data
        operator = data.get("operator")
        value = data.get("value")
        if (
            isinstance(operator, str)
            and operator.strip().lower() == "equals"
            and isinstance(value, str)
            and LEGACY_RANGE_PATTERN.match(value)
        ):
            return {**data, "operator": ConditionOperator.BETWEEN.value}
        return data

    @field_validator("operator", mode="before")
    @classmethod
    def normalize_operator(cls, v: Any) -> Any:
        """Map legacy operator names onto the canonical set."""
        if isinstance(v, str):
            key = v.strip().lower()
            return OPERATOR_ALIASES.get(key, key)
        return v

    @field_validator("markup_type", mode="before")
    @classmethod
    def normalize_markup_type(cls, v: Any) -> Any:
        if isinstance(v, str):
            key = v.strip().lower()
            return "percent" if key == "percentage" else key
        return v

    @field_validator("value", mode="before")
    @classmethod
    def coerce_value(cls, v: Any) -> Any:
        """Numeric values arrive unquoted from JSON."""
        if isinstance(v, (int, float, Decimal)) and not isinstance(v, bool):
            return str(v)
        return v


class MarkupConfig(BaseSchema):
    """Ordered markup conditions plus how they combine."""

    conditions: list[MarkupCondition] = Field(
        default_factory=list,
        description="Conditions in user-defined order"
    )
    match_mode: MatchMode = Field(
        default=MatchMode.ALL,
        description="all = every condition must hold, any = at least one"
    )

    @field_validator("match_mode", mode="before")
    @classmethod
    def lowercase_match_mode(cls, v: Any) -> Any:
        return v.strip().lower() if isinstance(v, str) else v

    @property
    def is_empty(self) -> bool:
        return not self.conditions
