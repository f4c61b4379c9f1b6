"""
Cart schemas for line item validation, durable rows and pricing summaries.

This module defines Pydantic schemas used as the rule-set for validating line
items before they enter the cart, the shape of durable rows handed back during
hydration, and the raw (un-formatted) cart pricing summary.
"""

from decimal import Decimal, InvalidOperation
from typing import Any, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    StrictFloat,
    StrictInt,
    StrictStr,
    field_validator,
    model_validator,
)

# Reserved option names
DISCOUNT_OPTION = "discount"
TOTAL_STOCK_OPTION = "totalStock"

OptionValue = Union[StrictBool, StrictInt, StrictFloat, StrictStr]


def _coerce_product_id(v: Any) -> Any:
    if isinstance(v, int) and not isinstance(v, bool):
        return str(v)
    return v


class LineItemRules(BaseModel):
    """Rule-set a line item must satisfy before it is stored."""

    product_id: str = Field(
        ...,
        description="External product reference",
        min_length=1,
    )
    name: str = Field(
        ...,
        description="Display label",
        min_length=1,
    )
    unit_price: Decimal = Field(
        ...,
        description="Unit price without tax",
        ge=0,
    )
    quantity: Decimal = Field(
        ...,
        description="Quantity of units",
        ge=1,
    )
    options: dict[str, OptionValue] = Field(
        default_factory=dict,
        description="Option set (variant choices, discount, stock ceiling)",
    )

    @field_validator("product_id", mode="before")
    @classmethod
    def coerce_product_id(cls, v: Any) -> Any:
        """Accept integer product references."""
        return _coerce_product_id(v)

    @field_validator("options")
    @classmethod
    def validate_reserved_options(
        cls, v: dict[str, OptionValue]
    ) -> dict[str, OptionValue]:
        """Validate reserved numeric options."""
        for key in (DISCOUNT_OPTION, TOTAL_STOCK_OPTION):
            if key not in v:
                continue
            value = v[key]
            if isinstance(value, bool):
                raise ValueError(f"Option '{key}' must be numeric")
            try:
                amount = Decimal(str(value))
            except InvalidOperation:
                raise ValueError(f"Option '{key}' must be numeric") from None
            if not amount.is_finite() or amount < 0:
                raise ValueError(f"Option '{key}' cannot be negative")
            if key == TOTAL_STOCK_OPTION and amount < 1:
                raise ValueError(f"Option '{key}' must be at least 1")
        return v


class DurableCartRow(BaseModel):
    """Schema for a durable cart row handed back during hydration."""

    model_config = ConfigDict(from_attributes=True)

    row_id: Optional[str] = Field(
        None,
        description="Stored line identity (informational, recomputed on load)",
    )
    product_id: str = Field(
        ...,
        description="External product reference",
    )
    name: str = Field(
        ...,
        description="Display label",
    )
    price: Decimal = Field(
        ...,
        description="Unit price without tax",
    )
    quantity: Decimal = Field(
        ...,
        description="Line quantity",
    )
    options: dict[str, Any] = Field(
        default_factory=dict,
        description="Option set",
    )

    @field_validator("product_id", mode="before")
    @classmethod
    def coerce_product_id(cls, v: Any) -> Any:
        """Accept integer product references."""
        return _coerce_product_id(v)

    @field_validator("options", mode="before")
    @classmethod
    def default_options(cls, v: Any) -> Any:
        """Treat a missing option column as an empty option set."""
        return v or {}


class CartSummary(BaseModel):
    """Schema for raw cart pricing figures."""

    subtotal: Decimal = Field(
        ...,
        description="Sum of line subtotals (quantity * unit price)",
        ge=0,
    )
    tax: Decimal = Field(
        ...,
        description="Sum of line taxes",
        ge=0,
    )
    discount: Decimal = Field(
        default=Decimal("0"),
        description="Sum of flat per-line discounts",
        ge=0,
    )
    total: Decimal = Field(
        ...,
        description="Sum of line totals minus discounts",
    )
    count: Decimal = Field(
        ...,
        description="Sum of quantities",
        ge=0,
    )
    lines: int = Field(
        ...,
        description="Number of distinct line items",
        ge=0,
    )

    @model_validator(mode="after")
    def validate_total(self) -> "CartSummary":
        """Validate the total matches subtotal + tax - discount."""
        expected_total = self.subtotal + self.tax - self.discount
        if abs(self.total - expected_total) > Decimal("0.01"):
            raise ValueError(
                f"Total mismatch: expected {expected_total}, got {self.total}"
            )
        return self

    model_config = {
        "json_schema_extra": {
            "example": {
                "subtotal": "200.00",
                "tax": "20.00",
                "discount": "5.00",
                "total": "215.00",
                "count": "4",
                "lines": 1,
            }
        }
    }
