"""DTO for payment splits"""

from decimal import Decimal

from pydantic import Field

from retail_ledger.schemas.base import BaseSchema, CurrencyDecimal


class SplitRowInputSchema(BaseSchema):
    """Raw split row as submitted by a client.

    `method` may be a numeric id, a code (CASH) or a display name.
    """

    method: int | str = Field(union_mode="left_to_right")
    amount: Decimal


class SplitRowSchema(BaseSchema):
    index: int
    payment_method_id: int
    amount: CurrencyDecimal
