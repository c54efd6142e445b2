"""DTO for Sales returns"""

from datetime import datetime
from decimal import Decimal

from pydantic import field_validator, model_validator

from retail_ledger.schemas.base import BaseReadSchema, BaseUpdateSchema, CurrencyDecimal
from retail_ledger.schemas.split import SplitRowInputSchema


class SalesReturnSchema(BaseReadSchema):
    sale_id: int
    customer_id: int | None = None
    total: CurrencyDecimal
    refund_amount: CurrencyDecimal
    return_date: datetime
    treasury_id: int | None = None


class SalesReturnCreateSchema(BaseUpdateSchema):
    sale_id: int
    total: Decimal
    refund_amount: Decimal = Decimal("0.00")
    payments: list[SplitRowInputSchema] = []
    payment_method: int | str | None = None
    treasury_id: int | None = None
    return_date: datetime | None = None

    @field_validator("total")
    def total_must_be_positive(cls, v):
        if v <= 0:
            raise ValueError("Total must be positive")
        return v

    @model_validator(mode="after")
    def check_refund(self):
        if self.refund_amount < 0 or self.refund_amount > self.total:
            raise ValueError("Refund must be between zero and the returned total")
        return self
