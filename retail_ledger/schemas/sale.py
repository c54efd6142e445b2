"""DTO for Sale"""

from datetime import datetime
from decimal import Decimal

from pydantic import field_validator, model_validator

from retail_ledger.schemas.base import (
    BaseFilterSchema,
    BaseReadSchema,
    BaseUpdateSchema,
    CurrencyDecimal,
)
from retail_ledger.schemas.split import SplitRowInputSchema


class SaleSchema(BaseReadSchema):
    customer_id: int | None = None
    invoice_date: datetime
    total: CurrencyDecimal
    paid_amount: CurrencyDecimal
    remaining_amount: CurrencyDecimal
    treasury_id: int | None = None
    idempotency_key: str | None = None
    modified_at: datetime | None = None


class SaleCreateSchema(BaseUpdateSchema):
    customer_id: int | None = None
    total: Decimal
    paid_amount: Decimal = Decimal("0.00")
    # optional multi-method breakdown of paid_amount
    payments: list[SplitRowInputSchema] = []
    payment_method: int | str | None = None
    treasury_id: int | None = None
    invoice_date: datetime | None = None
    idempotency_key: str | None = None

    @field_validator("total")
    def total_must_be_positive(cls, v):
        if v <= 0:
            raise ValueError("Total must be positive")
        return v

    @field_validator("paid_amount")
    def paid_amount_must_not_be_negative(cls, v):
        if v < 0:
            raise ValueError("Paid amount must not be negative")
        return v

    @model_validator(mode="after")
    def check_paid_amount(self):
        if self.paid_amount > self.total:
            raise ValueError("Paid amount can not exceed the total")
        if self.customer_id is None and self.paid_amount != self.total:
            raise ValueError("Walk-in sales must be paid in full")
        return self


class SaleUpdateSchema(BaseUpdateSchema):
    customer_id: int | None = None
    total: Decimal | None = None
    paid_amount: Decimal | None = None
    payments: list[SplitRowInputSchema] | None = None
    payment_method: int | str | None = None
    treasury_id: int | None = None
    invoice_date: datetime | None = None


class SaleFiltersSchema(BaseFilterSchema):
    customer_id: int | None = None
    date_from: datetime | None = None
    date_to: datetime | None = None
