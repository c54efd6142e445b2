"""DTO for Customer payments"""

from datetime import datetime
from decimal import Decimal

from pydantic import field_validator

from retail_ledger.models.payment_allocation import AllocationSource
from retail_ledger.schemas.allocation import PaymentAllocationSchema
from retail_ledger.schemas.base import (
    BaseFilterSchema,
    BaseReadSchema,
    BaseUpdateSchema,
    CurrencyDecimal,
)
from retail_ledger.schemas.split import SplitRowInputSchema


class CustomerPaymentSchema(BaseReadSchema):
    customer_id: int
    amount: CurrencyDecimal
    payment_date: datetime
    source_type: AllocationSource
    treasury_id: int | None = None
    payment_method_id: int | None = None
    idempotency_key: str | None = None
    allocations: list[PaymentAllocationSchema] = []


class CustomerPaymentCreateSchema(BaseUpdateSchema):
    customer_id: int
    amount: Decimal
    payments: list[SplitRowInputSchema] = []
    payment_method: int | str | None = None
    source_type: AllocationSource = AllocationSource.CUSTOMER_PAYMENT
    treasury_id: int | None = None
    payment_date: datetime | None = None
    # apply to this invoice first instead of the oldest one
    sale_id: int | None = None
    idempotency_key: str | None = None

    @field_validator("amount")
    def amount_must_be_positive(cls, v):
        if v <= 0:
            raise ValueError("Amount must be positive")
        return v


class CustomerPaymentFiltersSchema(BaseFilterSchema):
    customer_id: int | None = None
    source_type: AllocationSource | None = None
