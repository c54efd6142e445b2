"""DTO for Customer"""

from datetime import datetime

from pydantic import field_validator

from retail_ledger.schemas.base import (
    BaseFilterSchema,
    BaseReadSchema,
    BaseSchema,
    BaseUpdateSchema,
    CurrencyDecimal,
)


class CustomerSchema(BaseReadSchema):
    name: str
    phone: str | None = None
    balance: CurrencyDecimal
    first_activity_date: datetime | None = None
    last_payment_date: datetime | None = None
    financials_updated_at: datetime | None = None
    modified_at: datetime | None = None


class CustomerCreateSchema(BaseUpdateSchema):
    name: str
    phone: str | None = None

    @field_validator("name")
    def name_must_not_be_blank(cls, v):
        if not v.strip():
            raise ValueError("Name must not be blank")
        return v.strip()


class CustomerUpdateSchema(BaseUpdateSchema):
    name: str | None = None
    phone: str | None = None


class CustomerFiltersSchema(BaseFilterSchema):
    name: str | None = None
    phone: str | None = None
    has_debt: bool | None = None


class CustomerRebuildSchema(BaseSchema):
    customer_ids: list[int]


class CustomerRebuildAllSchema(BaseSchema):
    batch_size: int = 200
    start_after_id: int = 0

    @field_validator("batch_size")
    def batch_size_must_be_positive(cls, v):
        if v <= 0:
            raise ValueError("Batch size must be positive")
        return v


class RebuildResultSchema(BaseSchema):
    processed: int
    batches: int
    last_id: int
    changed: int
