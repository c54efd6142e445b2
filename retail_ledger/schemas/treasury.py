"""DTO for Treasury"""

from datetime import datetime
from decimal import Decimal

from pydantic import field_validator

from retail_ledger.schemas.base import (
    BaseFilterSchema,
    BaseReadSchema,
    BaseSchema,
    BaseUpdateSchema,
    CurrencyDecimal,
)


class TreasurySchema(BaseReadSchema):
    name: str
    code: str
    opening_balance: CurrencyDecimal
    current_balance: CurrencyDecimal
    is_active: bool
    is_default: bool
    is_deleted: bool
    deleted_at: datetime | None = None
    modified_at: datetime | None = None


class TreasuryCreateSchema(BaseUpdateSchema):
    name: str
    code: str | None = None
    opening_balance: Decimal = Decimal("0.00")
    is_active: bool | None = True

    @field_validator("opening_balance")
    def opening_balance_must_not_be_negative(cls, v):
        if v < 0:
            raise ValueError("Opening balance must not be negative")
        return v


class TreasuryUpdateSchema(BaseUpdateSchema):
    name: str | None = None
    code: str | None = None
    is_active: bool | None = None


class TreasuryFiltersSchema(BaseFilterSchema):
    name: str | None = None
    code: str | None = None
    is_active: bool | None = None
    include_deleted: bool = False


class TreasuryReconciliationSchema(BaseSchema):
    treasury_id: int
    cached: CurrencyDecimal
    computed: CurrencyDecimal
    drift: CurrencyDecimal
    fixed: bool
