"""DTO for Treasury entries"""

import enum
from datetime import datetime
from decimal import Decimal

from pydantic import field_validator, model_validator

from retail_ledger.models.treasury_entry import EntryDirection, EntryType, ReferenceType
from retail_ledger.schemas.base import (
    BaseFilterSchema,
    BaseReadSchema,
    BaseSchema,
    BaseUpdateSchema,
    CurrencyDecimal,
)


class ReferenceSchema(BaseSchema):
    """Tagged pointer to the business object behind an entry"""

    kind: ReferenceType
    id: int | None = None


class TreasuryEntrySchema(BaseReadSchema):
    treasury_id: int
    entry_type: EntryType
    direction: EntryDirection
    amount: CurrencyDecimal
    balance_before: CurrencyDecimal
    balance_after: CurrencyDecimal
    reference_type: ReferenceType | None = None
    reference_id: int | None = None
    payment_method_id: int | None = None
    idempotency_key: str | None = None
    entry_date: datetime
    meta: dict | None = None


class PostedEntrySchema(BaseSchema):
    entry: TreasuryEntrySchema
    idempotent: bool


class TransferResultSchema(BaseSchema):
    out_entry: TreasuryEntrySchema
    in_entry: TreasuryEntrySchema


class RollbackResultSchema(BaseSchema):
    count: int


class ManualTransactionType(enum.Enum):
    IN = "IN"
    OUT = "OUT"
    TRANSFER = "TRANSFER"


# entry types an operator may post by hand; business types come from their services
MANUAL_ENTRY_TYPES = frozenset(
    {
        EntryType.MANUAL_IN,
        EntryType.MANUAL_OUT,
        EntryType.ADJUSTMENT_IN,
        EntryType.ADJUSTMENT_OUT,
        EntryType.DEPOSIT_REFUND,
        EntryType.EXPENSE_PAYMENT,
        EntryType.PURCHASE_PAYMENT,
        EntryType.SUPPLIER_PAYMENT,
    }
)


class TreasuryTransactionCreateSchema(BaseUpdateSchema):
    transaction_type: ManualTransactionType
    amount: Decimal
    treasury_id: int | None = None
    source_treasury_id: int | None = None
    target_treasury_id: int | None = None
    entry_type: EntryType | None = None
    payment_method_id: int | None = None
    entry_date: datetime | None = None
    idempotency_key: str | None = None
    allow_negative: bool = False

    @field_validator("amount")
    def amount_must_be_positive(cls, v):
        if v <= 0:
            raise ValueError("Amount must be positive")
        return v

    @model_validator(mode="after")
    def check_transaction_shape(self):
        if self.transaction_type == ManualTransactionType.TRANSFER:
            if self.source_treasury_id is None or self.target_treasury_id is None:
                raise ValueError("Transfer requires source and target treasuries")
        elif self.entry_type is not None and self.entry_type not in MANUAL_ENTRY_TYPES:
            raise ValueError(f"Entry type {self.entry_type.value} can not be posted manually")
        return self


class TreasuryEntryFiltersSchema(BaseFilterSchema):
    treasury_id: int | None = None
    direction: EntryDirection | None = None
    entry_type: EntryType | None = None
    reference_type: ReferenceType | None = None
    reference_id: int | None = None
    from_date: datetime | None = None
    to_date: datetime | None = None
    search: str | None = None


class EntriesSummarySchema(BaseSchema):
    total_in: CurrencyDecimal
    total_out: CurrencyDecimal
    net: CurrencyDecimal


class TreasuryEntryPageSchema(BaseSchema):
    items: list[TreasuryEntrySchema]
    total: int
    skip: int
    limit: int
    summary: EntriesSummarySchema


class ManualTransactionResultSchema(BaseSchema):
    entries: list[TreasuryEntrySchema]
    idempotent: bool


class TransferCreateSchema(BaseUpdateSchema):
    source_treasury_id: int
    target_treasury_id: int
    amount: Decimal
    entry_date: datetime | None = None

    @field_validator("amount")
    def amount_must_be_positive(cls, v):
        if v <= 0:
            raise ValueError("Amount must be positive")
        return v
