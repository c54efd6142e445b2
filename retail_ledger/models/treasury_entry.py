"""Treasury entry model. Immutable, directional ledger row against one treasury."""

import enum
from datetime import datetime
from decimal import Decimal

from retail_ledger.models.base import BaseModel
from retail_ledger.models.payment_method import PaymentMethod
from retail_ledger.models.treasury import Treasury
from sqlalchemy import DECIMAL, JSON, DateTime, Enum, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func


class EntryDirection(enum.Enum):
    IN = "IN"
    OUT = "OUT"


class EntryType(enum.Enum):
    OPENING_BALANCE = "OPENING_BALANCE"
    SALE_INCOME = "SALE_INCOME"
    CUSTOMER_PAYMENT = "CUSTOMER_PAYMENT"
    DEPOSIT_IN = "DEPOSIT_IN"
    DEPOSIT_REFUND = "DEPOSIT_REFUND"
    EXPENSE_PAYMENT = "EXPENSE_PAYMENT"
    PURCHASE_PAYMENT = "PURCHASE_PAYMENT"
    SUPPLIER_PAYMENT = "SUPPLIER_PAYMENT"
    RETURN_REFUND = "RETURN_REFUND"
    MANUAL_IN = "MANUAL_IN"
    MANUAL_OUT = "MANUAL_OUT"
    TRANSFER_IN = "TRANSFER_IN"
    TRANSFER_OUT = "TRANSFER_OUT"
    ADJUSTMENT_IN = "ADJUSTMENT_IN"
    ADJUSTMENT_OUT = "ADJUSTMENT_OUT"

    @property
    def direction(self) -> EntryDirection:
        """Natural direction of money for this entry type."""
        if self in _INCOMING_TYPES:
            return EntryDirection.IN
        return EntryDirection.OUT


_INCOMING_TYPES = frozenset(
    {
        EntryType.OPENING_BALANCE,
        EntryType.SALE_INCOME,
        EntryType.CUSTOMER_PAYMENT,
        EntryType.DEPOSIT_IN,
        EntryType.MANUAL_IN,
        EntryType.TRANSFER_IN,
        EntryType.ADJUSTMENT_IN,
    }
)


class ReferenceType(enum.Enum):
    """Kind of business object that caused a treasury entry."""

    OPENING = "OPENING"
    SALE = "SALE"
    PAYMENT = "PAYMENT"
    DEPOSIT = "DEPOSIT"
    RETURN = "RETURN"
    EXPENSE = "EXPENSE"
    PURCHASE = "PURCHASE"
    SUPPLIER_PAYMENT = "SUPPLIER_PAYMENT"
    TRANSFER = "TRANSFER"
    MANUAL = "MANUAL"


class TreasuryEntry(BaseModel):
    __tablename__ = "treasury_entries"
    __table_args__ = (
        Index("ix_treasury_entries_reference", "reference_type", "reference_id"),
        Index("ix_treasury_entries_treasury_date", "treasury_id", "entry_date"),
    )

    treasury_id: Mapped[int] = mapped_column(
        ForeignKey("treasuries.id"), nullable=False
    )
    treasury: Mapped[Treasury] = relationship(foreign_keys=[treasury_id])

    entry_type: Mapped[EntryType] = mapped_column(Enum(EntryType), nullable=False)
    direction: Mapped[EntryDirection] = mapped_column(
        Enum(EntryDirection), nullable=False
    )
    amount: Mapped[Decimal] = mapped_column(DECIMAL(scale=2), nullable=False)
    # snapshot of the treasury balance around this entry (audit trail)
    balance_before: Mapped[Decimal] = mapped_column(DECIMAL(scale=2), nullable=False)
    balance_after: Mapped[Decimal] = mapped_column(DECIMAL(scale=2), nullable=False)

    # polymorphic pointer to the business object, stored as a (string, int) pair
    reference_type: Mapped[ReferenceType | None] = mapped_column(
        Enum(ReferenceType, native_enum=False, length=32), nullable=True
    )
    reference_id: Mapped[int | None] = mapped_column(nullable=True)

    payment_method_id: Mapped[int | None] = mapped_column(
        ForeignKey("payment_methods.id"), nullable=True
    )
    payment_method: Mapped[PaymentMethod | None] = relationship(
        foreign_keys=[payment_method_id]
    )

    idempotency_key: Mapped[str | None] = mapped_column(
        String(255), unique=True, nullable=True
    )
    entry_date: Mapped[datetime] = mapped_column(
        DateTime, default=func.now(), nullable=False
    )
    meta: Mapped[dict | None] = mapped_column(JSON, nullable=True, default=None)

    @property
    def signed_amount(self) -> Decimal:
        if self.direction == EntryDirection.IN:
            return self.amount
        return -self.amount
