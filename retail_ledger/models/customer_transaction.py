"""Customer transaction model. Source of truth for customer receivables."""

import enum
from datetime import datetime
from decimal import Decimal

from retail_ledger.models.base import BaseModel
from retail_ledger.models.customer import Customer
from retail_ledger.models.treasury_entry import ReferenceType
from sqlalchemy import DECIMAL, DateTime, Enum, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship


class CustomerTransactionType(enum.Enum):
    SALE = "SALE"
    PAYMENT = "PAYMENT"
    RETURN = "RETURN"


class CustomerTransaction(BaseModel):
    __tablename__ = "customer_transactions"
    __table_args__ = (
        Index(
            "ix_customer_transactions_reference",
            "reference_type",
            "reference_id",
        ),
    )

    customer_id: Mapped[int] = mapped_column(
        ForeignKey("customers.id"), nullable=False, index=True
    )
    customer: Mapped[Customer] = relationship(foreign_keys=[customer_id])

    date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    type: Mapped[CustomerTransactionType] = mapped_column(
        Enum(CustomerTransactionType), nullable=False
    )
    reference_type: Mapped[ReferenceType] = mapped_column(
        Enum(ReferenceType, native_enum=False, length=32), nullable=False
    )
    reference_id: Mapped[int] = mapped_column(nullable=False)

    # debit increases the receivable, credit decreases it
    debit: Mapped[Decimal] = mapped_column(
        DECIMAL(scale=2), nullable=False, default=Decimal("0.00")
    )
    credit: Mapped[Decimal] = mapped_column(
        DECIMAL(scale=2), nullable=False, default=Decimal("0.00")
    )
