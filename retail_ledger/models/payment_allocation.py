"""Payment allocation model: this much of payment X was applied to invoice Y"""

import enum
from datetime import datetime
from decimal import Decimal

from retail_ledger.models.base import BaseModel
from sqlalchemy import DECIMAL, DateTime, Enum, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column


class AllocationSource(enum.Enum):
    CUSTOMER_PAYMENT = "CUSTOMER_PAYMENT"
    DEPOSIT = "DEPOSIT"


class PaymentAllocation(BaseModel):
    __tablename__ = "payment_allocations"

    customer_id: Mapped[int] = mapped_column(
        ForeignKey("customers.id"), nullable=False, index=True
    )
    sale_id: Mapped[int] = mapped_column(
        ForeignKey("sales.id"), nullable=False, index=True
    )
    source_type: Mapped[AllocationSource] = mapped_column(
        Enum(AllocationSource), nullable=False
    )
    amount: Mapped[Decimal] = mapped_column(DECIMAL(scale=2), nullable=False)
    allocation_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    # back-references to the money that funded this allocation
    payment_id: Mapped[int | None] = mapped_column(
        ForeignKey("customer_payments.id"), nullable=True, index=True
    )
    treasury_entry_id: Mapped[int | None] = mapped_column(
        ForeignKey("treasury_entries.id"), nullable=True, index=True
    )
