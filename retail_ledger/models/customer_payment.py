"""Customer payment (or advance deposit) model"""

from datetime import datetime
from decimal import Decimal

from retail_ledger.models.base import BaseModel
from retail_ledger.models.customer import Customer
from retail_ledger.models.payment_allocation import AllocationSource, PaymentAllocation
from retail_ledger.models.payment_method import PaymentMethod
from sqlalchemy import DECIMAL, DateTime, Enum, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship


class CustomerPayment(BaseModel):
    __tablename__ = "customer_payments"

    customer_id: Mapped[int] = mapped_column(
        ForeignKey("customers.id"), nullable=False, index=True
    )
    customer: Mapped[Customer] = relationship(foreign_keys=[customer_id])

    amount: Mapped[Decimal] = mapped_column(DECIMAL(scale=2), nullable=False)
    payment_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    source_type: Mapped[AllocationSource] = mapped_column(
        Enum(AllocationSource),
        nullable=False,
        default=AllocationSource.CUSTOMER_PAYMENT,
    )

    treasury_id: Mapped[int | None] = mapped_column(
        ForeignKey("treasuries.id"), nullable=True
    )
    # method of the first split row; the full breakdown lives in treasury entries
    payment_method_id: Mapped[int | None] = mapped_column(
        ForeignKey("payment_methods.id"), nullable=True
    )
    payment_method: Mapped[PaymentMethod | None] = relationship(
        foreign_keys=[payment_method_id]
    )

    idempotency_key: Mapped[str | None] = mapped_column(
        String(255), unique=True, nullable=True
    )

    allocations: Mapped[list[PaymentAllocation]] = relationship(
        PaymentAllocation,
        order_by=PaymentAllocation.id,
        viewonly=True,
    )
