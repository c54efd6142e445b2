"""Sale (invoice) header. Line items live in the inventory subsystem."""

from datetime import datetime
from decimal import Decimal

from retail_ledger.models.base import BaseModel
from retail_ledger.models.customer import Customer
from retail_ledger.models.treasury import Treasury
from sqlalchemy import DECIMAL, DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship


class Sale(BaseModel):
    __tablename__ = "sales"

    # walk-in sales have no customer
    customer_id: Mapped[int | None] = mapped_column(
        ForeignKey("customers.id"), nullable=True, index=True
    )
    customer: Mapped[Customer | None] = relationship(foreign_keys=[customer_id])

    invoice_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    total: Mapped[Decimal] = mapped_column(DECIMAL(scale=2), nullable=False)
    paid_amount: Mapped[Decimal] = mapped_column(
        DECIMAL(scale=2), nullable=False, default=Decimal("0.00")
    )

    treasury_id: Mapped[int | None] = mapped_column(
        ForeignKey("treasuries.id"), nullable=True
    )
    treasury: Mapped[Treasury | None] = relationship(foreign_keys=[treasury_id])

    idempotency_key: Mapped[str | None] = mapped_column(
        String(255), unique=True, nullable=True
    )
    modified_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    @property
    def remaining_amount(self) -> Decimal:
        return self.total - self.paid_amount
