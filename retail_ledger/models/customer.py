"""Customer model with cached financial summary"""

from datetime import datetime
from decimal import Decimal

from retail_ledger.models.base import BaseModel
from sqlalchemy import DECIMAL, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column


class Customer(BaseModel):
    __tablename__ = "customers"

    name: Mapped[str] = mapped_column(String, nullable=False)
    phone: Mapped[str | None] = mapped_column(String, nullable=True)

    # materialized view over customer_transactions; >0 means the customer owes money
    balance: Mapped[Decimal] = mapped_column(
        DECIMAL(scale=2), nullable=False, default=Decimal("0.00")
    )
    first_activity_date: Mapped[datetime | None] = mapped_column(
        DateTime, nullable=True
    )
    last_payment_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    financials_updated_at: Mapped[datetime | None] = mapped_column(
        DateTime, nullable=True, index=True
    )
    modified_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
