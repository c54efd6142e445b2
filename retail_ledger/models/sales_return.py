"""Sales return header"""

from datetime import datetime
from decimal import Decimal

from retail_ledger.models.base import BaseModel
from retail_ledger.models.sale import Sale
from sqlalchemy import DECIMAL, DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship


class SalesReturn(BaseModel):
    __tablename__ = "sales_returns"

    sale_id: Mapped[int] = mapped_column(ForeignKey("sales.id"), nullable=False)
    sale: Mapped[Sale] = relationship(foreign_keys=[sale_id])
    customer_id: Mapped[int | None] = mapped_column(
        ForeignKey("customers.id"), nullable=True
    )

    total: Mapped[Decimal] = mapped_column(DECIMAL(scale=2), nullable=False)
    refund_amount: Mapped[Decimal] = mapped_column(
        DECIMAL(scale=2), nullable=False, default=Decimal("0.00")
    )
    return_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    treasury_id: Mapped[int | None] = mapped_column(
        ForeignKey("treasuries.id"), nullable=True
    )
