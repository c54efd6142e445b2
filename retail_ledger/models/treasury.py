"""Treasury model. A named cash account with a running balance."""

from datetime import datetime
from decimal import Decimal

from retail_ledger.models.base import BaseModel
from sqlalchemy import DECIMAL, Boolean, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column


class Treasury(BaseModel):
    __tablename__ = "treasuries"

    name: Mapped[str] = mapped_column(String, unique=True)
    # normalized uppercase token, e.g. MAIN, SHOP_2
    code: Mapped[str] = mapped_column(String, unique=True)

    opening_balance: Mapped[Decimal] = mapped_column(
        DECIMAL(scale=2), nullable=False, default=Decimal("0.00")
    )
    # cached running balance, mutated only under a row lock by the ledger
    current_balance: Mapped[Decimal] = mapped_column(
        DECIMAL(scale=2), nullable=False, default=Decimal("0.00")
    )

    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    is_default: Mapped[bool] = mapped_column(Boolean, default=False)
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    modified_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
