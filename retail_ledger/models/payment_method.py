"""Payment method directory"""

import enum
from datetime import datetime

from retail_ledger.models.base import BaseModel
from sqlalchemy import Boolean, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column


class PaymentMethodCode(enum.Enum):
    CASH = "CASH"
    VISA = "VISA"
    MASTERCARD = "MASTERCARD"
    BANK_TRANSFER = "BANK_TRANSFER"
    VODAFONE_CASH = "VODAFONE_CASH"
    INSTAPAY = "INSTAPAY"


class PaymentMethod(BaseModel):
    __tablename__ = "payment_methods"

    code: Mapped[str] = mapped_column(String, unique=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    modified_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
