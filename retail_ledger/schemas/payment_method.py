"""DTO for Payment methods"""

from datetime import datetime

from retail_ledger.schemas.base import BaseReadSchema, BaseUpdateSchema


class PaymentMethodSchema(BaseReadSchema):
    code: str
    name: str
    is_active: bool
    modified_at: datetime | None = None


class PaymentMethodCreateSchema(BaseUpdateSchema):
    code: str
    name: str
    is_active: bool | None = True


class PaymentMethodUpdateSchema(BaseUpdateSchema):
    name: str | None = None
    is_active: bool | None = None
