"""DTO for FIFO allocations"""

from datetime import datetime

from retail_ledger.models.payment_allocation import AllocationSource
from retail_ledger.schemas.base import BaseReadSchema, BaseSchema, CurrencyDecimal


class OutstandingRowSchema(BaseSchema):
    sale_id: int
    invoice_date: datetime
    booked: CurrencyDecimal
    allocated: CurrencyDecimal
    outstanding: CurrencyDecimal


class PaymentAllocationSchema(BaseReadSchema):
    customer_id: int
    sale_id: int
    source_type: AllocationSource
    amount: CurrencyDecimal
    allocation_date: datetime
    payment_id: int | None = None
    treasury_entry_id: int | None = None
