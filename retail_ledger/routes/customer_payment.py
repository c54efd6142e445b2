"""API routes for Customer payments and deposits"""

from fastapi import APIRouter, Depends
from retail_ledger.schemas.base import PaginationSchema
from retail_ledger.schemas.customer_payment import (
    CustomerPaymentCreateSchema,
    CustomerPaymentFiltersSchema,
    CustomerPaymentSchema,
)
from retail_ledger.services.customer_payment import CustomerPaymentService

customer_payment_router = APIRouter(
    prefix="/customer-payments", tags=["Customer payments"]
)


@customer_payment_router.post("", response_model=CustomerPaymentSchema)
def create_payment(
    payment: CustomerPaymentCreateSchema,
    service: CustomerPaymentService = Depends(),
):
    return service.create(payment)


@customer_payment_router.get("/{payment_id}", response_model=CustomerPaymentSchema)
def read_payment(
    payment_id: int,
    service: CustomerPaymentService = Depends(),
):
    return service.get(payment_id)


@customer_payment_router.get(
    "", response_model=PaginationSchema[CustomerPaymentSchema]
)
def read_payments(
    filters: CustomerPaymentFiltersSchema = Depends(),
    skip: int = 0,
    limit: int = 100,
    service: CustomerPaymentService = Depends(),
):
    return service.get_all(filters, skip, limit)


@customer_payment_router.delete("/{payment_id}")
def delete_payment(
    payment_id: int,
    service: CustomerPaymentService = Depends(),
) -> int:
    return service.delete(payment_id)
