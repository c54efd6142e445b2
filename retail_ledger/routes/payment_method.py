"""API routes for the payment method directory"""

from fastapi import APIRouter, Depends
from retail_ledger.schemas.base import PaginationSchema
from retail_ledger.schemas.payment_method import (
    PaymentMethodCreateSchema,
    PaymentMethodSchema,
    PaymentMethodUpdateSchema,
)
from retail_ledger.services.payment_method import PaymentMethodService

payment_method_router = APIRouter(prefix="/payment-methods", tags=["Payment methods"])


@payment_method_router.post("", response_model=PaymentMethodSchema)
def create_payment_method(
    payment_method: PaymentMethodCreateSchema,
    service: PaymentMethodService = Depends(),
):
    return service.create(payment_method)


@payment_method_router.get(
    "/resolve/{reference}", response_model=PaymentMethodSchema
)
def resolve_payment_method(
    reference: str,
    service: PaymentMethodService = Depends(),
):
    return service.resolve(reference)


@payment_method_router.get("/{payment_method_id}", response_model=PaymentMethodSchema)
def read_payment_method(
    payment_method_id: int,
    service: PaymentMethodService = Depends(),
):
    return service.get(payment_method_id)


@payment_method_router.get("", response_model=PaginationSchema[PaymentMethodSchema])
def read_payment_methods(
    skip: int = 0,
    limit: int = 100,
    service: PaymentMethodService = Depends(),
):
    return service.get_all(None, skip, limit)


@payment_method_router.patch(
    "/{payment_method_id}", response_model=PaymentMethodSchema
)
def update_payment_method(
    payment_method_id: int,
    payment_method_update: PaymentMethodUpdateSchema,
    service: PaymentMethodService = Depends(),
):
    return service.update(payment_method_id, payment_method_update)


@payment_method_router.delete("/{payment_method_id}")
def delete_payment_method(
    payment_method_id: int,
    service: PaymentMethodService = Depends(),
) -> int:
    return service.delete(payment_method_id)
