"""API routes for Customers and their cached financials"""

from fastapi import APIRouter, Depends
from retail_ledger.dependencies.services import ServiceContainer, get_container
from retail_ledger.schemas.allocation import (
    OutstandingRowSchema,
    PaymentAllocationSchema,
)
from retail_ledger.schemas.base import PaginationSchema
from retail_ledger.schemas.customer import (
    CustomerCreateSchema,
    CustomerFiltersSchema,
    CustomerRebuildAllSchema,
    CustomerRebuildSchema,
    CustomerSchema,
    CustomerUpdateSchema,
    RebuildResultSchema,
)
from retail_ledger.services.allocation import AllocationService
from retail_ledger.services.customer import CustomerService
from retail_ledger.services.customer_financials import CustomerFinancialsService

customer_router = APIRouter(prefix="/customers", tags=["Customers"])


@customer_router.post("", response_model=CustomerSchema)
def create_customer(
    customer: CustomerCreateSchema,
    service: CustomerService = Depends(),
):
    return service.create(customer)


@customer_router.get("/{customer_id}", response_model=CustomerSchema)
def read_customer(
    customer_id: int,
    service: CustomerService = Depends(),
):
    return service.get(customer_id)


@customer_router.get("", response_model=PaginationSchema[CustomerSchema])
def read_customers(
    filters: CustomerFiltersSchema = Depends(),
    skip: int = 0,
    limit: int = 100,
    service: CustomerService = Depends(),
):
    return service.get_all(filters, skip, limit)


@customer_router.patch("/{customer_id}", response_model=CustomerSchema)
def update_customer(
    customer_id: int,
    customer_update: CustomerUpdateSchema,
    service: CustomerService = Depends(),
):
    return service.update(customer_id, customer_update)


@customer_router.delete("/{customer_id}")
def delete_customer(
    customer_id: int,
    service: CustomerService = Depends(),
) -> int:
    return service.delete(customer_id)


@customer_router.get(
    "/{customer_id}/outstanding", response_model=list[OutstandingRowSchema]
)
def read_outstanding_invoices(
    customer_id: int,
    service: AllocationService = Depends(),
):
    return [
        OutstandingRowSchema.model_validate(row)
        for row in service.outstanding_invoices(customer_id)
    ]


@customer_router.get(
    "/{customer_id}/allocations", response_model=list[PaymentAllocationSchema]
)
def read_allocations(
    customer_id: int,
    service: AllocationService = Depends(),
):
    return service.allocations_for_customer(customer_id)


@customer_router.post(
    "/{customer_id}/recalculate-dates", response_model=CustomerSchema
)
def recalculate_activity_dates(
    customer_id: int,
    service: CustomerFinancialsService = Depends(),
):
    return service.recalculate_activity_dates(customer_id)


@customer_router.post("/rebuild", response_model=RebuildResultSchema)
def rebuild_customers(
    rebuild: CustomerRebuildSchema,
    container: ServiceContainer = Depends(get_container),
):
    return container.customer_financials_service.rebuild(rebuild.customer_ids)


@customer_router.post("/rebuild-all", response_model=RebuildResultSchema)
def rebuild_all_customers(
    rebuild: CustomerRebuildAllSchema,
    container: ServiceContainer = Depends(get_container),
):
    return container.customer_financials_service.rebuild_all(
        rebuild.batch_size, rebuild.start_after_id
    )
