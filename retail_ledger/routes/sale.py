"""API routes for Sales"""

from fastapi import APIRouter, Depends
from retail_ledger.schemas.allocation import PaymentAllocationSchema
from retail_ledger.schemas.base import PaginationSchema
from retail_ledger.schemas.sale import (
    SaleCreateSchema,
    SaleFiltersSchema,
    SaleSchema,
    SaleUpdateSchema,
)
from retail_ledger.services.allocation import AllocationService
from retail_ledger.services.sale import SaleService

sale_router = APIRouter(prefix="/sales", tags=["Sales"])


@sale_router.post("", response_model=SaleSchema)
def create_sale(
    sale: SaleCreateSchema,
    service: SaleService = Depends(),
):
    return service.create(sale)


@sale_router.get("/{sale_id}", response_model=SaleSchema)
def read_sale(
    sale_id: int,
    service: SaleService = Depends(),
):
    return service.get(sale_id)


@sale_router.get("", response_model=PaginationSchema[SaleSchema])
def read_sales(
    filters: SaleFiltersSchema = Depends(),
    skip: int = 0,
    limit: int = 100,
    service: SaleService = Depends(),
):
    return service.get_all(filters, skip, limit)


@sale_router.patch("/{sale_id}", response_model=SaleSchema)
def update_sale(
    sale_id: int,
    sale_update: SaleUpdateSchema,
    service: SaleService = Depends(),
):
    return service.update(sale_id, sale_update)


@sale_router.delete("/{sale_id}")
def delete_sale(
    sale_id: int,
    service: SaleService = Depends(),
) -> int:
    return service.delete(sale_id)


@sale_router.get("/{sale_id}/allocations", response_model=list[PaymentAllocationSchema])
def read_sale_allocations(
    sale_id: int,
    service: AllocationService = Depends(),
):
    return service.allocations_for_sale(sale_id)
