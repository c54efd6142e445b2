"""API routes for Treasury manipulation"""

from fastapi import APIRouter, Depends
from retail_ledger.schemas.base import PaginationSchema
from retail_ledger.schemas.treasury import (
    TreasuryCreateSchema,
    TreasuryFiltersSchema,
    TreasuryReconciliationSchema,
    TreasurySchema,
    TreasuryUpdateSchema,
)
from retail_ledger.services.treasury import TreasuryService

treasury_router = APIRouter(prefix="/treasuries", tags=["Treasuries"])


@treasury_router.post("", response_model=TreasurySchema)
def create_treasury(
    treasury: TreasuryCreateSchema,
    service: TreasuryService = Depends(),
):
    return service.create(treasury)


@treasury_router.get("/default", response_model=TreasurySchema)
def read_default_treasury(service: TreasuryService = Depends()):
    return service.get_default()


@treasury_router.get("/{treasury_id}", response_model=TreasurySchema)
def read_treasury(
    treasury_id: int,
    service: TreasuryService = Depends(),
):
    return service.get(treasury_id)


@treasury_router.get("", response_model=PaginationSchema[TreasurySchema])
def read_treasuries(
    filters: TreasuryFiltersSchema = Depends(),
    skip: int = 0,
    limit: int = 100,
    service: TreasuryService = Depends(),
):
    return service.get_all(filters, skip, limit)


@treasury_router.patch("/{treasury_id}", response_model=TreasurySchema)
def update_treasury(
    treasury_id: int,
    treasury_update: TreasuryUpdateSchema,
    service: TreasuryService = Depends(),
):
    return service.update(treasury_id, treasury_update)


@treasury_router.delete("/{treasury_id}")
def delete_treasury(
    treasury_id: int,
    service: TreasuryService = Depends(),
) -> int:
    return service.delete(treasury_id)


@treasury_router.post("/{treasury_id}/default", response_model=TreasurySchema)
def set_default_treasury(
    treasury_id: int,
    service: TreasuryService = Depends(),
):
    return service.set_default(treasury_id)


@treasury_router.post(
    "/{treasury_id}/reconcile", response_model=TreasuryReconciliationSchema
)
def reconcile_treasury(
    treasury_id: int,
    fix: bool = False,
    service: TreasuryService = Depends(),
):
    return service.reconcile(treasury_id, fix)
