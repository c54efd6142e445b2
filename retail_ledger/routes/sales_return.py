"""API routes for Sales returns"""

from fastapi import APIRouter, Depends
from retail_ledger.schemas.base import PaginationSchema
from retail_ledger.schemas.sales_return import (
    SalesReturnCreateSchema,
    SalesReturnSchema,
)
from retail_ledger.services.sales_return import SalesReturnService

sales_return_router = APIRouter(prefix="/returns", tags=["Sales returns"])


@sales_return_router.post("", response_model=SalesReturnSchema)
def create_return(
    sales_return: SalesReturnCreateSchema,
    service: SalesReturnService = Depends(),
):
    return service.create(sales_return)


@sales_return_router.get("/{return_id}", response_model=SalesReturnSchema)
def read_return(
    return_id: int,
    service: SalesReturnService = Depends(),
):
    return service.get(return_id)


@sales_return_router.get("", response_model=PaginationSchema[SalesReturnSchema])
def read_returns(
    skip: int = 0,
    limit: int = 100,
    service: SalesReturnService = Depends(),
):
    return service.get_all(None, skip, limit)


@sales_return_router.delete("/{return_id}")
def delete_return(
    return_id: int,
    service: SalesReturnService = Depends(),
) -> int:
    return service.delete(return_id)
