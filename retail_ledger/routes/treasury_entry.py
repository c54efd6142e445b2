"""API routes for the treasury ledger"""

from fastapi import APIRouter, Depends
from retail_ledger.models.treasury_entry import ReferenceType
from retail_ledger.schemas.treasury_entry import (
    ManualTransactionResultSchema,
    ReferenceSchema,
    RollbackResultSchema,
    TransferCreateSchema,
    TransferResultSchema,
    TreasuryEntryFiltersSchema,
    TreasuryEntryPageSchema,
    TreasuryEntrySchema,
    TreasuryTransactionCreateSchema,
)
from retail_ledger.services.ledger import LedgerService

treasury_entry_router = APIRouter(prefix="/treasury-entries", tags=["Treasury entries"])


@treasury_entry_router.get("", response_model=TreasuryEntryPageSchema)
def read_entries(
    filters: TreasuryEntryFiltersSchema = Depends(),
    skip: int = 0,
    limit: int = 100,
    service: LedgerService = Depends(),
):
    return TreasuryEntryPageSchema.model_validate(
        service.list_entries(filters, skip, limit)
    )


@treasury_entry_router.get("/{entry_id}", response_model=TreasuryEntrySchema)
def read_entry(
    entry_id: int,
    service: LedgerService = Depends(),
):
    return service.get(entry_id)


@treasury_entry_router.post("", response_model=ManualTransactionResultSchema)
def create_manual_transaction(
    transaction: TreasuryTransactionCreateSchema,
    service: LedgerService = Depends(),
):
    return ManualTransactionResultSchema.model_validate(
        service.post_manual(transaction)
    )


@treasury_entry_router.post("/transfer", response_model=TransferResultSchema)
def create_transfer(
    transfer: TransferCreateSchema,
    service: LedgerService = Depends(),
):
    return TransferResultSchema.model_validate(
        service.transfer(
            transfer.source_treasury_id,
            transfer.target_treasury_id,
            transfer.amount,
            entry_date=transfer.entry_date,
            comment=transfer.comment,
        )
    )


@treasury_entry_router.delete(
    "/by-reference/{reference_type}/{reference_id}",
    response_model=RollbackResultSchema,
)
def rollback_reference(
    reference_type: ReferenceType,
    reference_id: int,
    service: LedgerService = Depends(),
):
    count = service.rollback_by_reference(
        ReferenceSchema(kind=reference_type, id=reference_id)
    )
    return RollbackResultSchema(count=count)
