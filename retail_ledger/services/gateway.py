"""In-process boundary of the ledger core.

Every call runs inside its own savepoint and comes back as an
`OperationResult`; errors are reported in the result and never raised to
the caller. A failed call leaves no partial writes behind.
"""

import datetime
import logging
from decimal import Decimal
from typing import Any, Callable, TypeVar

from fastapi import Depends
from retail_ledger.errors.base import ApplicationError
from retail_ledger.models.payment_allocation import AllocationSource
from retail_ledger.models.treasury_entry import EntryDirection, EntryType
from retail_ledger.schemas.allocation import (
    OutstandingRowSchema,
    PaymentAllocationSchema,
)
from retail_ledger.schemas.customer import CustomerSchema, RebuildResultSchema
from retail_ledger.schemas.result import OperationResult
from retail_ledger.schemas.split import SplitRowInputSchema, SplitRowSchema
from retail_ledger.schemas.treasury_entry import (
    PostedEntrySchema,
    ReferenceSchema,
    RollbackResultSchema,
    TransferResultSchema,
)
from retail_ledger.services.allocation import AllocationService, OutstandingRow
from retail_ledger.services.customer_financials import CustomerFinancialsService
from retail_ledger.services.ledger import LedgerService
from retail_ledger.services.split import PaymentSplitService
from retail_ledger.uow import get_uow
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

T = TypeVar("T")


class LedgerGateway:
    def __init__(
        self,
        db: Session = Depends(get_uow),
        ledger_service: LedgerService = Depends(),
        split_service: PaymentSplitService = Depends(),
        allocation_service: AllocationService = Depends(),
        customer_financials_service: CustomerFinancialsService = Depends(),
    ):
        self.db = db
        self._ledger_service = ledger_service
        self._split_service = split_service
        self._allocation_service = allocation_service
        self._customer_financials_service = customer_financials_service

    def _run(self, where: str, call: Callable[[], T]) -> OperationResult[T]:
        try:
            self.db.flush()
            with self.db.begin_nested():
                data = call()
        except ApplicationError as exc:
            exc.where = exc.where or where
            logger.info("%s failed: %s", where, exc.error)
            return OperationResult.failure(exc)
        except SQLAlchemyError as exc:
            logger.exception("%s failed on the database", where)
            return OperationResult(
                ok=False, error_code=1500, error=exc._message(), where=where
            )
        return OperationResult.success(data)

    def post_entry(
        self,
        *,
        entry_type: EntryType,
        amount: Decimal,
        treasury_id: int | None = None,
        direction: EntryDirection | None = None,
        reference: ReferenceSchema | None = None,
        payment_method_id: int | None = None,
        entry_date: datetime.datetime | None = None,
        idempotency_key: str | None = None,
        allow_negative: bool = False,
        meta: dict | None = None,
        comment: str | None = None,
    ) -> OperationResult[PostedEntrySchema]:
        return self._run(
            "post_entry",
            lambda: PostedEntrySchema.model_validate(
                self._ledger_service.post_entry(
                    entry_type=entry_type,
                    amount=amount,
                    treasury_id=treasury_id,
                    direction=direction,
                    reference=reference,
                    payment_method_id=payment_method_id,
                    entry_date=entry_date,
                    idempotency_key=idempotency_key,
                    allow_negative=allow_negative,
                    meta=meta,
                    comment=comment,
                )
            ),
        )

    def rollback_by_reference(
        self, reference: ReferenceSchema
    ) -> OperationResult[RollbackResultSchema]:
        return self._run(
            "rollback_by_reference",
            lambda: RollbackResultSchema(
                count=self._ledger_service.rollback_by_reference(reference)
            ),
        )

    def transfer(
        self,
        source_treasury_id: int,
        target_treasury_id: int,
        amount: Decimal,
        entry_date: datetime.datetime | None = None,
        comment: str | None = None,
    ) -> OperationResult[TransferResultSchema]:
        return self._run(
            "transfer",
            lambda: TransferResultSchema.model_validate(
                self._ledger_service.transfer(
                    source_treasury_id,
                    target_treasury_id,
                    amount,
                    entry_date=entry_date,
                    comment=comment,
                )
            ),
        )

    def resolve_splits(
        self,
        requested_total: Decimal,
        rows: list[SplitRowInputSchema] | None = None,
        fallback_method: int | str | None = None,
    ) -> OperationResult[list[SplitRowSchema]]:
        return self._run(
            "resolve_splits",
            lambda: [
                SplitRowSchema.model_validate(row)
                for row in self._split_service.resolve_splits(
                    requested_total, rows, fallback_method
                )
            ],
        )

    def outstanding_invoices(
        self, customer_id: int, balance_override: Decimal | None = None
    ) -> OperationResult[list[OutstandingRowSchema]]:
        return self._run(
            "outstanding_invoices",
            lambda: [
                OutstandingRowSchema.model_validate(row)
                for row in self._allocation_service.outstanding_invoices(
                    customer_id, balance_override
                )
            ],
        )

    def apply_allocations(
        self,
        rows: list[OutstandingRowSchema],
        amount: Decimal,
        source_type: AllocationSource,
        customer_id: int,
        payment_id: int | None = None,
        treasury_entry_id: int | None = None,
        allocation_date: datetime.datetime | None = None,
    ) -> OperationResult[list[PaymentAllocationSchema]]:
        outstanding = [
            OutstandingRow(
                sale_id=row.sale_id,
                invoice_date=row.invoice_date,
                booked=row.booked.to_decimal(),
                allocated=row.allocated.to_decimal(),
                outstanding=row.outstanding.to_decimal(),
            )
            for row in rows
        ]
        return self._run(
            "apply_allocations",
            lambda: [
                PaymentAllocationSchema.model_validate(allocation)
                for allocation in self._allocation_service.apply_allocations(
                    outstanding,
                    amount,
                    source_type,
                    customer_id,
                    payment_id=payment_id,
                    treasury_entry_id=treasury_entry_id,
                    allocation_date=allocation_date,
                )
            ],
        )

    def apply_delta(
        self,
        customer_id: int,
        balance_delta: Decimal,
        activity_date: datetime.datetime | None = None,
        payment_date: datetime.datetime | None = None,
    ) -> OperationResult[Any]:
        return self._run(
            "apply_delta",
            lambda: self._customer_financials_service.apply_delta(
                customer_id, balance_delta, activity_date, payment_date
            ),
        )

    def recalculate_activity_dates(
        self, customer_id: int
    ) -> OperationResult[CustomerSchema]:
        return self._run(
            "recalculate_activity_dates",
            lambda: CustomerSchema.model_validate(
                self._customer_financials_service.recalculate_activity_dates(
                    customer_id
                )
            ),
        )

    def rebuild(self, customer_ids: list[int]) -> OperationResult[RebuildResultSchema]:
        return self._run(
            "rebuild",
            lambda: RebuildResultSchema(
                **self._customer_financials_service.rebuild(customer_ids)
            ),
        )

    def rebuild_all(
        self, batch_size: int | None = None, start_after_id: int = 0
    ) -> OperationResult[RebuildResultSchema]:
        return self._run(
            "rebuild_all",
            lambda: RebuildResultSchema(
                **self._customer_financials_service.rebuild_all(
                    batch_size, start_after_id
                )
            ),
        )
