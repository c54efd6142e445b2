"""Sale service: books invoices into the treasury and the customer ledger"""

import datetime
import logging

from fastapi import Depends
from retail_ledger.errors.common import ConstraintViolation
from retail_ledger.errors.ledger import InvalidAmount
from retail_ledger.models.customer_transaction import CustomerTransactionType
from retail_ledger.models.payment_allocation import PaymentAllocation
from retail_ledger.models.sale import Sale
from retail_ledger.models.sales_return import SalesReturn
from retail_ledger.models.treasury_entry import (
    EntryType,
    ReferenceType,
    TreasuryEntry,
)
from retail_ledger.money import to_money
from retail_ledger.schemas.sale import (
    SaleCreateSchema,
    SaleFiltersSchema,
    SaleUpdateSchema,
)
from retail_ledger.schemas.split import SplitRowInputSchema
from retail_ledger.schemas.treasury_entry import ReferenceSchema
from retail_ledger.services.audit import AuditService
from retail_ledger.services.base import BaseService
from retail_ledger.services.customer import CustomerService
from retail_ledger.services.customer_financials import CustomerFinancialsService
from retail_ledger.services.default_treasury import DefaultTreasuryService
from retail_ledger.services.ledger import LedgerService
from retail_ledger.services.locks import acquire_advisory_lock
from retail_ledger.services.split import PaymentSplitService
from retail_ledger.uow import get_uow
from sqlalchemy import delete, select
from sqlalchemy.orm import Query, Session

logger = logging.getLogger(__name__)


class SaleService(BaseService[Sale]):
    model = Sale

    def __init__(
        self,
        db: Session = Depends(get_uow),
        customer_service: CustomerService = Depends(),
        default_treasury_service: DefaultTreasuryService = Depends(),
        ledger_service: LedgerService = Depends(),
        split_service: PaymentSplitService = Depends(),
        customer_financials_service: CustomerFinancialsService = Depends(),
        audit_service: AuditService = Depends(),
    ):
        self.db = db
        self._customer_service = customer_service
        self._default_treasury_service = default_treasury_service
        self._ledger_service = ledger_service
        self._split_service = split_service
        self._customer_financials_service = customer_financials_service
        self._audit_service = audit_service

    def _apply_filters(
        self, query: Query[Sale], filters: SaleFiltersSchema
    ) -> Query[Sale]:
        if filters.customer_id is not None:
            query = query.filter(Sale.customer_id == filters.customer_id)
        if filters.date_from is not None:
            query = query.filter(Sale.invoice_date >= filters.date_from)
        if filters.date_to is not None:
            query = query.filter(Sale.invoice_date <= filters.date_to)
        return query

    @staticmethod
    def _reference(sale: Sale) -> ReferenceSchema:
        return ReferenceSchema(kind=ReferenceType.SALE, id=sale.id)

    def _book(
        self,
        sale: Sale,
        payments: list[SplitRowInputSchema] | None,
        payment_method: int | str | None,
        idempotency_key: str | None = None,
    ) -> None:
        """Post the paid part into the treasury and the sale onto the customer."""
        reference = self._reference(sale)
        if sale.paid_amount > 0:
            rows = self._split_service.resolve_splits(
                sale.paid_amount, payments, payment_method
            )
            for row in rows:
                self._ledger_service.post_entry(
                    entry_type=EntryType.SALE_INCOME,
                    amount=row.amount,
                    treasury_id=sale.treasury_id,
                    reference=reference,
                    payment_method_id=row.payment_method_id,
                    entry_date=sale.invoice_date,
                    idempotency_key=row.idempotency_key(idempotency_key, "SALE"),
                )
        if sale.customer_id is not None:
            self._customer_financials_service.book(
                sale.customer_id,
                CustomerTransactionType.SALE,
                reference,
                sale.invoice_date,
                debit=sale.total,
                credit=sale.paid_amount,
                activity_date=sale.invoice_date,
            )

    def _unbook(self, sale: Sale) -> set[int]:
        reference = self._reference(sale)
        self._ledger_service.rollback_by_reference(reference)
        return self._customer_financials_service.unbook(reference)

    def create(self, schema: SaleCreateSchema) -> Sale:  # type: ignore[override]
        if schema.idempotency_key:
            acquire_advisory_lock(self.db, f"sale:{schema.idempotency_key}")
            existing = self.db.execute(
                select(Sale).where(Sale.idempotency_key == schema.idempotency_key)
            ).scalar_one_or_none()
            if existing is not None:
                logger.info(
                    "Sale with key %r already exists, id=%s",
                    schema.idempotency_key,
                    existing.id,
                )
                return existing

        if schema.customer_id is not None:
            self._customer_service.get(schema.customer_id)
        sale = Sale(
            customer_id=schema.customer_id,
            invoice_date=schema.invoice_date or datetime.datetime.now(),
            total=to_money(schema.total),
            paid_amount=to_money(schema.paid_amount),
            treasury_id=self._default_treasury_service.resolve_treasury_id(
                schema.treasury_id
            ),
            idempotency_key=schema.idempotency_key,
            comment=schema.comment,
        )
        self.db.add(sale)
        self.db.flush()
        self._book(sale, schema.payments, schema.payment_method, schema.idempotency_key)

        self.db.flush()
        self.db.refresh(sale)
        logger.info(
            "Created sale id=%s total=%s paid=%s", sale.id, sale.total, sale.paid_amount
        )
        self._audit_service.record(
            "SALE_CREATED",
            "Sale",
            sale.id,
            {
                "customer_id": sale.customer_id,
                "total": sale.total,
                "paid_amount": sale.paid_amount,
            },
        )
        return sale

    def update(self, obj_id: int, schema: SaleUpdateSchema) -> Sale:  # type: ignore[override]
        """Re-book a sale: unwind its ledger effects, apply changes, post again."""
        sale = self.get(obj_id)
        previous_customer_id = sale.customer_id
        previous_method = (
            self.db.query(TreasuryEntry.payment_method_id)
            .filter(
                TreasuryEntry.reference_type == ReferenceType.SALE,
                TreasuryEntry.reference_id == sale.id,
            )
            .order_by(TreasuryEntry.id)
            .limit(1)
            .scalar()
        )
        affected = self._unbook(sale)

        if schema.customer_id is not None:
            self._customer_service.get(schema.customer_id)
            sale.customer_id = schema.customer_id
        if schema.total is not None:
            sale.total = to_money(schema.total)
        if schema.paid_amount is not None:
            sale.paid_amount = to_money(schema.paid_amount)
        if schema.invoice_date is not None:
            sale.invoice_date = schema.invoice_date
        if schema.treasury_id is not None:
            sale.treasury_id = self._default_treasury_service.resolve_treasury_id(
                schema.treasury_id
            )
        if schema.comment is not None:
            sale.comment = schema.comment
        if sale.total <= 0 or sale.paid_amount < 0 or sale.paid_amount > sale.total:
            raise InvalidAmount(f"total={sale.total} paid_amount={sale.paid_amount}")
        if sale.customer_id is None and sale.paid_amount != sale.total:
            raise InvalidAmount("walk-in sales must be paid in full")

        if sale.customer_id != previous_customer_id:
            # allocations belong to the previous customer's payments
            self.db.execute(
                delete(PaymentAllocation).where(PaymentAllocation.sale_id == sale.id)
            )
        sale.modified_at = datetime.datetime.now()
        self.db.flush()
        self._book(
            sale,
            schema.payments,
            schema.payment_method
            if schema.payment_method is not None
            else previous_method,
        )

        if sale.customer_id is not None:
            affected.add(sale.customer_id)
        for customer_id in sorted(affected):
            self._customer_financials_service.recalculate_activity_dates(customer_id)

        self.db.flush()
        self.db.refresh(sale)
        self._audit_service.record(
            "SALE_UPDATED",
            "Sale",
            sale.id,
            {
                "customer_id": sale.customer_id,
                "previous_customer_id": previous_customer_id,
                "total": sale.total,
                "paid_amount": sale.paid_amount,
            },
        )
        return sale

    def delete(self, obj_id: int) -> int:
        """Delete a sale together with its ledger effects and allocations."""
        sale = self.get(obj_id)
        has_returns = (
            self.db.query(SalesReturn.id).filter(SalesReturn.sale_id == obj_id).first()
        )
        if has_returns is not None:
            raise ConstraintViolation(f"Sale id={obj_id} has returns")

        affected = self._unbook(sale)
        self.db.execute(
            delete(PaymentAllocation).where(PaymentAllocation.sale_id == obj_id)
        )
        self.db.delete(sale)
        self.db.flush()
        for customer_id in sorted(affected):
            self._customer_financials_service.recalculate_activity_dates(customer_id)

        logger.info("Deleted sale id=%s", obj_id)
        self._audit_service.record("SALE_DELETED", "Sale", obj_id)
        return obj_id
