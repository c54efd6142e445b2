"""Customer payment and deposit service"""

import datetime
import logging

from fastapi import Depends
from retail_ledger.models.customer_payment import CustomerPayment
from retail_ledger.models.customer_transaction import CustomerTransactionType
from retail_ledger.models.payment_allocation import AllocationSource, PaymentAllocation
from retail_ledger.models.treasury_entry import EntryType, ReferenceType
from retail_ledger.money import to_money
from retail_ledger.schemas.customer_payment import (
    CustomerPaymentCreateSchema,
    CustomerPaymentFiltersSchema,
)
from retail_ledger.schemas.treasury_entry import ReferenceSchema
from retail_ledger.services.allocation import AllocationService
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


class CustomerPaymentService(BaseService[CustomerPayment]):
    model = CustomerPayment

    def __init__(
        self,
        db: Session = Depends(get_uow),
        customer_service: CustomerService = Depends(),
        default_treasury_service: DefaultTreasuryService = Depends(),
        ledger_service: LedgerService = Depends(),
        split_service: PaymentSplitService = Depends(),
        allocation_service: AllocationService = Depends(),
        customer_financials_service: CustomerFinancialsService = Depends(),
        audit_service: AuditService = Depends(),
    ):
        self.db = db
        self._customer_service = customer_service
        self._default_treasury_service = default_treasury_service
        self._ledger_service = ledger_service
        self._split_service = split_service
        self._allocation_service = allocation_service
        self._customer_financials_service = customer_financials_service
        self._audit_service = audit_service

    def _apply_filters(
        self, query: Query[CustomerPayment], filters: CustomerPaymentFiltersSchema
    ) -> Query[CustomerPayment]:
        if filters.customer_id is not None:
            query = query.filter(CustomerPayment.customer_id == filters.customer_id)
        if filters.source_type is not None:
            query = query.filter(CustomerPayment.source_type == filters.source_type)
        return query

    @staticmethod
    def _reference(payment: CustomerPayment) -> ReferenceSchema:
        if payment.source_type == AllocationSource.DEPOSIT:
            return ReferenceSchema(kind=ReferenceType.DEPOSIT, id=payment.id)
        return ReferenceSchema(kind=ReferenceType.PAYMENT, id=payment.id)

    def create(self, schema: CustomerPaymentCreateSchema) -> CustomerPayment:  # type: ignore[override]
        """
        Record money received from a customer: treasury entries per split,
        FIFO allocation against the balance owed before this payment, then
        the customer ledger and cache.
        """
        if schema.idempotency_key:
            acquire_advisory_lock(self.db, f"customer-payment:{schema.idempotency_key}")
            existing = self.db.execute(
                select(CustomerPayment).where(
                    CustomerPayment.idempotency_key == schema.idempotency_key
                )
            ).scalar_one_or_none()
            if existing is not None:
                logger.info(
                    "Payment with key %r already exists, id=%s",
                    schema.idempotency_key,
                    existing.id,
                )
                return existing

        self._customer_service.get(schema.customer_id)
        amount = to_money(schema.amount)
        payment_date = schema.payment_date or datetime.datetime.now()
        treasury_id = self._default_treasury_service.resolve_treasury_id(
            schema.treasury_id
        )
        rows = self._split_service.resolve_splits(
            amount, schema.payments, schema.payment_method
        )

        payment = CustomerPayment(
            customer_id=schema.customer_id,
            amount=amount,
            payment_date=payment_date,
            source_type=schema.source_type,
            treasury_id=treasury_id,
            payment_method_id=rows[0].payment_method_id,
            idempotency_key=schema.idempotency_key,
            comment=schema.comment,
        )
        self.db.add(payment)
        self.db.flush()

        reference = self._reference(payment)
        entry_type = (
            EntryType.DEPOSIT_IN
            if schema.source_type == AllocationSource.DEPOSIT
            else EntryType.CUSTOMER_PAYMENT
        )
        entries = [
            self._ledger_service.post_entry(
                entry_type=entry_type,
                amount=row.amount,
                treasury_id=treasury_id,
                reference=reference,
                payment_method_id=row.payment_method_id,
                entry_date=payment_date,
                idempotency_key=row.idempotency_key(
                    schema.idempotency_key, "PAYMENT"
                ),
                comment=schema.comment,
            ).entry
            for row in rows
        ]

        self._allocation_service.allocate_payment(
            schema.customer_id,
            amount,
            schema.source_type,
            payment_id=payment.id,
            treasury_entry_id=entries[0].id,
            allocation_date=payment_date,
            sale_id=schema.sale_id,
        )
        self._customer_financials_service.book(
            schema.customer_id,
            CustomerTransactionType.PAYMENT,
            reference,
            payment_date,
            credit=amount,
            activity_date=payment_date,
            payment_date=payment_date,
        )

        self.db.flush()
        self.db.refresh(payment)
        logger.info(
            "Recorded %s id=%s of %s for customer id=%s",
            payment.source_type.value,
            payment.id,
            amount,
            payment.customer_id,
        )
        self._audit_service.record(
            "PAYMENT_CREATED",
            "CustomerPayment",
            payment.id,
            {
                "customer_id": payment.customer_id,
                "amount": amount,
                "source_type": payment.source_type,
                "entry_ids": [entry.id for entry in entries],
            },
        )
        return payment

    def delete(self, obj_id: int) -> int:
        """Undo a payment: entries, allocations, customer ledger and cache."""
        payment = self.get(obj_id)
        customer_id = payment.customer_id
        reference = self._reference(payment)

        self._ledger_service.rollback_by_reference(reference)
        self.db.execute(
            delete(PaymentAllocation).where(PaymentAllocation.payment_id == obj_id)
        )
        self._customer_financials_service.unbook(reference)
        self.db.delete(payment)
        self.db.flush()
        self._customer_financials_service.recalculate_activity_dates(customer_id)

        logger.info("Deleted payment id=%s", obj_id)
        self._audit_service.record(
            "PAYMENT_DELETED", "CustomerPayment", obj_id, {"customer_id": customer_id}
        )
        return obj_id
