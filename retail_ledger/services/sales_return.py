"""Sales return service"""

import datetime
import logging

from fastapi import Depends
from retail_ledger.errors.ledger import InvalidAmount
from retail_ledger.models.customer_transaction import CustomerTransactionType
from retail_ledger.models.sales_return import SalesReturn
from retail_ledger.models.treasury_entry import EntryType, ReferenceType
from retail_ledger.money import ZERO, to_money
from retail_ledger.schemas.sales_return import SalesReturnCreateSchema
from retail_ledger.schemas.treasury_entry import ReferenceSchema
from retail_ledger.services.audit import AuditService
from retail_ledger.services.base import BaseService
from retail_ledger.services.customer_financials import CustomerFinancialsService
from retail_ledger.services.default_treasury import DefaultTreasuryService
from retail_ledger.services.ledger import LedgerService
from retail_ledger.services.sale import SaleService
from retail_ledger.services.split import PaymentSplitService
from retail_ledger.uow import get_uow
from sqlalchemy import func
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


class SalesReturnService(BaseService[SalesReturn]):
    model = SalesReturn

    def __init__(
        self,
        db: Session = Depends(get_uow),
        sale_service: SaleService = Depends(),
        default_treasury_service: DefaultTreasuryService = Depends(),
        ledger_service: LedgerService = Depends(),
        split_service: PaymentSplitService = Depends(),
        customer_financials_service: CustomerFinancialsService = Depends(),
        audit_service: AuditService = Depends(),
    ):
        self.db = db
        self._sale_service = sale_service
        self._default_treasury_service = default_treasury_service
        self._ledger_service = ledger_service
        self._split_service = split_service
        self._customer_financials_service = customer_financials_service
        self._audit_service = audit_service

    @staticmethod
    def _reference(sales_return: SalesReturn) -> ReferenceSchema:
        return ReferenceSchema(kind=ReferenceType.RETURN, id=sales_return.id)

    def create(self, schema: SalesReturnCreateSchema) -> SalesReturn:  # type: ignore[override]
        sale = self._sale_service.get(schema.sale_id)
        total = to_money(schema.total)
        refund = to_money(schema.refund_amount)
        already_returned = to_money(
            self.db.query(func.coalesce(func.sum(SalesReturn.total), 0))
            .filter(SalesReturn.sale_id == sale.id)
            .scalar()
        )
        if already_returned + total > sale.total:
            raise InvalidAmount(
                f"sale id={sale.id} total={sale.total} returned={already_returned + total}"
            )
        return_date = schema.return_date or datetime.datetime.now()
        treasury_id = self._default_treasury_service.resolve_treasury_id(
            schema.treasury_id or sale.treasury_id
        )

        sales_return = SalesReturn(
            sale_id=sale.id,
            customer_id=sale.customer_id,
            total=total,
            refund_amount=refund,
            return_date=return_date,
            treasury_id=treasury_id,
            comment=schema.comment,
        )
        self.db.add(sales_return)
        self.db.flush()

        reference = self._reference(sales_return)
        if refund > ZERO:
            for row in self._split_service.resolve_splits(
                refund, schema.payments, schema.payment_method
            ):
                self._ledger_service.post_entry(
                    entry_type=EntryType.RETURN_REFUND,
                    amount=row.amount,
                    treasury_id=treasury_id,
                    reference=reference,
                    payment_method_id=row.payment_method_id,
                    entry_date=return_date,
                )
        if sale.customer_id is not None:
            # the returned goods are credited, cash handed back is debited
            self._customer_financials_service.book(
                sale.customer_id,
                CustomerTransactionType.RETURN,
                reference,
                return_date,
                debit=refund,
                credit=total,
            )

        self.db.flush()
        self.db.refresh(sales_return)
        logger.info(
            "Created return id=%s for sale id=%s total=%s refund=%s",
            sales_return.id,
            sale.id,
            total,
            refund,
        )
        self._audit_service.record(
            "RETURN_CREATED",
            "SalesReturn",
            sales_return.id,
            {"sale_id": sale.id, "total": total, "refund_amount": refund},
        )
        return sales_return

    def delete(self, obj_id: int) -> int:
        sales_return = self.get(obj_id)
        reference = self._reference(sales_return)
        self._ledger_service.rollback_by_reference(reference)
        self._customer_financials_service.unbook(reference)
        self.db.delete(sales_return)
        self.db.flush()
        logger.info("Deleted return id=%s", obj_id)
        self._audit_service.record("RETURN_DELETED", "SalesReturn", obj_id)
        return obj_id
