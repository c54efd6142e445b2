"""FIFO allocation of customer payments to outstanding invoices"""

import datetime
import logging
from dataclasses import dataclass
from decimal import Decimal

from fastapi import Depends
from retail_ledger.errors.allocation import AllocationOverrun
from retail_ledger.errors.ledger import InvalidAmount
from retail_ledger.models.customer_transaction import (
    CustomerTransaction,
    CustomerTransactionType,
)
from retail_ledger.models.payment_allocation import AllocationSource, PaymentAllocation
from retail_ledger.models.sale import Sale
from retail_ledger.models.sales_return import SalesReturn
from retail_ledger.models.treasury_entry import ReferenceType
from retail_ledger.money import ZERO, to_money
from retail_ledger.services.customer import CustomerService
from retail_ledger.uow import get_uow
from sqlalchemy import func
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


@dataclass
class OutstandingRow:
    sale_id: int
    invoice_date: datetime.datetime
    # net receivable booked for the sale, returns included
    booked: Decimal
    allocated: Decimal
    outstanding: Decimal


class AllocationService:
    def __init__(
        self,
        db: Session = Depends(get_uow),
        customer_service: CustomerService = Depends(),
    ):
        self.db = db
        self._customer_service = customer_service

    def _booked_per_sale(self, customer_id: int) -> dict[int, Decimal]:
        booked: dict[int, Decimal] = {}
        sale_rows = (
            self.db.query(
                CustomerTransaction.reference_id,
                func.sum(CustomerTransaction.debit - CustomerTransaction.credit),
            )
            .filter(
                CustomerTransaction.customer_id == customer_id,
                CustomerTransaction.type == CustomerTransactionType.SALE,
                CustomerTransaction.reference_type == ReferenceType.SALE,
            )
            .group_by(CustomerTransaction.reference_id)
            .all()
        )
        for sale_id, net in sale_rows:
            booked[sale_id] = to_money(net)

        # a return credits the receivable of the sale it was taken against
        return_rows = (
            self.db.query(
                SalesReturn.sale_id,
                func.sum(CustomerTransaction.debit - CustomerTransaction.credit),
            )
            .select_from(CustomerTransaction)
            .join(
                SalesReturn,
                SalesReturn.id == CustomerTransaction.reference_id,
            )
            .filter(
                CustomerTransaction.customer_id == customer_id,
                CustomerTransaction.type == CustomerTransactionType.RETURN,
                CustomerTransaction.reference_type == ReferenceType.RETURN,
            )
            .group_by(SalesReturn.sale_id)
            .all()
        )
        for sale_id, net in return_rows:
            if sale_id in booked:
                booked[sale_id] += to_money(net)
        return booked

    def _allocated_per_sale(self, customer_id: int) -> dict[int, Decimal]:
        rows = (
            self.db.query(PaymentAllocation.sale_id, func.sum(PaymentAllocation.amount))
            .filter(PaymentAllocation.customer_id == customer_id)
            .group_by(PaymentAllocation.sale_id)
            .all()
        )
        return {sale_id: to_money(total) for sale_id, total in rows}

    def outstanding_invoices(
        self, customer_id: int, balance_override: Decimal | None = None
    ) -> list[OutstandingRow]:
        """
        Unpaid invoices of a customer, oldest first.

        When the invoices add up to more than the customer actually owes
        (history imported before allocations were tracked), the excess is
        treated as settled starting from the oldest invoice.
        """
        customer = self._customer_service.get(customer_id)
        self.db.flush()
        authoritative = to_money(
            customer.balance if balance_override is None else balance_override
        )
        if authoritative <= 0:
            return []

        booked = self._booked_per_sale(customer_id)
        allocated = self._allocated_per_sale(customer_id)
        sales = (
            self.db.query(Sale.id, Sale.invoice_date)
            .filter(Sale.id.in_(list(booked)))
            .order_by(Sale.invoice_date, Sale.id)
            .all()
        )

        rows = []
        for sale_id, invoice_date in sales:
            net = max(ZERO, booked[sale_id])
            already = allocated.get(sale_id, ZERO)
            outstanding = net - already
            if outstanding <= 0:
                continue
            rows.append(
                OutstandingRow(
                    sale_id=sale_id,
                    invoice_date=invoice_date,
                    booked=net,
                    allocated=already,
                    outstanding=outstanding,
                )
            )

        excess = sum((row.outstanding for row in rows), ZERO) - authoritative
        if excess > 0:
            logger.info(
                "Customer id=%s invoices exceed balance by %s, absorbing oldest first",
                customer_id,
                excess,
            )
            for row in rows:
                if excess <= 0:
                    break
                absorbed = min(excess, row.outstanding)
                row.outstanding -= absorbed
                excess -= absorbed
            rows = [row for row in rows if row.outstanding > 0]
        return rows

    def apply_allocations(
        self,
        rows: list[OutstandingRow],
        amount: Decimal,
        source_type: AllocationSource,
        customer_id: int,
        payment_id: int | None = None,
        treasury_entry_id: int | None = None,
        allocation_date: datetime.datetime | None = None,
    ) -> list[PaymentAllocation]:
        """
        Spend `amount` over `rows` in order. Whatever is left after the last
        row is an advance and produces no allocation.
        """
        remaining = to_money(amount)
        allocation_date = allocation_date or datetime.datetime.now()
        allocations = []
        for row in rows:
            if remaining <= 0:
                break
            portion = to_money(min(remaining, row.outstanding))
            if portion <= 0:
                continue
            allocation = PaymentAllocation(
                customer_id=customer_id,
                sale_id=row.sale_id,
                source_type=source_type,
                amount=portion,
                allocation_date=allocation_date,
                payment_id=payment_id,
                treasury_entry_id=treasury_entry_id,
            )
            self.db.add(allocation)
            allocations.append(allocation)
            row.allocated += portion
            row.outstanding -= portion
            remaining -= portion
        self.db.flush()
        if remaining > 0:
            logger.debug(
                "Customer id=%s keeps %s unallocated as advance", customer_id, remaining
            )
        return allocations

    def allocate_payment(
        self,
        customer_id: int,
        amount: Decimal,
        source_type: AllocationSource,
        payment_id: int | None = None,
        treasury_entry_id: int | None = None,
        allocation_date: datetime.datetime | None = None,
        sale_id: int | None = None,
        balance_override: Decimal | None = None,
    ) -> list[PaymentAllocation]:
        """
        Allocate a payment FIFO, or entirely to `sale_id` when the payer
        named an invoice.
        """
        amount = to_money(amount)
        if amount <= 0:
            raise InvalidAmount(f"amount={amount}")
        rows = self.outstanding_invoices(customer_id, balance_override)
        if sale_id is not None:
            target = next((row for row in rows if row.sale_id == sale_id), None)
            outstanding = target.outstanding if target else ZERO
            if target is None or amount > outstanding:
                raise AllocationOverrun(
                    f"sale id={sale_id} outstanding={outstanding} amount={amount}"
                )
            rows = [target]
        return self.apply_allocations(
            rows,
            amount,
            source_type,
            customer_id,
            payment_id=payment_id,
            treasury_entry_id=treasury_entry_id,
            allocation_date=allocation_date,
        )

    def allocations_for_sale(self, sale_id: int) -> list[PaymentAllocation]:
        return (
            self.db.query(PaymentAllocation)
            .filter(PaymentAllocation.sale_id == sale_id)
            .order_by(PaymentAllocation.id)
            .all()
        )

    def allocations_for_customer(self, customer_id: int) -> list[PaymentAllocation]:
        return (
            self.db.query(PaymentAllocation)
            .filter(PaymentAllocation.customer_id == customer_id)
            .order_by(PaymentAllocation.allocation_date, PaymentAllocation.id)
            .all()
        )

