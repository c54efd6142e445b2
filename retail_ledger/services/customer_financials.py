"""Customer financial synchronizer.

`Customer.balance`, `first_activity_date` and `last_payment_date` are a
cache over customer transactions, sales and payments. Business actions
move the cache with `apply_delta`; `rebuild` and `rebuild_all` recompute it
from history and are the only way drift is corrected.
"""

import datetime
import logging
from decimal import Decimal
from typing import Callable, Iterable

from fastapi import Depends
from retail_ledger.config import Config, get_config
from retail_ledger.errors.common import NotFoundError
from retail_ledger.models.customer import Customer
from retail_ledger.models.customer_payment import CustomerPayment
from retail_ledger.models.customer_transaction import (
    CustomerTransaction,
    CustomerTransactionType,
)
from retail_ledger.models.sale import Sale
from retail_ledger.money import ZERO, to_money
from retail_ledger.schemas.treasury_entry import ReferenceSchema
from retail_ledger.uow import get_uow
from sqlalchemy import case, func, or_, select, update
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


class CustomerFinancialsService:
    def __init__(
        self,
        db: Session = Depends(get_uow),
        config: Config = Depends(get_config),
    ):
        self.db = db
        self.config = config

    def apply_delta(
        self,
        customer_id: int,
        balance_delta: Decimal,
        activity_date: datetime.datetime | None = None,
        payment_date: datetime.datetime | None = None,
    ) -> None:
        """
        Move the cached balance by `balance_delta` in one UPDATE statement.
        The first activity date only moves back, the last payment date only
        moves forward.
        """
        values: dict = {
            "balance": Customer.balance + to_money(balance_delta),
            "financials_updated_at": datetime.datetime.now(),
        }
        if activity_date is not None:
            values["first_activity_date"] = case(
                (
                    or_(
                        Customer.first_activity_date.is_(None),
                        Customer.first_activity_date > activity_date,
                    ),
                    activity_date,
                ),
                else_=Customer.first_activity_date,
            )
        if payment_date is not None:
            values["last_payment_date"] = case(
                (
                    or_(
                        Customer.last_payment_date.is_(None),
                        Customer.last_payment_date < payment_date,
                    ),
                    payment_date,
                ),
                else_=Customer.last_payment_date,
            )
        self.db.flush()
        exists = self.db.query(Customer.id).filter(Customer.id == customer_id).first()
        if exists is None:
            raise NotFoundError(f"Customer id={customer_id}")
        self.db.execute(
            update(Customer)
            .where(Customer.id == customer_id)
            .values(**values)
            .execution_options(synchronize_session="fetch")
        )
        logger.debug("Customer id=%s balance moved by %s", customer_id, balance_delta)

    def book(
        self,
        customer_id: int,
        transaction_type: CustomerTransactionType,
        reference: ReferenceSchema,
        date: datetime.datetime,
        debit: Decimal = ZERO,
        credit: Decimal = ZERO,
        activity_date: datetime.datetime | None = None,
        payment_date: datetime.datetime | None = None,
    ) -> CustomerTransaction:
        """Record a customer transaction and move the cache by debit - credit."""
        transaction = CustomerTransaction(
            customer_id=customer_id,
            date=date,
            type=transaction_type,
            reference_type=reference.kind,
            reference_id=reference.id,
            debit=to_money(debit),
            credit=to_money(credit),
        )
        self.db.add(transaction)
        self.db.flush()
        self.apply_delta(
            customer_id,
            transaction.debit - transaction.credit,
            activity_date=activity_date,
            payment_date=payment_date,
        )
        return transaction

    def unbook(self, reference: ReferenceSchema) -> set[int]:
        """
        Remove the customer transactions of a business object and reverse
        their effect on the cached balances. Returns the affected customers.
        """
        transactions = (
            self.db.query(CustomerTransaction)
            .filter(
                CustomerTransaction.reference_type == reference.kind,
                CustomerTransaction.reference_id == reference.id,
            )
            .all()
        )
        reversal: dict[int, Decimal] = {}
        for transaction in transactions:
            reversal[transaction.customer_id] = reversal.get(
                transaction.customer_id, ZERO
            ) - (transaction.debit - transaction.credit)
            self.db.delete(transaction)
        self.db.flush()
        for customer_id, delta in reversal.items():
            self.apply_delta(customer_id, delta)
        return set(reversal)

    def _activity_dates(
        self, customer_ids: list[int]
    ) -> dict[int, tuple[datetime.datetime | None, datetime.datetime | None]]:
        first_sale = dict(
            self.db.execute(
                select(Sale.customer_id, func.min(Sale.invoice_date))
                .where(Sale.customer_id.in_(customer_ids))
                .group_by(Sale.customer_id)
            ).all()
        )
        payment_bounds = {
            customer_id: (first, last)
            for customer_id, first, last in self.db.execute(
                select(
                    CustomerPayment.customer_id,
                    func.min(CustomerPayment.payment_date),
                    func.max(CustomerPayment.payment_date),
                )
                .where(CustomerPayment.customer_id.in_(customer_ids))
                .group_by(CustomerPayment.customer_id)
            ).all()
        }
        dates = {}
        for customer_id in customer_ids:
            first_payment, last_payment = payment_bounds.get(customer_id, (None, None))
            candidates = [
                d for d in (first_sale.get(customer_id), first_payment) if d is not None
            ]
            dates[customer_id] = (min(candidates) if candidates else None, last_payment)
        return dates

    def _ledger_balances(self, customer_ids: list[int]) -> dict[int, Decimal]:
        rows = self.db.execute(
            select(
                CustomerTransaction.customer_id,
                func.sum(CustomerTransaction.debit - CustomerTransaction.credit),
            )
            .where(CustomerTransaction.customer_id.in_(customer_ids))
            .group_by(CustomerTransaction.customer_id)
        ).all()
        return {customer_id: to_money(total) for customer_id, total in rows}

    def recalculate_activity_dates(self, customer_id: int) -> Customer:
        """Re-derive activity dates from history, leaving the balance alone."""
        customer = self.db.get(Customer, customer_id)
        if customer is None:
            raise NotFoundError(f"Customer id={customer_id}")
        self.db.flush()
        first_activity, last_payment = self._activity_dates([customer_id])[customer_id]
        customer.first_activity_date = first_activity
        customer.last_payment_date = last_payment
        customer.financials_updated_at = datetime.datetime.now()
        self.db.flush()
        return customer

    def _rebuild_page(self, customers: list[Customer]) -> int:
        ids = [customer.id for customer in customers]
        balances = self._ledger_balances(ids)
        dates = self._activity_dates(ids)
        now = datetime.datetime.now()
        changed = 0
        for customer in customers:
            balance = balances.get(customer.id, ZERO)
            first_activity, last_payment = dates[customer.id]
            if (
                to_money(customer.balance) != balance
                or customer.first_activity_date != first_activity
                or customer.last_payment_date != last_payment
            ):
                changed += 1
                logger.info(
                    "Customer id=%s rebuilt: balance %s -> %s",
                    customer.id,
                    customer.balance,
                    balance,
                )
            customer.balance = balance
            customer.first_activity_date = first_activity
            customer.last_payment_date = last_payment
            customer.financials_updated_at = now
        self.db.flush()
        return changed

    def rebuild(self, customer_ids: Iterable[int]) -> dict:
        """Recompute the cached financials of the given customers from history."""
        ids = sorted(set(customer_ids))
        self.db.flush()
        customers = (
            self.db.query(Customer).filter(Customer.id.in_(ids)).order_by(Customer.id).all()
        )
        missing = set(ids) - {customer.id for customer in customers}
        if missing:
            raise NotFoundError(f"Customer id={min(missing)}")
        changed = self._rebuild_page(customers) if customers else 0
        return {
            "processed": len(customers),
            "batches": 1 if customers else 0,
            "last_id": ids[-1] if ids else 0,
            "changed": changed,
        }

    def rebuild_all(
        self,
        batch_size: int | None = None,
        start_after_id: int = 0,
        on_batch: Callable[[int], None] | None = None,
    ) -> dict:
        """
        Rebuild every customer in ascending id pages, starting after
        `start_after_id`. `on_batch` is called with the last id of each page;
        the command line job commits there so it can resume from that id.
        """
        batch_size = batch_size or self.config.rebuild_batch_size
        last_id = start_after_id
        processed = batches = changed = 0
        self.db.flush()
        while True:
            customers = (
                self.db.query(Customer)
                .filter(Customer.id > last_id)
                .order_by(Customer.id)
                .limit(batch_size)
                .all()
            )
            if not customers:
                break
            changed += self._rebuild_page(customers)
            processed += len(customers)
            batches += 1
            last_id = customers[-1].id
            logger.info(
                "Rebuilt batch %d (%d customers, last id=%s)",
                batches,
                len(customers),
                last_id,
            )
            if on_batch is not None:
                on_batch(last_id)
        return {
            "processed": processed,
            "batches": batches,
            "last_id": last_id,
            "changed": changed,
        }
