from datetime import datetime
from decimal import Decimal

import pytest
from retail_ledger.models.payment_allocation import AllocationSource
from retail_ledger.models.treasury_entry import EntryType, ReferenceType, TreasuryEntry
from retail_ledger.schemas.customer import CustomerCreateSchema
from retail_ledger.schemas.sale import SaleCreateSchema
from retail_ledger.schemas.split import SplitRowInputSchema
from retail_ledger.schemas.treasury import TreasuryCreateSchema
from retail_ledger.schemas.treasury_entry import ReferenceSchema


class TestLedgerGateway:
    def test_post_entry(self, container):
        result = container.ledger_gateway.post_entry(
            entry_type=EntryType.MANUAL_IN,
            amount=Decimal("25"),
            reference=ReferenceSchema(kind=ReferenceType.MANUAL),
        )
        assert result.ok is True
        assert result.error_code is None
        assert result.data.idempotent is False
        assert str(result.data.entry.amount) == "25.00"
        assert str(result.data.entry.balance_after) == "25.00"

    def test_errors_are_returned_not_raised(self, container):
        result = container.ledger_gateway.post_entry(
            entry_type=EntryType.MANUAL_IN, amount=Decimal("0")
        )
        assert result.ok is False
        assert result.data is None
        assert result.error_code == 7001
        assert result.where == "post_entry"

        result = container.ledger_gateway.post_entry(
            entry_type=EntryType.EXPENSE_PAYMENT, amount=Decimal("1000")
        )
        assert result.ok is False
        assert result.error_code == 7002

    @pytest.mark.parametrize("amount", ["NaN", "Infinity", "-Infinity", "sNaN"])
    def test_non_finite_amounts_are_reported(self, container, amount):
        result = container.ledger_gateway.post_entry(
            entry_type=EntryType.MANUAL_IN, amount=Decimal(amount)
        )
        assert result.ok is False
        assert result.error_code == 7001
        assert result.where == "post_entry"

        result = container.ledger_gateway.resolve_splits(Decimal(amount))
        assert result.ok is False
        assert result.error_code == 7001

    def test_failed_transfer_leaves_no_partial_writes(self, container):
        gateway = container.ledger_gateway
        source = container.treasury_service.create(
            TreasuryCreateSchema(name="Gateway source", opening_balance=Decimal("10"))
        )
        target = container.treasury_service.create(
            TreasuryCreateSchema(name="Gateway target")
        )
        result = gateway.transfer(source.id, target.id, Decimal("11"))
        assert result.ok is False
        assert result.error_code == 7002
        assert result.where == "transfer"

        assert source.current_balance == Decimal("10.00")
        assert target.current_balance == Decimal("0.00")
        legs = (
            container.db.query(TreasuryEntry)
            .filter(
                TreasuryEntry.entry_type.in_(
                    [EntryType.TRANSFER_IN, EntryType.TRANSFER_OUT]
                )
            )
            .count()
        )
        assert legs == 0

        result = gateway.transfer(source.id, target.id, Decimal("4"))
        assert result.ok is True
        assert str(result.data.out_entry.balance_after) == "6.00"
        assert str(result.data.in_entry.balance_after) == "4.00"

        result = gateway.rollback_by_reference(
            ReferenceSchema(kind=ReferenceType.TRANSFER, id=result.data.out_entry.id)
        )
        assert result.ok is True
        assert result.data.count == 2

        result = gateway.transfer(source.id, source.id, Decimal("1"))
        assert result.error_code == 7004

    def test_resolve_splits(self, container):
        rows = [
            SplitRowInputSchema(method="cash", amount=Decimal("7.50")),
            SplitRowInputSchema(method="visa", amount=Decimal("2.50")),
        ]
        result = container.ledger_gateway.resolve_splits(Decimal("10"), rows)
        assert result.ok is True
        resolved = [(r.index, r.payment_method_id, str(r.amount)) for r in result.data]
        assert resolved == [(0, 1, "7.50"), (1, 2, "2.50")]

        result = container.ledger_gateway.resolve_splits(Decimal("11"), rows)
        assert result.ok is False
        assert result.error_code == 6102
        assert result.where == "resolve_splits"

    def test_allocation_calls(self, container):
        gateway = container.ledger_gateway
        customer = container.customer_service.create(CustomerCreateSchema(name="Omar"))
        sale = container.sale_service.create(
            SaleCreateSchema(
                customer_id=customer.id,
                total=Decimal("60"),
                invoice_date=datetime(2024, 7, 1),
            )
        )

        result = gateway.outstanding_invoices(customer.id)
        assert result.ok is True
        assert [(r.sale_id, str(r.outstanding)) for r in result.data] == [
            (sale.id, "60.00")
        ]

        applied = gateway.apply_allocations(
            result.data, Decimal("25"), AllocationSource.DEPOSIT, customer.id
        )
        assert applied.ok is True
        assert [(a.sale_id, str(a.amount)) for a in applied.data] == [
            (sale.id, "25.00")
        ]

        result = gateway.outstanding_invoices(9999)
        assert result.ok is False
        assert result.error_code == 1404
        assert result.where == "outstanding_invoices"

    def test_customer_calls(self, container):
        gateway = container.ledger_gateway
        customer = container.customer_service.create(CustomerCreateSchema(name="Pia"))

        result = gateway.apply_delta(
            customer.id, Decimal("15"), activity_date=datetime(2024, 8, 1)
        )
        assert result.ok is True
        assert customer.balance == Decimal("15.00")

        result = gateway.apply_delta(9999, Decimal("1"))
        assert result.ok is False
        assert result.error_code == 1404

        # no history backs the delta above, so a rebuild clears it
        result = gateway.rebuild([customer.id])
        assert result.ok is True
        assert result.data.changed == 1
        assert customer.balance == Decimal("0.00")

        result = gateway.recalculate_activity_dates(customer.id)
        assert result.ok is True
        assert result.data.first_activity_date is None

        result = gateway.rebuild_all(batch_size=1)
        assert result.ok is True
        assert result.data.processed == 2
        assert result.data.batches == 2
        assert result.data.changed == 0

        result = gateway.rebuild([9999])
        assert result.ok is False
        assert result.error_code == 1404
