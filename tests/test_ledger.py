from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from retail_ledger.errors.common import ConstraintViolation
from retail_ledger.errors.ledger import (
    EntryDirectionMismatch,
    InsufficientBalance,
    InvalidAmount,
    InvalidTransfer,
)
from retail_ledger.errors.treasury import TreasuryInactive, TreasuryNotFound
from retail_ledger.models.audit_log import AuditLog
from retail_ledger.models.treasury_entry import (
    EntryDirection,
    EntryType,
    ReferenceType,
    TreasuryEntry,
)
from retail_ledger.schemas.treasury import TreasuryCreateSchema
from retail_ledger.schemas.treasury_entry import ReferenceSchema
from retail_ledger.services.ledger import LedgerService


class TestLedgerService:
    def test_main_treasury_scenario(self, container):
        ledger = container.ledger_service
        main = container.treasury_service.get_default()
        assert main.code == "MAIN"
        assert main.current_balance == Decimal("0.00")

        income = ledger.post_entry(
            entry_type=EntryType.SALE_INCOME, amount=Decimal("200"), payment_method_id=1
        )
        assert income.idempotent is False
        assert income.entry.treasury_id == main.id
        assert income.entry.direction == EntryDirection.IN
        assert income.entry.balance_before == Decimal("0.00")
        assert income.entry.balance_after == Decimal("200.00")

        expense = ledger.post_entry(
            entry_type=EntryType.EXPENSE_PAYMENT, amount=Decimal("50")
        )
        assert expense.entry.direction == EntryDirection.OUT
        assert expense.entry.balance_before == Decimal("200.00")
        assert expense.entry.balance_after == Decimal("150.00")

        assert main.current_balance == Decimal("150.00")
        assert container.treasury_service.computed_balance(main) == Decimal("150.00")

    def test_amount_is_rounded_to_cents(self, container):
        posted = container.ledger_service.post_entry(
            entry_type=EntryType.MANUAL_IN, amount=Decimal("10.005")
        )
        assert posted.entry.amount == Decimal("10.01")
        assert posted.entry.balance_after == Decimal("160.01")

    def test_idempotency_key_applies_once(self, container):
        ledger = container.ledger_service
        first = ledger.post_entry(
            entry_type=EntryType.MANUAL_IN,
            amount=Decimal("30"),
            idempotency_key="retry-me",
        )
        second = ledger.post_entry(
            entry_type=EntryType.MANUAL_IN,
            amount=Decimal("30"),
            idempotency_key="retry-me",
        )
        assert first.idempotent is False
        assert second.idempotent is True
        assert second.entry.id == first.entry.id

        main = container.treasury_service.get_default()
        assert main.current_balance == Decimal("190.01")
        count = (
            container.db.query(TreasuryEntry)
            .filter(TreasuryEntry.idempotency_key == "retry-me")
            .count()
        )
        assert count == 1

    @pytest.mark.parametrize("amount", ["0", "-5", "0.001"])
    def test_non_positive_amount_is_rejected(self, container, amount):
        with pytest.raises(InvalidAmount):
            container.ledger_service.post_entry(
                entry_type=EntryType.MANUAL_IN, amount=Decimal(amount)
            )

    def test_insufficient_balance(self, container):
        main = container.treasury_service.get_default()
        before = main.current_balance
        with pytest.raises(InsufficientBalance):
            container.ledger_service.post_entry(
                entry_type=EntryType.EXPENSE_PAYMENT, amount=Decimal("1000")
            )
        assert main.current_balance == before

    def test_allow_negative(self, container):
        treasury = container.treasury_service.create(
            TreasuryCreateSchema(name="Petty cash")
        )
        posted = container.ledger_service.post_entry(
            entry_type=EntryType.EXPENSE_PAYMENT,
            amount=Decimal("12.50"),
            treasury_id=treasury.id,
            allow_negative=True,
        )
        assert posted.entry.balance_after == Decimal("-12.50")
        assert treasury.current_balance == Decimal("-12.50")

    def test_direction_must_match_entry_type(self, container):
        with pytest.raises(EntryDirectionMismatch):
            container.ledger_service.post_entry(
                entry_type=EntryType.SALE_INCOME,
                direction=EntryDirection.OUT,
                amount=Decimal("1"),
            )

    def test_unknown_and_inactive_treasury(self, container):
        with pytest.raises(TreasuryNotFound):
            container.ledger_service.post_entry(
                entry_type=EntryType.MANUAL_IN, amount=Decimal("1"), treasury_id=9999
            )
        treasury = container.treasury_service.create(
            TreasuryCreateSchema(name="Closed till", is_active=False)
        )
        with pytest.raises(TreasuryInactive):
            container.ledger_service.post_entry(
                entry_type=EntryType.MANUAL_IN,
                amount=Decimal("1"),
                treasury_id=treasury.id,
            )

    def test_rollback_by_reference(self, container):
        ledger = container.ledger_service
        treasury = container.treasury_service.create(
            TreasuryCreateSchema(name="Counter", opening_balance=Decimal("10"))
        )
        reference = ReferenceSchema(kind=ReferenceType.SALE, id=77)
        for amount in ("30", "20"):
            ledger.post_entry(
                entry_type=EntryType.SALE_INCOME,
                amount=Decimal(amount),
                treasury_id=treasury.id,
                reference=reference,
            )
        assert treasury.current_balance == Decimal("60.00")

        assert ledger.rollback_by_reference(reference) == 2
        assert treasury.current_balance == Decimal("10.00")
        remaining = (
            container.db.query(TreasuryEntry)
            .filter(
                TreasuryEntry.reference_type == ReferenceType.SALE,
                TreasuryEntry.reference_id == 77,
            )
            .count()
        )
        assert remaining == 0
        # nothing left to undo
        assert ledger.rollback_by_reference(reference) == 0
        assert treasury.current_balance == Decimal("10.00")

    def test_transfer(self, container):
        source = container.treasury_service.create(
            TreasuryCreateSchema(name="Front", opening_balance=Decimal("100"))
        )
        target = container.treasury_service.create(TreasuryCreateSchema(name="Back"))

        result = container.ledger_service.transfer(source.id, target.id, Decimal("40"))
        assert source.current_balance == Decimal("60.00")
        assert target.current_balance == Decimal("40.00")

        out_entry, in_entry = result.out_entry, result.in_entry
        assert out_entry.entry_type == EntryType.TRANSFER_OUT
        assert in_entry.entry_type == EntryType.TRANSFER_IN
        for entry in (out_entry, in_entry):
            assert entry.reference_type == ReferenceType.TRANSFER
            assert entry.reference_id == out_entry.id
        assert out_entry.meta["counterpart_entry_id"] == in_entry.id
        assert in_entry.meta["counterpart_entry_id"] == out_entry.id

        # a transfer rolls back as a unit
        count = container.ledger_service.rollback_by_reference(
            ReferenceSchema(kind=ReferenceType.TRANSFER, id=out_entry.id)
        )
        assert count == 2
        assert source.current_balance == Decimal("100.00")
        assert target.current_balance == Decimal("0.00")

    def test_transfer_is_all_or_nothing(self, container):
        source = container.treasury_service.create(
            TreasuryCreateSchema(name="Drawer A", opening_balance=Decimal("5"))
        )
        target = container.treasury_service.create(
            TreasuryCreateSchema(name="Drawer B")
        )
        with pytest.raises(InsufficientBalance):
            container.ledger_service.transfer(source.id, target.id, Decimal("6"))
        assert source.current_balance == Decimal("5.00")
        assert target.current_balance == Decimal("0.00")
        legs = (
            container.db.query(TreasuryEntry)
            .filter(TreasuryEntry.treasury_id.in_([source.id, target.id]))
            .filter(TreasuryEntry.entry_type != EntryType.OPENING_BALANCE)
            .count()
        )
        assert legs == 0

    def test_transfer_to_itself_is_rejected(self, container):
        main = container.treasury_service.get_default()
        with pytest.raises(InvalidTransfer):
            container.ledger_service.transfer(main.id, main.id, Decimal("1"))

    def test_cached_balances_match_history(self, container):
        treasuries = container.treasury_service.get_all().items
        assert treasuries
        for treasury in treasuries:
            computed = container.treasury_service.computed_balance(treasury)
            assert treasury.current_balance == computed


class TestTreasuryEntryEndpoints:
    def test_manual_in_and_out(self, test_app: TestClient):
        response = test_app.post(
            "/treasury-entries",
            json={"transaction_type": "IN", "amount": "50", "comment": "float"},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["idempotent"] is False
        assert len(data["entries"]) == 1
        assert data["entries"][0]["entry_type"] == "MANUAL_IN"
        assert data["entries"][0]["reference_type"] == "MANUAL"
        assert data["entries"][0]["amount"] == "50.00"

        response = test_app.post(
            "/treasury-entries",
            json={
                "transaction_type": "OUT",
                "amount": "20",
                "entry_type": "EXPENSE_PAYMENT",
            },
        )
        assert response.status_code == 200
        entry = response.json()["entries"][0]
        assert entry["entry_type"] == "EXPENSE_PAYMENT"
        assert entry["balance_after"] == "30.00"

    def test_manual_idempotency(self, test_app: TestClient):
        payload = {"transaction_type": "IN", "amount": "7", "idempotency_key": "m-1"}
        first = test_app.post("/treasury-entries", json=payload)
        second = test_app.post("/treasury-entries", json=payload)
        assert first.status_code == 200
        assert second.status_code == 200
        assert second.json()["idempotent"] is True
        assert second.json()["entries"][0]["id"] == first.json()["entries"][0]["id"]

        response = test_app.get("/treasuries/default")
        assert response.json()["current_balance"] == "37.00"

    def test_business_entry_types_are_not_manual(self, test_app: TestClient):
        response = test_app.post(
            "/treasury-entries",
            json={"transaction_type": "IN", "amount": "5", "entry_type": "SALE_INCOME"},
        )
        assert response.status_code == 422

    def test_direction_mismatch(self, test_app: TestClient):
        response = test_app.post(
            "/treasury-entries",
            json={"transaction_type": "IN", "amount": "5", "entry_type": "MANUAL_OUT"},
        )
        assert response.status_code == 418
        assert response.json()["error_code"] == 7003

    def test_overdraft_is_rejected(self, test_app: TestClient):
        response = test_app.post(
            "/treasury-entries", json={"transaction_type": "OUT", "amount": "1000"}
        )
        assert response.status_code == 418
        assert response.json()["error_code"] == 7002

    def test_transfer_and_rollback(self, test_app: TestClient):
        main = test_app.get("/treasuries/default").json()
        safe = test_app.post("/treasuries", json={"name": "Safe"}).json()

        response = test_app.post(
            "/treasury-entries",
            json={
                "transaction_type": "TRANSFER",
                "amount": "12",
                "source_treasury_id": main["id"],
                "target_treasury_id": safe["id"],
            },
        )
        assert response.status_code == 200
        out_entry, in_entry = response.json()["entries"]
        assert out_entry["entry_type"] == "TRANSFER_OUT"
        assert in_entry["entry_type"] == "TRANSFER_IN"

        response = test_app.post(
            "/treasury-entries/transfer",
            json={
                "source_treasury_id": main["id"],
                "target_treasury_id": safe["id"],
                "amount": "3",
            },
        )
        assert response.status_code == 200
        assert response.json()["in_entry"]["balance_after"] == "15.00"

        response = test_app.get(f"/treasuries/{safe['id']}")
        assert response.json()["current_balance"] == "15.00"

        response = test_app.delete(
            f"/treasury-entries/by-reference/TRANSFER/{out_entry['id']}"
        )
        assert response.status_code == 200
        assert response.json() == {"count": 2}

        response = test_app.get(f"/treasuries/{safe['id']}")
        assert response.json()["current_balance"] == "3.00"
        response = test_app.get(f"/treasuries/{main['id']}")
        assert response.json()["current_balance"] == "34.00"

    def test_transfer_requires_both_treasuries(self, test_app: TestClient):
        response = test_app.post(
            "/treasury-entries",
            json={"transaction_type": "TRANSFER", "amount": "1"},
        )
        assert response.status_code == 422

    def test_list_entries_with_summary(self, test_app: TestClient):
        main = test_app.get("/treasuries/default").json()
        response = test_app.get(
            "/treasury-entries", params={"treasury_id": main["id"]}
        )
        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 4
        assert data["summary"] == {
            "total_in": "57.00",
            "total_out": "23.00",
            "net": "34.00",
        }
        # newest first
        ids = [entry["id"] for entry in data["items"]]
        assert ids == sorted(ids, reverse=True)

        response = test_app.get(
            "/treasury-entries",
            params={"treasury_id": main["id"], "direction": "OUT"},
        )
        assert response.json()["total"] == 2

        response = test_app.get("/treasury-entries", params={"search": "float"})
        assert response.json()["total"] == 1

    def test_read_entry(self, test_app: TestClient):
        response = test_app.get("/treasury-entries", params={"limit": 1})
        entry = response.json()["items"][0]
        response = test_app.get(f"/treasury-entries/{entry['id']}")
        assert response.status_code == 200
        assert response.json() == entry

        response = test_app.get("/treasury-entries/99999")
        assert response.status_code == 418
        assert response.json()["error_code"] == 1404


class TestIdempotencyReplay:
    def test_key_reused_with_another_payload_is_rejected(self, container):
        ledger = container.ledger_service
        first = ledger.post_entry(
            entry_type=EntryType.MANUAL_IN,
            amount=Decimal("20"),
            idempotency_key="shared",
        )
        main = container.treasury_service.get_default()
        assert main.current_balance == Decimal("20.00")

        mismatches = [
            {"entry_type": EntryType.MANUAL_IN, "amount": Decimal("21")},
            {"entry_type": EntryType.DEPOSIT_IN, "amount": Decimal("20")},
            {
                "entry_type": EntryType.MANUAL_IN,
                "amount": Decimal("20"),
                "reference": ReferenceSchema(kind=ReferenceType.SALE, id=1),
            },
        ]
        for payload in mismatches:
            with pytest.raises(ConstraintViolation):
                with container.db.begin_nested():
                    ledger.post_entry(idempotency_key="shared", **payload)
        assert main.current_balance == Decimal("20.00")

        replay = ledger.post_entry(
            entry_type=EntryType.MANUAL_IN,
            amount=Decimal("20.00"),
            idempotency_key="shared",
        )
        assert replay.idempotent is True
        assert replay.entry.id == first.entry.id

    def test_concurrent_insert_returns_stored_entry(self, container, monkeypatch):
        ledger = container.ledger_service
        first = ledger.post_entry(
            entry_type=EntryType.MANUAL_IN,
            amount=Decimal("10"),
            idempotency_key="race",
        )
        main = container.treasury_service.get_default()
        balance = main.current_balance

        # the pre-insert lookup misses, as if the other writer had not committed yet
        lookup = LedgerService._find_by_idempotency_key
        misses = []

        def miss_once(self, key):
            if not misses:
                misses.append(key)
                return None
            return lookup(self, key)

        monkeypatch.setattr(LedgerService, "_find_by_idempotency_key", miss_once)
        second = ledger.post_entry(
            entry_type=EntryType.MANUAL_IN,
            amount=Decimal("10"),
            idempotency_key="race",
        )
        assert misses == ["race"]
        assert second.idempotent is True
        assert second.entry.id == first.entry.id
        assert main.current_balance == balance
        assert container.treasury_service.computed_balance(main) == balance

    def test_entries_are_audited(self, container):
        posted = container.ledger_service.post_entry(
            entry_type=EntryType.MANUAL_IN, amount=Decimal("2.5")
        )
        record = (
            container.db.query(AuditLog)
            .filter(
                AuditLog.entity_type == "TreasuryEntry",
                AuditLog.entity_id == posted.entry.id,
            )
            .one()
        )
        assert record.action == "ENTRY_CREATED"
        assert record.payload["amount"] == "2.50"
        assert record.payload["entry_type"] == "MANUAL_IN"
        assert record.payload["reference_type"] is None
