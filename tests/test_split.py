from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from retail_ledger.errors.ledger import InvalidAmount
from retail_ledger.errors.split import InvalidPaymentMethod, SplitMismatch
from retail_ledger.schemas.payment_method import PaymentMethodUpdateSchema
from retail_ledger.schemas.split import SplitRowInputSchema


def rows(*pairs):
    return [
        SplitRowInputSchema(method=method, amount=amount) for method, amount in pairs
    ]


class TestPaymentSplitResolver:
    def test_no_rows_means_cash(self, container):
        resolved = container.split_service.resolve_splits(Decimal("80"))
        assert len(resolved) == 1
        assert resolved[0].index == 0
        assert resolved[0].payment_method_id == 1
        assert resolved[0].amount == Decimal("80.00")

    def test_no_rows_uses_fallback_method(self, container):
        resolved = container.split_service.resolve_splits(Decimal("80"), [], "visa")
        assert [r.payment_method_id for r in resolved] == [2]

    def test_methods_resolve_by_id_code_name_and_alias(self, container):
        resolved = container.split_service.resolve_splits(
            Decimal("60"),
            rows(
                (3, "10"),
                ("BANK_TRANSFER", "10"),
                ("InstaPay", "10"),
                ("Vodafone-Cash", "10"),
                ("كاش", "10"),
                ("5", "10"),
            ),
        )
        assert [r.payment_method_id for r in resolved] == [3, 4, 6, 5, 1, 5]
        assert [r.index for r in resolved] == [0, 1, 2, 3, 4, 5]

    def test_split_rows_add_up_to_total(self, container):
        resolved = container.split_service.resolve_splits(
            Decimal("100"), rows(("cash", "30.50"), ("visa", "69.50"))
        )
        assert sum(r.amount for r in resolved) == Decimal("100.00")

    def test_rounding_drift_within_tolerance(self, container):
        resolved = container.split_service.resolve_splits(
            Decimal("100"),
            rows(("cash", "33.33"), ("visa", "33.33"), ("cash", "33.33")),
        )
        assert sum(r.amount for r in resolved) == Decimal("99.99")

    def test_split_mismatch(self, container):
        with pytest.raises(SplitMismatch):
            container.split_service.resolve_splits(
                Decimal("100"), rows(("cash", "50"), ("visa", "40"))
            )

    def test_non_positive_row(self, container):
        with pytest.raises(InvalidAmount):
            container.split_service.resolve_splits(
                Decimal("100"), rows(("cash", "100"), ("visa", "0"))
            )

    def test_non_positive_total(self, container):
        with pytest.raises(InvalidAmount):
            container.split_service.resolve_splits(Decimal("0"))

    def test_unknown_method(self, container):
        with pytest.raises(InvalidPaymentMethod):
            container.split_service.resolve_splits(
                Decimal("10"), rows(("bitcoin", "10"))
            )
        with pytest.raises(InvalidPaymentMethod):
            container.split_service.resolve_splits(Decimal("10"), [], 42)

    def test_derived_idempotency_keys(self, container):
        resolved = container.split_service.resolve_splits(
            Decimal("20"), rows(("cash", "10"), ("visa", "10"))
        )
        assert [r.idempotency_key("sale-9") for r in resolved] == [
            "sale-9:0",
            "sale-9:1",
        ]
        assert resolved[1].idempotency_key("sale-9", "SALE") == "SALE:sale-9:1"
        assert resolved[0].idempotency_key(None) is None

    def test_inactive_method_does_not_resolve(self, container):
        method = container.payment_method_service.update(
            3, PaymentMethodUpdateSchema(is_active=False)
        )
        assert method.modified_at is not None
        with pytest.raises(InvalidPaymentMethod):
            container.split_service.resolve_splits(
                Decimal("10"), rows(("mastercard", "10"))
            )


class TestPaymentMethodEndpoints:
    def test_bootstrapped_methods(self, test_app: TestClient):
        response = test_app.get("/payment-methods")
        assert response.status_code == 200
        codes = {m["code"] for m in response.json()["items"]}
        assert codes == {
            "CASH",
            "VISA",
            "MASTERCARD",
            "BANK_TRANSFER",
            "VODAFONE_CASH",
            "INSTAPAY",
        }

    def test_resolve(self, test_app: TestClient):
        response = test_app.get("/payment-methods/resolve/vodafone cash")
        assert response.status_code == 200
        assert response.json()["code"] == "VODAFONE_CASH"

        response = test_app.get("/payment-methods/resolve/bitcoin")
        assert response.status_code == 418
        assert response.json()["error_code"] == 6101

    def test_create_and_delete(self, test_app: TestClient):
        response = test_app.post(
            "/payment-methods", json={"code": "store credit", "name": "Store credit"}
        )
        assert response.status_code == 200
        method = response.json()
        assert method["code"] == "STORE_CREDIT"

        response = test_app.post(
            "/payment-methods", json={"code": "STORE_CREDIT", "name": "Duplicate"}
        )
        assert response.status_code == 418
        assert response.json()["error_code"] == 1409

        response = test_app.delete(f"/payment-methods/{method['id']}")
        assert response.status_code == 200

    def test_method_in_use_can_not_be_deleted(self, test_app: TestClient):
        response = test_app.post(
            "/treasury-entries",
            json={"transaction_type": "IN", "amount": "5", "payment_method_id": 2},
        )
        assert response.status_code == 200

        response = test_app.delete("/payment-methods/2")
        assert response.status_code == 418
        assert response.json()["error_code"] == 1409
