import pytest
from fastapi.testclient import TestClient


@pytest.fixture(scope="class")
def customer_one(test_app: TestClient):
    response = test_app.post("/customers", json={"name": "Karim", "phone": "0100"})
    assert response.status_code == 200
    return response.json()


@pytest.fixture(scope="class")
def walk_in_sale(test_app: TestClient):
    response = test_app.post("/sales", json={"total": "200", "paid_amount": "200"})
    assert response.status_code == 200
    return response.json()


@pytest.fixture(scope="class")
def credit_sale(test_app: TestClient, customer_one):
    response = test_app.post(
        "/sales",
        json={
            "customer_id": customer_one["id"],
            "total": "100",
            "paid_amount": "50",
            "invoice_date": "2024-05-01T00:00:00",
            "payments": [
                {"method": "cash", "amount": "30"},
                {"method": "Visa", "amount": "20"},
            ],
        },
    )
    assert response.status_code == 200
    return response.json()


def main_balance(test_app: TestClient) -> str:
    return test_app.get("/treasuries/default").json()["current_balance"]


def sale_entries(test_app: TestClient, sale_id: int) -> list[dict]:
    response = test_app.get(
        "/treasury-entries",
        params={"reference_type": "SALE", "reference_id": sale_id},
    )
    assert response.status_code == 200
    return response.json()["items"]


class TestSaleEndpoints:
    def test_walk_in_sale(self, test_app: TestClient, walk_in_sale):
        assert walk_in_sale["customer_id"] is None
        assert walk_in_sale["remaining_amount"] == "0.00"
        assert main_balance(test_app) == "200.00"

        entries = sale_entries(test_app, walk_in_sale["id"])
        assert len(entries) == 1
        assert entries[0]["entry_type"] == "SALE_INCOME"
        assert entries[0]["amount"] == "200.00"
        assert entries[0]["payment_method_id"] == 1

    def test_walk_in_sale_must_be_paid_in_full(self, test_app: TestClient):
        response = test_app.post("/sales", json={"total": "20", "paid_amount": "5"})
        assert response.status_code == 422

    def test_credit_sale_with_split_payment(
        self, test_app: TestClient, customer_one, credit_sale
    ):
        assert credit_sale["remaining_amount"] == "50.00"
        assert main_balance(test_app) == "250.00"

        entries = sale_entries(test_app, credit_sale["id"])
        assert sorted((e["payment_method_id"], e["amount"]) for e in entries) == [
            (1, "30.00"),
            (2, "20.00"),
        ]

        customer = test_app.get(f"/customers/{customer_one['id']}").json()
        assert customer["balance"] == "50.00"
        assert customer["first_activity_date"] == "2024-05-01T00:00:00"

        response = test_app.get(
            "/customers", params={"has_debt": True, "name": "kar"}
        )
        assert [c["id"] for c in response.json()["items"]] == [customer_one["id"]]

    def test_split_mismatch_leaves_nothing_behind(
        self, test_app: TestClient, customer_one, credit_sale
    ):
        before = test_app.get("/sales").json()["total"]
        response = test_app.post(
            "/sales",
            json={
                "customer_id": customer_one["id"],
                "total": "100",
                "paid_amount": "50",
                "payments": [
                    {"method": "cash", "amount": "30"},
                    {"method": "visa", "amount": "10"},
                ],
            },
        )
        assert response.status_code == 418
        assert response.json()["error_code"] == 6102

        assert test_app.get("/sales").json()["total"] == before
        assert main_balance(test_app) == "250.00"
        customer = test_app.get(f"/customers/{customer_one['id']}").json()
        assert customer["balance"] == "50.00"

    def test_sale_idempotency(self, test_app: TestClient):
        payload = {"total": "10", "paid_amount": "10", "idempotency_key": "sale-abc"}
        first = test_app.post("/sales", json=payload)
        second = test_app.post("/sales", json=payload)
        assert first.status_code == 200
        assert second.status_code == 200
        assert second.json()["id"] == first.json()["id"]
        assert main_balance(test_app) == "260.00"

        entries = sale_entries(test_app, first.json()["id"])
        assert [e["idempotency_key"] for e in entries] == ["SALE:sale-abc:0"]

    def test_update_sale_rebooks(
        self, test_app: TestClient, customer_one, credit_sale
    ):
        response = test_app.patch(
            f"/sales/{credit_sale['id']}", json={"paid_amount": "100"}
        )
        assert response.status_code == 200
        assert response.json()["remaining_amount"] == "0.00"
        assert main_balance(test_app) == "310.00"

        entries = sale_entries(test_app, credit_sale["id"])
        assert [(e["payment_method_id"], e["amount"]) for e in entries] == [
            (1, "100.00")
        ]
        customer = test_app.get(f"/customers/{customer_one['id']}").json()
        assert customer["balance"] == "0.00"

        response = test_app.get(f"/sales/{credit_sale['id']}/allocations")
        assert response.status_code == 200
        assert response.json() == []

    def test_update_sale_rejects_overpayment(self, test_app: TestClient, credit_sale):
        response = test_app.patch(
            f"/sales/{credit_sale['id']}", json={"paid_amount": "150"}
        )
        assert response.status_code == 418
        assert response.json()["error_code"] == 7001
        assert main_balance(test_app) == "310.00"

    def test_delete_sale(self, test_app: TestClient, walk_in_sale):
        response = test_app.delete(f"/sales/{walk_in_sale['id']}")
        assert response.status_code == 200
        assert main_balance(test_app) == "110.00"
        assert sale_entries(test_app, walk_in_sale["id"]) == []

        response = test_app.get(f"/sales/{walk_in_sale['id']}")
        assert response.status_code == 418
        assert response.json()["error_code"] == 1404

    def test_customer_with_history_can_not_be_deleted(
        self, test_app: TestClient, customer_one
    ):
        response = test_app.delete(f"/customers/{customer_one['id']}")
        assert response.status_code == 418
        assert response.json()["error_code"] == 1409

    def test_customer_without_history_can_be_deleted(self, test_app: TestClient):
        customer = test_app.post("/customers", json={"name": "Nobody"}).json()
        response = test_app.delete(f"/customers/{customer['id']}")
        assert response.status_code == 200
        assert response.json() == customer["id"]


class TestSalesReturnEndpoints:
    @pytest.fixture(scope="class")
    def paid_sale(self, test_app: TestClient, customer_one):
        response = test_app.post(
            "/sales",
            json={
                "customer_id": customer_one["id"],
                "total": "100",
                "paid_amount": "100",
            },
        )
        assert response.status_code == 200
        return response.json()

    @pytest.fixture(scope="class")
    def sales_return(self, test_app: TestClient, paid_sale):
        response = test_app.post(
            "/returns",
            json={"sale_id": paid_sale["id"], "total": "40", "refund_amount": "40"},
        )
        assert response.status_code == 200
        return response.json()

    def test_return_refunds_treasury(
        self, test_app: TestClient, customer_one, paid_sale, sales_return
    ):
        assert sales_return["customer_id"] == customer_one["id"]
        assert sales_return["treasury_id"] == paid_sale["treasury_id"]
        assert main_balance(test_app) == "60.00"

        response = test_app.get(
            "/treasury-entries",
            params={"reference_type": "RETURN", "reference_id": sales_return["id"]},
        )
        entries = response.json()["items"]
        assert [(e["entry_type"], e["direction"], e["amount"]) for e in entries] == [
            ("RETURN_REFUND", "OUT", "40.00")
        ]
        # goods back and cash back cancel out on the customer
        customer = test_app.get(f"/customers/{customer_one['id']}").json()
        assert customer["balance"] == "0.00"

    def test_return_can_not_exceed_sale(
        self, test_app: TestClient, paid_sale, sales_return
    ):
        response = test_app.post(
            "/returns", json={"sale_id": paid_sale["id"], "total": "70"}
        )
        assert response.status_code == 418
        assert response.json()["error_code"] == 7001

    def test_refund_can_not_exceed_returned_total(
        self, test_app: TestClient, paid_sale
    ):
        response = test_app.post(
            "/returns",
            json={"sale_id": paid_sale["id"], "total": "10", "refund_amount": "20"},
        )
        assert response.status_code == 422

    def test_sale_with_returns_can_not_be_deleted(
        self, test_app: TestClient, paid_sale, sales_return
    ):
        response = test_app.delete(f"/sales/{paid_sale['id']}")
        assert response.status_code == 418
        assert response.json()["error_code"] == 1409

    def test_delete_return(self, test_app: TestClient, sales_return):
        response = test_app.delete(f"/returns/{sales_return['id']}")
        assert response.status_code == 200
        assert main_balance(test_app) == "100.00"

        response = test_app.get("/returns")
        assert response.json()["total"] == 0
