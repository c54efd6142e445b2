from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from retail_ledger.app import app
from retail_ledger.config import get_config
from retail_ledger.models.customer import Customer
from retail_ledger.scripts import rebuild_customer_financials


@pytest.fixture(scope="class")
def customers(test_app: TestClient):
    created = []
    for name, total in (("Quinn", "45"), ("Rami", "15"), ("Sara", None)):
        customer = test_app.post("/customers", json={"name": name}).json()
        if total is not None:
            response = test_app.post(
                "/sales", json={"customer_id": customer["id"], "total": total}
            )
            assert response.status_code == 200
        created.append(customer)
    return created


@pytest.fixture
def use_test_database(test_app: TestClient, monkeypatch):
    config = app.dependency_overrides[get_config]()
    monkeypatch.setattr(rebuild_customer_financials, "get_config", lambda: config)


class TestRebuildCommand:
    def test_parse_args(self):
        args = rebuild_customer_financials.parse_args(
            ["--customer-id", "3", "--customer-id", "5", "--batch-size", "50"]
        )
        assert args.customer_id == [3, 5]
        assert args.batch_size == 50
        assert args.start_after_id == 0

    def test_corrupt_cached_balances(self, container, customers):
        for customer in container.db.query(Customer):
            customer.balance = Decimal("500.00")

    def test_rebuild_single_customer(self, use_test_database, customers):
        result = rebuild_customer_financials.run_rebuild([customers[0]["id"]])
        assert result["processed"] == 1
        assert result["changed"] == 1

    def test_rebuild_all_commits_every_page(
        self, use_test_database, test_app: TestClient, customers
    ):
        rebuild_customer_financials.main(["--batch-size", "1"])

        balances = [
            test_app.get(f"/customers/{c['id']}").json()["balance"] for c in customers
        ]
        assert balances == ["45.00", "15.00", "0.00"]

        result = rebuild_customer_financials.run_rebuild(batch_size=2)
        assert result == {
            "processed": 3,
            "batches": 2,
            "last_id": customers[-1]["id"],
            "changed": 0,
        }

    def test_batch_size_must_be_positive(self, use_test_database):
        with pytest.raises(SystemExit):
            rebuild_customer_financials.main(["--batch-size", "0"])
