"""Test configuration and shared fixtures"""

import os
import sys
import traceback

import pytest
from fastapi.testclient import TestClient
from retail_ledger.app import app
from retail_ledger.config import Config, get_config
from retail_ledger.db import DatabaseConnection
from retail_ledger.dependencies.services import ServiceContainer
from retail_ledger.uow import UnitOfWork

_original_request = TestClient.request


def logging_request(self, *args, **kwargs):
    try:
        response = _original_request(self, *args, **kwargs)
    except Exception:
        # Print request details on exception
        print("\n=== Exception in TestClient.request ===")
        print("Request args:", args)
        print("Request kwargs:", kwargs)
        traceback.print_exc(file=sys.stdout)
        raise

    # Optionally, if the response indicates an error, log details
    if response.status_code >= 400:
        req = response.request
        print("\n=== HTTP Error Response Captured ===")
        print(f"Method: {req.method} URL: {req.url}")
        print("Request Content:", req.content)
        print("Response Status:", response.status_code)
        print("Response Body:", response.text)
    return response


# Patch TestClient.request globally
TestClient.request = logging_request


# each test class have it's own empty database
@pytest.fixture(scope="class")
def test_app():
    test_config = Config(
        # overwrite application name so it will use another database file
        app_name="retail-ledger-test"
    )
    app.dependency_overrides = {get_config: lambda: test_config}

    # trigger table creation and bootstrapping
    db_conn = DatabaseConnection(config=test_config)
    db_conn.create_tables()
    db_conn.seed_bootstrap_data()
    db_conn.engine.dispose()

    client = TestClient(app)
    yield client
    # clean up test database file after tests
    if os.path.exists(test_config.database_path):
        os.remove(test_config.database_path)


@pytest.fixture
def container(test_app: TestClient):
    """Services bound to one unit of work, committed when the test ends.

    Wrap calls expected to fail in `container.db.begin_nested()` so that
    their partial writes are discarded before the commit.
    """
    config = app.dependency_overrides.get(get_config, get_config)()
    db_conn = DatabaseConnection(config=config)
    session = db_conn.get_session()
    try:
        with UnitOfWork(session) as uow:
            yield ServiceContainer(uow, config)
    finally:
        db_conn.engine.dispose()
