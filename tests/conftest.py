import pytest
from fastapi.testclient import TestClient

from ledger_service.db import Store
from ledger_service.engine import Ledger
from ledger_service.main import create_app


@pytest.fixture
def store() -> Store:
    return Store()


@pytest.fixture
def ledger(store: Store) -> Ledger:
    return Ledger(store)


@pytest.fixture
def app(store: Store):
    return create_app(store)


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)
