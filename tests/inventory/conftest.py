import pytest


@pytest.fixture()
def stocked(ledger):
    """A single product with 10 units on hand at store-001."""
    ledger.set_stock("store-001", "prod-001", 10)
    return ("store-001", "prod-001")
