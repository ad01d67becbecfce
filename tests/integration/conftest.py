"""Fixtures for HTTP-level tests that run the whole service in process."""

import pytest
from app import create_app
from bootstrap import build_components
from catalogue.lookup import StaticCatalog
from fastapi.testclient import TestClient
from ordering.cart.memory_adapter import InMemoryCart
from payments.gateway.fake_adapter import FakeGateway
from protean import current_domain


@pytest.fixture(autouse=True)
def _ctx(ordering_bed):
    with ordering_bed.domain_context():
        yield
        for _, provider in current_domain.providers.items():
            provider._data_reset()


@pytest.fixture()
def components(ordering_bed, settings):
    from ordering.domain import ordering

    components = build_components(
        settings,
        domain=ordering,
        gateway=FakeGateway(),
        cart=InMemoryCart(),
        catalog=StaticCatalog({"prod-burger": "Classic Burger", "prod-shake": "Vanilla Shake"}),
    )
    components.ledger.set_stock("store-001", "prod-burger", 10, reorder_level=2)
    components.ledger.set_stock("store-001", "prod-shake", 5, reorder_level=5)
    yield components
    components.close()


@pytest.fixture()
def client(components):
    with TestClient(create_app(components)) as test_client:
        yield test_client
