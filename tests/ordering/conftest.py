import pytest
from catalogue.lookup import StaticCatalog
from inventory.ledger import InventoryLedger
from ordering.cart.memory_adapter import InMemoryCart
from ordering.checkout.idempotency import IdempotencyStore
from ordering.checkout.orchestrator import CheckoutOrchestrator
from payments.gateway.fake_adapter import FakeGateway
from protean import current_domain


@pytest.fixture(autouse=True)
def _ctx(ordering_bed):
    with ordering_bed.domain_context():
        yield
        # Clear all repositories between tests
        for _, provider in current_domain.providers.items():
            provider._data_reset()


@pytest.fixture()
def gateway():
    return FakeGateway()


@pytest.fixture()
def cart():
    return InMemoryCart()


@pytest.fixture()
def catalog():
    return StaticCatalog({"prod-burger": "Classic Burger", "prod-fries": "Large Fries", "prod-shake": "Vanilla Shake"})


@pytest.fixture()
def idempotency(database):
    return IdempotencyStore(database)


@pytest.fixture()
def orchestrator(ordering_bed, ledger, reservations, idempotency, gateway, cart, catalog, settings):
    from ordering.domain import ordering

    orchestrator = CheckoutOrchestrator(
        domain=ordering,
        ledger=ledger,
        reservations=reservations,
        idempotency=idempotency,
        gateway=gateway,
        cart=cart,
        catalog=catalog,
        settings=settings,
    )
    yield orchestrator
    orchestrator.close()


@pytest.fixture()
def stocked_store(ledger: InventoryLedger):
    """store-001 with burgers, fries and shakes on hand."""
    ledger.set_stock("store-001", "prod-burger", 10)
    ledger.set_stock("store-001", "prod-fries", 20)
    ledger.set_stock("store-001", "prod-shake", 5)
    return "store-001"
