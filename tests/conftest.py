import os
from pathlib import Path

import pytest
from inventory.ledger import InventoryLedger
from inventory.reservations import ReservationManager
from ordering.utils.db import configure_database
from protean.integrations.pytest import DomainFixture
from shared.config import Settings
from shared.database import Database


def pytest_addoption(parser):
    parser.addoption(
        "--env",
        action="store",
        default="test",
        help="Config environment to run tests on",
    )


def pytest_sessionstart(session):
    """Pytest hook to run before collecting tests."""
    os.environ["PROTEAN_ENV"] = session.config.option.env


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their directory location."""
    for item in items:
        # Get the test file path relative to the tests directory
        test_path = Path(item.fspath)

        # Mark tests based on their directory
        if "/domain/" in str(test_path):
            item.add_marker(pytest.mark.domain)
        elif "/application/" in str(test_path):
            item.add_marker(pytest.mark.application)
        elif "/integration/" in str(test_path):
            item.add_marker(pytest.mark.integration)
            # Integration tests are often slower
            if not any(m.name == "fast" for m in item.iter_markers()):
                item.add_marker(pytest.mark.slow)


@pytest.fixture(scope="session")
def ordering_bed(tmp_path_factory):
    """The ordering domain backed by a session-wide SQLite file."""
    from ordering.domain import ordering

    configure_database(ordering, f"sqlite:///{tmp_path_factory.mktemp('orders') / 'orders.db'}")
    bed = DomainFixture(ordering)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture()
def settings(tmp_path):
    """Settings pointing at a throwaway file-backed SQLite database."""
    return Settings(
        database_url=f"sqlite:///{tmp_path / 'checkout.db'}",
        payment_timeout_seconds=2.0,
        catalog_timeout_seconds=0.5,
        payment_workers=4,
    )


@pytest.fixture()
def database(settings):
    db = Database(settings.database_url).init()
    db.create_schema()
    yield db
    db.dispose()


@pytest.fixture()
def ledger(database):
    return InventoryLedger(database)


@pytest.fixture()
def reservations(database, ledger, settings):
    return ReservationManager(
        database,
        ledger,
        default_ttl_minutes=settings.reservation_ttl_minutes,
        retention_days=settings.reservation_retention_days,
        sweep_batch_size=settings.sweep_batch_size,
    )
