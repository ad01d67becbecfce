"""Relational storage for the ordering domain.

Orders and their items are persisted through protean's SQLAlchemy provider,
on the same database as the checkout tables. ``configure_database`` must run
before ``ordering.init()``, which is when protean builds its providers.
"""

from protean.domain import Domain
from sqlalchemy import create_engine
from sqlalchemy.engine import make_url

SQL_PROVIDERS = ("sqlite", "postgresql")


def provider_config(database_url: str) -> dict:
    """Protean connection info for ``database_url`` (sqlite or postgresql)."""
    backend = make_url(database_url).get_backend_name()
    if backend not in SQL_PROVIDERS:
        raise ValueError(f"Unsupported database for orders: {backend}")

    conn_info = {"provider": backend, "database_uri": database_url}
    if backend == "sqlite":
        # Same lock wait as the checkout engine in shared.database
        conn_info["connect_args"] = {"check_same_thread": False, "timeout": 30}
    return conn_info


def configure_database(domain: Domain, database_url: str) -> None:
    domain.config["databases"]["default"] = provider_config(database_url)


def _sql_providers(domain: Domain):
    for _, provider in domain.providers.items():
        if provider.conn_info["provider"] in SQL_PROVIDERS:
            yield provider


def setup_db(domain: Domain) -> list[str]:
    """Create the order tables; existing tables are left untouched.

    Returns the names of the tables protean maps for the domain.
    """
    created = []
    with domain.domain_context():
        for provider in _sql_providers(domain):
            engine = create_engine(provider.conn_info["database_uri"])

            # Building a repository's DAO registers its model on the provider's metadata
            for _, record in domain.registry.aggregates.items():
                if record.cls.meta_.provider == provider.name:
                    domain.repository_for(record.cls)._dao  # noqa: B018
            for _, record in domain.registry.entities.items():
                if record.cls.meta_.provider == provider.name:
                    domain.repository_for(record.cls)._dao  # noqa: B018

            provider._metadata.create_all(engine)
            engine.dispose()
            created.extend(sorted(provider._metadata.tables))
    return created


def drop_db(domain: Domain) -> None:
    with domain.domain_context():
        for provider in _sql_providers(domain):
            engine = create_engine(provider.conn_info["database_uri"])
            provider._metadata.drop_all(engine)
            engine.dispose()
