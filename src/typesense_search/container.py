"""
Application DI Container (dependency-injector).

Centralizes creation of the transport and the search services.

Usage::

    from typesense_search.container import ApplicationContainer

    container = ApplicationContainer()
    container.config.from_dict({
        "api_key": "xyz",
        "host": "localhost",
        "port": 8108,
    })

    service = container.search_service()
    searcher = container.multi_collection_searcher()

    # In tests, override any provider:
    container.client.override(providers.Object(mock_client))

Settings keys left out of ``config`` fall back to the TYPESENSE_* environment
variables.
"""

from __future__ import annotations

import logging

from dependency_injector import containers, providers

from typesense_search.shared.settings import SearchDefaults, TypesenseSettings

logger = logging.getLogger(__name__)


def _create_client(settings: TypesenseSettings) -> object:
    """Lazy factory for TypesenseClient (avoids importing httpx at container import)."""
    from typesense_search.infrastructure.typesense import TypesenseClient

    logger.debug(f"Creating Typesense client for {settings.base_url}")
    return TypesenseClient(settings)


def _create_search_service(backend: object, defaults: SearchDefaults) -> object:
    from typesense_search.application.search import SearchService

    return SearchService(backend, defaults)  # type: ignore[arg-type]


def _create_multi_collection_searcher(backend: object, defaults: SearchDefaults) -> object:
    from typesense_search.application.search import MultiCollectionSearcher

    return MultiCollectionSearcher(backend, default_query_by=defaults.query_by)  # type: ignore[arg-type]


class ApplicationContainer(containers.DeclarativeContainer):
    """Central DI container for the search core.

    - ``client``: shared Typesense transport (Singleton)
    - ``search_service``: single-collection search with disjunctive facets
    - ``multi_collection_searcher``: federated search plus merge
    """

    config = providers.Configuration()

    settings = providers.Factory(
        TypesenseSettings.from_env,
        api_key=config.api_key,
        host=config.host,
        port=config.port,
        protocol=config.protocol,
        path=config.path,
        connection_timeout_seconds=config.connection_timeout_seconds,
        num_retries=config.num_retries,
        retry_interval_seconds=config.retry_interval_seconds,
    )

    defaults = providers.Factory(SearchDefaults.from_env)

    client = providers.Singleton(_create_client, settings=settings)

    search_service = providers.Factory(
        _create_search_service,
        backend=client,
        defaults=defaults,
    )

    multi_collection_searcher = providers.Factory(
        _create_multi_collection_searcher,
        backend=client,
        defaults=defaults,
    )


__all__ = ["ApplicationContainer"]
