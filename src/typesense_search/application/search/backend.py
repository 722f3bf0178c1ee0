"""
The one operation the search core needs from the backing service.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from typesense_search.domain.entities.search import SearchParams, SearchResponse


@runtime_checkable
class SearchBackend(Protocol):
    """
    Anything with an async ``search(collection, params)``.

    Implementations return a parsed SearchResponse or raise a ServiceError
    subclass. Retry, timeout and transport concerns live behind this call.
    """

    async def search(self, collection: str, params: SearchParams) -> SearchResponse: ...
