"""Protocols for dependency injection in the budget editor."""

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class CatalogApiProtocol(Protocol):
    """Protocol for remote catalog search clients."""

    def search(self, query: str) -> list[dict[str, Any]]:
        """Return raw catalog entries matching query."""
        ...
