"""Catalog (price-book) search: local filtering, remote lookup, debouncing."""

from collections.abc import Iterable
from datetime import date
from typing import Any

import requests
from loguru import logger

from wbs_budget.config import MIN_QUERY_LENGTH, PROJECT_REFERENCE_DATE, SEARCH_DEBOUNCE_SECONDS
from wbs_budget.models.node import CatalogEntry, generate_id
from wbs_budget.protocols import CatalogApiProtocol

# Offline entries always searched before the remote service (SINAPI 06/2019 sample).
BUILTIN_ENTRIES: tuple[CatalogEntry, ...] = (
    CatalogEntry(
        id="m1",
        code="98567",
        source="SINAPI",
        description="Tapume de madeira com altura de 2,00 m, executado com tábuas de pinus "
        "ou similar, incluindo instalação, escoramento, pintura de identificação e "
        "posterior retirada.",
        unit="m²",
        price=240.00,
        entry_type="INSUMO",
        date="2019-06-01",
    ),
    CatalogEntry(
        id="m2",
        code="98568",
        source="SINAPI",
        description="Tapume metálico modular com painéis de chapa galvanizada e estrutura em "
        "tubos de aço galvanizado, fixação por sapatas metálicas, incluindo montagem e "
        "desmontagem.",
        unit="m²",
        price=285.50,
        entry_type="INSUMO",
        date="2024-01-01",
    ),
    CatalogEntry(
        id="m3",
        code="98569",
        source="SINAPI",
        description='Tapume em painel OSB de 15 mm com estrutura em madeira de reflorestamento, '
        'pintura externa de cor padrão e letreiro "OBRA EM EXECUÇÃO", incluindo montagem e '
        "retirada.",
        unit="m²",
        price=190.20,
        entry_type="INSUMO",
        date="2019-06-01",
    ),
)


def parse_entry(raw: dict[str, Any]) -> CatalogEntry:
    """Build a CatalogEntry from a raw dict, minting an id when absent."""
    return CatalogEntry(
        id=str(raw.get("id") or generate_id()),
        code=str(raw["code"]),
        source=str(raw["source"]),
        description=str(raw["description"]),
        unit=str(raw["unit"]),
        price=float(raw["price"]),
        entry_type=str(raw.get("type", raw.get("entry_type", "INSUMO"))),
        date=str(raw["date"]),
    )


def filter_entries(entries: Iterable[CatalogEntry], query: str) -> list[CatalogEntry]:
    """Case-insensitive match on description or code."""
    needle = query.strip().lower()
    if not needle:
        return list(entries)
    return [e for e in entries if needle in e.description.lower() or needle in e.code.lower()]


def search_catalog(
    query: str,
    *,
    local_entries: Iterable[CatalogEntry] = BUILTIN_ENTRIES,
    api: CatalogApiProtocol | None = None,
) -> list[CatalogEntry]:
    """Search local entries and the remote catalog.

    Queries shorter than MIN_QUERY_LENGTH return nothing. Local matches come
    first. A failing remote search degrades to local matches only.
    """
    query = query.strip()
    if len(query) < MIN_QUERY_LENGTH:
        return []

    results = filter_entries(local_entries, query)
    if api is None:
        return results

    try:
        raw_items = api.search(query)
    except (requests.RequestException, RuntimeError, ValueError) as e:
        logger.warning("Catalog search failed for {!r}, using local results: {}", query, e)
        return results

    for raw in raw_items:
        if not isinstance(raw, dict):
            logger.warning("Skipping malformed catalog entry: {!r}", raw)
            continue
        try:
            results.append(parse_entry(raw))
        except (KeyError, TypeError, ValueError):
            logger.warning("Skipping malformed catalog entry: {!r}", raw)
    logger.debug("Catalog search {!r}: {} results", query, len(results))
    return results


def is_newer_than_reference(
    entry: CatalogEntry, reference_date: str = PROJECT_REFERENCE_DATE
) -> bool:
    """True if the entry's price date is strictly after the project's reference date."""
    try:
        return date.fromisoformat(entry.date[:10]) > date.fromisoformat(reference_date[:10])
    except ValueError:
        logger.warning("Unparseable date on catalog entry {}: {!r}", entry.code, entry.date)
        return False


class SearchDebouncer:
    """Fire a search only after the query has been stable for an interval.

    Single-threaded: callers report query edits and poll with the current
    clock. A newer query supersedes any pending one.
    """

    def __init__(self, interval: float = SEARCH_DEBOUNCE_SECONDS) -> None:
        self.interval = interval
        self._query: str | None = None
        self._changed_at = 0.0

    def update(self, query: str, now: float) -> None:
        """Record an edit of the search box."""
        self._query = query
        self._changed_at = now

    def cancel(self) -> None:
        self._query = None

    def due(self, now: float) -> str | None:
        """Return the query to run if it has settled, at most once per edit."""
        if self._query is None or now - self._changed_at < self.interval:
            return None
        query, self._query = self._query, None
        return query
