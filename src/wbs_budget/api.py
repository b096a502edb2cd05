"""HTTP client for the remote price-book (catalog) search service."""

import logging
from typing import Any

import requests

from wbs_budget.config import CATALOG_API_URL, CATALOG_TOKEN_FILES, SEARCH_TIMEOUT_SECONDS


class CatalogApi:
    """Encapsulated catalog search API."""

    def __init__(self, *, url: str | None = None, require_token: bool = False) -> None:
        self.url = url or CATALOG_API_URL
        self.sess = requests.Session()
        self.logger = logging.getLogger("api")

        self.api_token: str | None = None
        api_token_name: str | None = None
        for token_path in CATALOG_TOKEN_FILES:
            try:
                self.api_token = token_path.read_text(encoding="utf-8").strip()
                api_token_name = str(token_path)
                break
            except FileNotFoundError:
                pass
        else:
            if require_token:
                msg = f"Cannot find catalog token file, was looking at {CATALOG_TOKEN_FILES!r}"
                raise RuntimeError(msg)

        self.logger.debug(f"API ready: url {self.url!r}, token from {api_token_name!r}")

    def search(self, query: str) -> list[dict[str, Any]]:
        """Search the catalog, return raw entry dicts."""
        self.logger.debug(f"Making request: {query[:32]!r}")

        headers = {"Authorization": f"Bearer {self.api_token}"} if self.api_token else {}
        r = self.sess.post(
            self.url,
            json={"query": query},
            headers=headers,
            timeout=SEARCH_TIMEOUT_SECONDS,
        )
        r.raise_for_status()
        rv = r.json()
        items = rv.get("items") if isinstance(rv, dict) else None
        if not isinstance(items, list):
            msg = f"Catalog search failed: ({query!r}) -> {rv!r}"
            raise RuntimeError(msg)
        return items
