"""Configuration constants for wbs-budget."""

import os
from pathlib import Path

# Catalog search token location. First file found is used.
CATALOG_TOKEN_FILES: list[Path] = [
    Path("~/.config/wbs-budget-token.txt").expanduser(),
    Path("~/.config/secret/wbs-budget-token.txt").expanduser(),
]

# Directory with budget data. First directory which is found is used.
DATA_DIRECTORIES: list[Path] = [
    Path("~/.local/share/wbs-budget").expanduser(),
    Path("~/.wbs-budget").expanduser(),
    Path("~/.config/wbs-budget").expanduser(),
]

# Remote catalog search endpoint (accepts {"query": ...}, returns {"items": [...]}).
CATALOG_API_URL: str = os.environ.get("WBS_CATALOG_URL", "http://localhost:8080/api/v1/search")

# Fixed price-book reference date of the project (SINAPI 06/2019).
PROJECT_REFERENCE_DATE: str = os.environ.get("WBS_REFERENCE_DATE", "2019-06-01")

SEARCH_DEBOUNCE_SECONDS: float = 0.8
MIN_QUERY_LENGTH: int = 3
SEARCH_TIMEOUT_SECONDS: float = 10.0

DEFAULT_UNIT: str = "un"

BUDGET_FILE = "budget.json"
BLOCKS_FILE = "blocks.json"
USER_CATALOG_FILE = "user_catalog.json"


def resolve_data_directory() -> Path:
    """Return the first existing data directory, or the preferred default."""
    env_dir = os.environ.get("WBS_BUDGET_DIR")
    if env_dir:
        return Path(env_dir).expanduser()
    for candidate in DATA_DIRECTORIES:
        if candidate.is_dir():
            return candidate
    return DATA_DIRECTORIES[0]
