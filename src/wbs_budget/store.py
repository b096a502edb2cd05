"""JSON file store for the budget, saved blocks and the user catalog."""

import json
import logging
import os
from pathlib import Path
from typing import Any

from wbs_budget.config import BLOCKS_FILE, BUDGET_FILE, USER_CATALOG_FILE
from wbs_budget.core.search.catalog import parse_entry
from wbs_budget.core.storage.json_format import (
    block_from_dict,
    block_to_dict,
    entry_to_dict,
    node_from_dict,
    node_to_dict,
)
from wbs_budget.core.tree.codec import normalize
from wbs_budget.models.node import Block, BudgetNode, CatalogEntry

FORMAT_VERSION = 1


class BudgetStore:
    """Read and write the persisted state in a data directory.

    - Files are only rewritten when their contents change.
    - The budget is stored as a flat, path-ordered node list; the tree is
      rebuilt from paths on load.
    """

    def __init__(self, datadir: str | Path, *, dry_run: bool = False) -> None:
        self.datadir = str(Path(datadir).resolve())
        self.dry_run = dry_run
        self.logger = logging.getLogger("store")

        if not dry_run and not Path(self.datadir).is_dir():
            msg = f"Data directory {self.datadir!r} not found"
            raise ValueError(msg)

        self.logger.debug(f"Store ready, datadir {datadir!r}, dry_run {dry_run!r}")

    def _resolve(self, fname_rel: str) -> str:
        if Path(fname_rel).is_absolute():
            msg = f"must be relative: {fname_rel!r}"
            raise ValueError(msg)
        fname = os.path.normpath(Path(self.datadir) / fname_rel)
        if not fname.startswith(self.datadir + "/"):
            msg = f"Path escapes datadir: {fname!r}"
            raise ValueError(msg)
        return fname

    def make_data_file(self, fname_rel: str, *, data: Any) -> bool:
        """Serialize data to json at a path relative to the data directory.

        Returns:
            True if the file was (or, in dry-run, would be) written.
        """
        contents = json.dumps(data, sort_keys=True, indent=4, ensure_ascii=False) + "\n"
        fname = self._resolve(fname_rel)

        action = "create"
        try:
            with open(fname, encoding="utf-8") as f:
                if f.read() == contents:
                    return False
            action = "update"
        except (FileNotFoundError, UnicodeDecodeError):
            pass

        if self.dry_run:
            self.logger.info(f"dry-run: would {action} {fname!r}")
        else:
            self.logger.debug(f"Writing ({action}) {fname!r}")
            Path(fname).parent.mkdir(parents=True, exist_ok=True)
            with open(fname, "w", encoding="utf-8") as f:
                f.write(contents)
        return True

    def try_read_json(self, fname_rel: str) -> Any | None:
        """Try to read json from given relative path.

        Returns:
            Json contents if file is found, None if file is not found.
            Raises on all other errors.
        """
        fname = self._resolve(fname_rel)
        try:
            with open(fname, encoding="utf-8") as f:
                contents = f.read()
        except FileNotFoundError:
            return None
        rj = json.loads(contents)
        if rj is None:
            msg = f"try_read_json found None object in {fname_rel!r}"
            raise ValueError(msg)
        return rj

    def load_budget(self) -> tuple[BudgetNode, ...]:
        """Load the flat budget, renumbering it if the stored paths had gaps."""
        raw = self.try_read_json(BUDGET_FILE)
        if raw is None:
            return ()
        nodes = tuple(node_from_dict(n) for n in raw.get("nodes", []))
        normalized = normalize(nodes)
        if [n.path for n in normalized] != [n.path for n in nodes]:
            self.logger.warning(f"Stored budget in {self.datadir!r} was not canonical, renumbered")
        return normalized

    def save_budget(self, nodes: tuple[BudgetNode, ...]) -> bool:
        return self.make_data_file(
            BUDGET_FILE,
            data={"version": FORMAT_VERSION, "nodes": [node_to_dict(n) for n in nodes]},
        )

    def load_blocks(self) -> tuple[Block, ...]:
        raw = self.try_read_json(BLOCKS_FILE)
        if raw is None:
            return ()
        return tuple(block_from_dict(b) for b in raw.get("blocks", []))

    def save_blocks(self, blocks: tuple[Block, ...]) -> bool:
        return self.make_data_file(
            BLOCKS_FILE,
            data={"version": FORMAT_VERSION, "blocks": [block_to_dict(b) for b in blocks]},
        )

    def load_user_catalog(self) -> tuple[CatalogEntry, ...]:
        raw = self.try_read_json(USER_CATALOG_FILE)
        if raw is None:
            return ()
        return tuple(parse_entry(e) for e in raw.get("entries", []))

    def save_user_catalog(self, entries: tuple[CatalogEntry, ...]) -> bool:
        return self.make_data_file(
            USER_CATALOG_FILE,
            data={"version": FORMAT_VERSION, "entries": [entry_to_dict(e) for e in entries]},
        )
