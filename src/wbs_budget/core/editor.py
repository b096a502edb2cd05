"""Editing session: the budget state of record and the user flows acting on it.

Every change computes a new flat tuple from the current one and replaces it
wholesale; a rejected change leaves every field untouched.
"""

import dataclasses
import math
import random
from collections.abc import Iterable
from datetime import UTC, datetime

from loguru import logger

from wbs_budget.config import DEFAULT_UNIT, PROJECT_REFERENCE_DATE
from wbs_budget.core.blocks import grafting
from wbs_budget.core.search.catalog import (
    BUILTIN_ENTRIES,
    is_newer_than_reference,
    search_catalog,
)
from wbs_budget.core.tree.allocator import allocate_path
from wbs_budget.core.tree.codec import build_tree, flatten_tree, normalize
from wbs_budget.core.tree.mutators import delete_node, insert_node, move_node
from wbs_budget.core.tree.navigation import (
    count_descendants,
    get_children,
    rollup_totals,
    visible_nodes,
)
from wbs_budget.core.tree.paths import is_descendant_of
from wbs_budget.core.tree.resolver import resolve_drop
from wbs_budget.errors import NodeNotFoundError, StructuralError
from wbs_budget.models.node import (
    ActionType,
    Block,
    BudgetNode,
    CatalogEntry,
    InsertMode,
    NodeKind,
    TreeNode,
    generate_id,
)
from wbs_budget.protocols import CatalogApiProtocol

EDITABLE_FIELDS = ("quantity", "unit", "unit_price")


@dataclasses.dataclass(frozen=True)
class PendingAction:
    """A menu insertion waiting for the user's label or catalog pick."""

    target_id: str | None
    action: ActionType
    suggested_path: str


class BudgetEditor:
    """Single-writer editing session over a flat budget."""

    def __init__(
        self,
        nodes: Iterable[BudgetNode] = (),
        *,
        blocks: Iterable[Block] = (),
        user_catalog: Iterable[CatalogEntry] = (),
        catalog_api: CatalogApiProtocol | None = None,
        reference_date: str = PROJECT_REFERENCE_DATE,
    ) -> None:
        self.nodes: tuple[BudgetNode, ...] = normalize(nodes)
        self.blocks: tuple[Block, ...] = tuple(blocks)
        self.user_catalog: tuple[CatalogEntry, ...] = tuple(user_catalog)
        self.catalog_api = catalog_api
        self.reference_date = reference_date

        self.collapsed: frozenset[str] = frozenset()
        self.pending: PendingAction | None = None
        self.pending_conflict: CatalogEntry | None = None
        self.highlighted_id: str | None = None

    # --- Lookup ---

    def get(self, node_id: str) -> BudgetNode | None:
        return next((n for n in self.nodes if n.id == node_id), None)

    def find(self, ref: str) -> BudgetNode | None:
        """Look a node up by id, falling back to its current path."""
        return self.get(ref) or next((n for n in self.nodes if n.path == ref), None)

    def _set_nodes(self, nodes: tuple[BudgetNode, ...]) -> bool:
        if nodes is self.nodes:
            return False
        self.nodes = nodes
        return True

    # --- Collapse state ---

    def toggle_collapse(self, node_id: str) -> None:
        self.collapsed = self.collapsed ^ {node_id}

    def expand(self, node_id: str) -> None:
        self.collapsed = self.collapsed - {node_id}

    def expand_all(self) -> None:
        self.collapsed = frozenset()

    def collapse_all(self) -> None:
        self.collapsed = frozenset(n.id for n in self.nodes if n.is_stage)

    def visible_nodes(self) -> tuple[BudgetNode, ...]:
        return visible_nodes(self.nodes, self.collapsed)

    # --- Drag and drop ---

    def hover(self, dragged_id: str, target_id: str, offset: float) -> InsertMode | None:
        """Drop feedback for the current pointer position; never mutates."""
        return resolve_drop(self.nodes, dragged_id, target_id, offset)

    def drop(self, dragged_id: str, target_id: str, offset: float) -> bool:
        """Commit a drop; re-checks the same guard as hover()."""
        mode = resolve_drop(self.nodes, dragged_id, target_id, offset)
        if mode is None:
            logger.debug("Drop of {} on {} ignored", dragged_id, target_id)
            return False
        return self.move(dragged_id, target_id, mode)

    def move(self, node_id: str, target_id: str, mode: InsertMode) -> bool:
        return self._set_nodes(move_node(self.nodes, node_id, target_id, mode))

    # --- Menu insertions ---

    def begin_action(self, target_id: str | None, action: ActionType) -> PendingAction | None:
        """Start an insertion or replacement and compute its suggested path."""
        try:
            path = allocate_path(self.nodes, target_id, action)
        except (NodeNotFoundError, StructuralError) as e:
            logger.warning("Cannot start {}: {}", action.value, e)
            return None
        if action.adds_child and target_id is not None:
            self.expand(target_id)
        self.pending = PendingAction(target_id=target_id, action=action, suggested_path=path)
        self.pending_conflict = None
        return self.pending

    def cancel_action(self) -> None:
        self.pending = None
        self.pending_conflict = None

    def search(self, query: str) -> list[CatalogEntry]:
        """Candidates for the pending item action (built-in and user entries first).

        Interactive callers should gate this behind a SearchDebouncer so only
        the settled query reaches the remote catalog.
        """
        return search_catalog(
            query,
            local_entries=(*BUILTIN_ENTRIES, *self.user_catalog),
            api=self.catalog_api,
        )

    def confirm_stage(self, label: str) -> BudgetNode | None:
        if self.pending is None or not self.pending.action.creates_stage or not label.strip():
            return None
        node = BudgetNode(id=generate_id(), path="", kind=NodeKind.STAGE, label=label.strip())
        return self._commit_new(node)

    def confirm_manual_item(self, label: str) -> BudgetNode | None:
        """Add (or relabel, when replacing) an item with no catalog link."""
        pending = self.pending
        if pending is None or pending.action.creates_stage or not label.strip():
            return None
        if pending.action is ActionType.REPLACE_ITEM:
            return self._replace_target(label=label.strip(), reference=None)
        node = BudgetNode(
            id=generate_id(),
            path="",
            kind=NodeKind.ITEM,
            label=label.strip(),
            quantity=1.0,
            unit=DEFAULT_UNIT,
            unit_price=0.0,
        )
        return self._commit_new(node)

    def select_candidate(self, entry: CatalogEntry) -> bool:
        """Apply a catalog pick, or suspend it if its prices are newer than the project's.

        Returns:
            True if applied now; False if there is no pending item action or the
            pick awaits resolve_conflict().
        """
        if self.pending is None or self.pending.action.creates_stage:
            return False
        if is_newer_than_reference(entry, self.reference_date):
            logger.info("Catalog entry {} dated {} needs confirmation", entry.code, entry.date)
            self.pending_conflict = entry
            return False
        return self._apply_candidate(entry) is not None

    def resolve_conflict(self, use_candidate: bool) -> bool:
        """Finish a suspended pick: use it anyway, or keep the prior data."""
        entry = self.pending_conflict
        if entry is None:
            return False
        self.pending_conflict = None
        if not use_candidate:
            self.pending = None
            return False
        return self._apply_candidate(entry) is not None

    def _apply_candidate(self, entry: CatalogEntry) -> BudgetNode | None:
        if self.pending is not None and self.pending.action is ActionType.REPLACE_ITEM:
            return self._replace_target(
                label=entry.description,
                reference=entry,
                unit=entry.unit,
                unit_price=entry.price,
                value=entry.price,
            )
        node = BudgetNode(
            id=generate_id(),
            path="",
            kind=NodeKind.ITEM,
            label=entry.description,
            quantity=1.0,
            unit=entry.unit,
            unit_price=entry.price,
            value=entry.price,
            reference=entry,
        )
        return self._commit_new(node)

    def _replace_target(self, **changes: object) -> BudgetNode | None:
        pending = self.pending
        self.pending = None
        if pending is None or pending.target_id is None:
            return None
        target = self.get(pending.target_id)
        if target is None or target.is_stage:
            logger.warning("Replace target {} is gone or not an item", pending.target_id)
            return None
        replaced = dataclasses.replace(target, **changes)  # type: ignore[arg-type]
        self.nodes = tuple(replaced if n.id == target.id else n for n in self.nodes)
        self.highlighted_id = target.id
        return replaced

    def _commit_new(self, node: BudgetNode) -> BudgetNode | None:
        pending = self.pending
        self.pending = None
        if pending is None:
            return None
        # Re-derive the path against the current list in case it changed meanwhile.
        try:
            path = allocate_path(self.nodes, pending.target_id, pending.action)
        except (NodeNotFoundError, StructuralError) as e:
            logger.warning("Abandoned {}: {}", pending.action.value, e)
            return None

        if pending.action is ActionType.ADD_ROOT_STAGE and pending.target_id is not None:
            # New root goes right after the target's whole root branch.
            root_path = next(n.path for n in self.nodes if n.id == pending.target_id)
            root = next(n for n in self.nodes if n.path == root_path.split(".")[0])
            tree = build_tree(self.nodes)
            self.nodes = flatten_tree(
                insert_node(tree, TreeNode(node=node), root.id, InsertMode.AFTER)
            )
        else:
            self.nodes = normalize((*self.nodes, dataclasses.replace(node, path=path)))

        self.highlighted_id = node.id
        created = self.get(node.id)
        if created is not None:
            logger.info("Added {} {} at {}", created.kind.value, created.label, created.path)
        return created

    # --- Inline edits ---

    def update_item(self, node_id: str, field: str, raw: str) -> bool:
        """Edit quantity, unit or unit price from text input (bad numbers become 0)."""
        node = self.get(node_id)
        if node is None or node.is_stage or field not in EDITABLE_FIELDS:
            return False
        value: str | float = raw
        if field != "unit":
            try:
                number = float(raw)
            except ValueError:
                number = 0.0
            value = number if math.isfinite(number) else 0.0
        updated = dataclasses.replace(node, **{field: value})
        self.nodes = tuple(updated if n.id == node_id else n for n in self.nodes)
        return True

    def rename(self, node_id: str, label: str) -> bool:
        node = self.get(node_id)
        if node is None or not label.strip():
            return False
        updated = dataclasses.replace(node, label=label.strip())
        self.nodes = tuple(updated if n.id == node_id else n for n in self.nodes)
        return True

    # --- Deletion ---

    def descendant_count(self, node_id: str) -> int:
        return count_descendants(self.nodes, node_id)

    def delete(self, node_id: str) -> bool:
        """Delete a node with its whole subtree."""
        node = self.get(node_id)
        if node is None:
            return False
        removed_ids = {
            n.id for n in self.nodes if n.id == node_id or is_descendant_of(n.path, node.path)
        }
        if not self._set_nodes(delete_node(self.nodes, node_id)):
            return False
        self.collapsed = self.collapsed - removed_ids
        if self.pending is not None and self.pending.target_id in removed_ids:
            self.cancel_action()
        if self.highlighted_id in removed_ids:
            self.highlighted_id = None
        return True

    # --- Blocks ---

    def save_block(self, root_id: str, name: str | None = None) -> Block | None:
        """Save a stage subtree to the block library (newest first)."""
        root = self.get(root_id)
        if root is None:
            return None
        block_name = (name if name is not None else root.label).strip()
        if not block_name:
            return None
        block = grafting.extract_block(self.nodes, root_id, block_name)
        if block is None:
            return None
        self.blocks = (block, *self.blocks)
        return block

    def delete_block(self, block_id: str) -> bool:
        remaining = tuple(b for b in self.blocks if b.id != block_id)
        if len(remaining) == len(self.blocks):
            return False
        self.blocks = remaining
        return True

    def insert_block(self, block_id: str, target_id: str) -> bool:
        """Graft a saved block under a stage and expand it."""
        block = next((b for b in self.blocks if b.id == block_id), None)
        if block is None:
            logger.warning("Block {} not found", block_id)
            return False
        if not self._set_nodes(grafting.insert_block(self.nodes, block, target_id)):
            return False
        self.expand(target_id)
        return True

    # --- User catalog ---

    def save_to_user_catalog(self, node_id: str) -> CatalogEntry | None:
        """Store an item as a private ("PROPRIA") catalog entry."""
        node = self.get(node_id)
        if node is None or node.is_stage:
            return None
        ref = node.reference
        code = f"P-{ref.code}" if ref else f"P-{random.randint(0, 9999)}"
        entry = CatalogEntry(
            id=generate_id(),
            code=code,
            source="PROPRIA",
            description=node.label,
            unit=node.unit or (ref.unit if ref else DEFAULT_UNIT),
            price=node.unit_price or node.value or 0.0,
            entry_type=ref.entry_type if ref else "INSUMO",
            date=datetime.now(tz=UTC).date().isoformat(),
        )
        self.user_catalog = (*self.user_catalog, entry)
        logger.info("Saved {} to user catalog as {}", node.label, entry.code)
        return entry

    def delete_user_catalog_entry(self, entry_id: str) -> bool:
        remaining = tuple(e for e in self.user_catalog if e.id != entry_id)
        if len(remaining) == len(self.user_catalog):
            return False
        self.user_catalog = remaining
        return True

    # --- Totals ---

    def totals(self) -> dict[str, float]:
        return rollup_totals(self.nodes)

    def grand_total(self) -> float:
        totals = self.totals()
        return sum(totals[n.id] for n in get_children(self.nodes, None))
