"""Domain models for the budget tree."""

import uuid
from dataclasses import dataclass
from enum import Enum


class NodeKind(str, Enum):
    """Whether a node groups others or carries a priced line."""

    STAGE = "STAGE"
    ITEM = "ITEM"


class InsertMode(str, Enum):
    """Where a subtree lands relative to its target."""

    BEFORE = "BEFORE"
    AFTER = "AFTER"
    INSIDE = "INSIDE"


def generate_id() -> str:
    """Return a fresh collision-resistant node id."""
    return uuid.uuid4().hex


@dataclass(frozen=True)
class CatalogEntry:
    """A price-book entry returned by the catalog search."""

    id: str
    code: str
    source: str
    description: str
    unit: str
    price: float
    entry_type: str
    date: str


@dataclass(frozen=True)
class CostBreakdown:
    """Cost split in percent (0-100)."""

    material: float
    labor: float
    others: float


@dataclass(frozen=True)
class BudgetNode:
    """A single stage or item of the budget."""

    id: str
    path: str
    kind: NodeKind
    label: str
    quantity: float | None = None
    unit: str | None = None
    unit_price: float | None = None
    value: float = 0.0
    reference: CatalogEntry | None = None
    calculation_memory: str | None = None
    cost_breakdown: CostBreakdown | None = None

    @property
    def is_stage(self) -> bool:
        return self.kind is NodeKind.STAGE

    @property
    def total(self) -> float:
        """Line total for items; stored aggregate for stages."""
        if self.is_stage:
            return self.value
        quantity = self.quantity if self.quantity is not None else 1.0
        price = self.unit_price if self.unit_price is not None else self.value
        return quantity * price


@dataclass(frozen=True)
class TreeNode:
    """Transient nested view of a node and its children."""

    node: BudgetNode
    children: tuple["TreeNode", ...] = ()


@dataclass(frozen=True)
class Block:
    """A named, value-zeroed export of a stage subtree."""

    id: str
    name: str
    created_at: str
    items: tuple[BudgetNode, ...]

    @property
    def item_count(self) -> int:
        return len(self.items)


class ActionType(str, Enum):
    """Non-drag insertions started from a menu or the toolbar."""

    ADD_ROOT_STAGE = "ADD_ROOT_STAGE"
    ADD_SIBLING_STAGE = "ADD_SIBLING_STAGE"
    ADD_CHILD_STAGE = "ADD_CHILD_STAGE"
    ADD_CHILD_ITEM = "ADD_CHILD_ITEM"
    ADD_SIBLING_ITEM = "ADD_SIBLING_ITEM"
    REPLACE_ITEM = "REPLACE_ITEM"

    @property
    def creates_stage(self) -> bool:
        return self in (
            ActionType.ADD_ROOT_STAGE,
            ActionType.ADD_SIBLING_STAGE,
            ActionType.ADD_CHILD_STAGE,
        )

    @property
    def adds_child(self) -> bool:
        return self in (ActionType.ADD_CHILD_STAGE, ActionType.ADD_CHILD_ITEM)
