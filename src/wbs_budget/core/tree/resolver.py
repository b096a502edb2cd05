"""Resolve a drag gesture over a row into an insert mode."""

from collections.abc import Sequence

from wbs_budget.core.tree.mutators import can_move
from wbs_budget.models.node import BudgetNode, InsertMode, NodeKind

STAGE_BEFORE_BELOW = 0.25
STAGE_AFTER_ABOVE = 0.75
ITEM_SPLIT = 0.5


def vertical_offset(pointer_y: float, row_top: float, row_height: float) -> float:
    """Pointer position within a row: 0 at the top edge, 1 at the bottom."""
    if row_height <= 0:
        return 0.5
    return min(1.0, max(0.0, (pointer_y - row_top) / row_height))


def resolve_drop_position(offset: float, kind: NodeKind) -> InsertMode:
    """Map a vertical offset on the target row to BEFORE, INSIDE or AFTER.

    Stages take drops inside across their middle half; items only reorder.
    """
    if kind is NodeKind.STAGE:
        if offset < STAGE_BEFORE_BELOW:
            return InsertMode.BEFORE
        if offset > STAGE_AFTER_ABOVE:
            return InsertMode.AFTER
        return InsertMode.INSIDE
    return InsertMode.BEFORE if offset < ITEM_SPLIT else InsertMode.AFTER


def resolve_drop(
    nodes: Sequence[BudgetNode], dragged_id: str, target_id: str, offset: float
) -> InsertMode | None:
    """Insert mode for dropping dragged_id on target_id, or None for a no-op.

    Used for both hover feedback and the drop itself so the two never disagree.
    """
    if not can_move(nodes, dragged_id, target_id):
        return None
    target = next(n for n in nodes if n.id == target_id)
    return resolve_drop_position(offset, target.kind)
