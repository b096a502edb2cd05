"""Next free path for menu-driven insertions (no drag gesture).

Paths are computed against the current flat list. Since every structural
change renumbers contiguously, the next path is always last sibling + 1.
"""

from collections.abc import Sequence

from wbs_budget.core.tree.paths import increment_last, parent_path, sort_key
from wbs_budget.errors import NodeNotFoundError, StructuralError
from wbs_budget.models.node import ActionType, BudgetNode


def _get(nodes: Sequence[BudgetNode], node_id: str | None) -> BudgetNode:
    for node in nodes:
        if node.id == node_id:
            return node
    msg = f"Node {node_id!r} not found"
    raise NodeNotFoundError(msg)


def _last_child_path(nodes: Sequence[BudgetNode], parent: str | None) -> str | None:
    paths = [n.path for n in nodes if parent_path(n.path) == parent]
    if not paths:
        return None
    return max(paths, key=sort_key)


def next_root_path(nodes: Sequence[BudgetNode]) -> str:
    """Path for a new root appended after the last one ("1" when empty)."""
    last = _last_child_path(nodes, None)
    segments = sort_key(last) if last is not None else ()
    return str(segments[0] + 1) if segments else "1"


def root_after_branch_path(nodes: Sequence[BudgetNode], target_id: str) -> str:
    """Path for a new root placed right after the target's root branch."""
    target = _get(nodes, target_id)
    root = sort_key(target.path.split(".")[0])
    return str((root[0] if root else 0) + 1)


def next_sibling_path(nodes: Sequence[BudgetNode], target_id: str) -> str:
    """Path after the numerically last sibling of the target."""
    target = _get(nodes, target_id)
    last = _last_child_path(nodes, parent_path(target.path))
    if last is None:
        msg = f"No siblings found for {target.path!r}"
        raise StructuralError(msg)
    return increment_last(last)


def next_child_path(nodes: Sequence[BudgetNode], target_id: str) -> str:
    """Path after the last direct child of a stage, or "<stage>.1"."""
    target = _get(nodes, target_id)
    if not target.is_stage:
        msg = f"Item {target.path!r} cannot have children"
        raise StructuralError(msg)
    last = _last_child_path(nodes, target.path)
    if last is None:
        return f"{target.path}.1"
    return increment_last(last)


def replacement_path(nodes: Sequence[BudgetNode], target_id: str) -> str:
    """A replaced item keeps its own path."""
    target = _get(nodes, target_id)
    if target.is_stage:
        msg = f"Only items can be replaced, {target.path!r} is a stage"
        raise StructuralError(msg)
    return target.path


def allocate_path(
    nodes: Sequence[BudgetNode], target_id: str | None, action: ActionType
) -> str:
    """Suggested path for a pending action.

    Raises:
        NodeNotFoundError: target_id is required but absent.
        StructuralError: the action is not valid on the target.
    """
    if action is ActionType.ADD_ROOT_STAGE:
        if target_id is None:
            return next_root_path(nodes)
        return root_after_branch_path(nodes, target_id)
    if action in (ActionType.ADD_SIBLING_STAGE, ActionType.ADD_SIBLING_ITEM):
        if target_id is None:
            return next_root_path(nodes)
        return next_sibling_path(nodes, target_id)
    if action.adds_child:
        if target_id is None:
            msg = f"{action.value} needs a target stage"
            raise NodeNotFoundError(msg)
        return next_child_path(nodes, target_id)
    return replacement_path(nodes, target_id)
