"""Structural changes to the budget tree: remove, insert, move, delete.

Tree-level functions work on the transient nested view and never fail: a
missing target or a forbidden placement returns the forest unchanged. The
flat-list wrappers (move_node, delete_node) flatten after every successful
change and return the *same* tuple object when nothing was applied, so callers
can detect a rejected operation with an identity check.
"""

import dataclasses
from collections.abc import Sequence

from loguru import logger

from wbs_budget.core.tree.codec import build_tree, flatten_tree
from wbs_budget.core.tree.paths import is_descendant_of
from wbs_budget.models.node import BudgetNode, InsertMode, TreeNode


def find_subtree(forest: Sequence[TreeNode], node_id: str) -> TreeNode | None:
    """Depth-first lookup of the subtree rooted at node_id."""
    for tree_node in forest:
        if tree_node.node.id == node_id:
            return tree_node
        found = find_subtree(tree_node.children, node_id)
        if found is not None:
            return found
    return None


def remove_node(
    forest: Sequence[TreeNode], node_id: str
) -> tuple[TreeNode | None, tuple[TreeNode, ...]]:
    """Detach the first node matching node_id together with its subtree.

    Returns:
        Tuple of (removed subtree or None, new forest). The forest is unchanged
        when node_id is not found.
    """
    forest = tuple(forest)
    for i, tree_node in enumerate(forest):
        if tree_node.node.id == node_id:
            return tree_node, forest[:i] + forest[i + 1 :]
        if tree_node.children:
            removed, children = remove_node(tree_node.children, node_id)
            if removed is not None:
                updated = dataclasses.replace(tree_node, children=children)
                return removed, forest[:i] + (updated,) + forest[i + 1 :]
    return None, forest


def _insert(
    forest: tuple[TreeNode, ...], subtree: TreeNode, target_id: str, mode: InsertMode
) -> tuple[TreeNode, ...] | None:
    for i, tree_node in enumerate(forest):
        if tree_node.node.id == target_id:
            if mode is InsertMode.INSIDE:
                if not tree_node.node.is_stage:
                    return None
                updated = dataclasses.replace(tree_node, children=(*tree_node.children, subtree))
                return forest[:i] + (updated,) + forest[i + 1 :]
            at = i if mode is InsertMode.BEFORE else i + 1
            return forest[:at] + (subtree,) + forest[at:]
        if tree_node.children:
            children = _insert(tree_node.children, subtree, target_id, mode)
            if children is not None:
                updated = dataclasses.replace(tree_node, children=children)
                return forest[:i] + (updated,) + forest[i + 1 :]
    return None


def insert_node(
    forest: Sequence[TreeNode], subtree: TreeNode, target_id: str, mode: InsertMode
) -> tuple[TreeNode, ...]:
    """Place subtree before, after or inside the node matching target_id.

    INSIDE appends subtree as the target's last child and is refused for items.
    BEFORE/AFTER insert an adjacent sibling in the target's own child list (the
    root list for root targets). An unknown target or a refused placement
    returns the forest unchanged.
    """
    forest = tuple(forest)
    result = _insert(forest, subtree, target_id, mode)
    if result is None:
        logger.debug("Insert {} {} {} not applied", subtree.node.id, mode.value, target_id)
        return forest
    return result


def can_move(nodes: Sequence[BudgetNode], node_id: str, target_id: str) -> bool:
    """Cycle guard: the target may be neither the node itself nor below it.

    Checked against the paths as they are before removal, since a detached
    subtree's own paths are stale until the next flatten.
    """
    if node_id == target_id:
        return False
    by_id = {n.id: n for n in nodes}
    node = by_id.get(node_id)
    target = by_id.get(target_id)
    if node is None or target is None:
        return False
    return not is_descendant_of(target.path, node.path)


def move_node(
    nodes: tuple[BudgetNode, ...], node_id: str, target_id: str, mode: InsertMode
) -> tuple[BudgetNode, ...]:
    """Move node_id (with its subtree) relative to target_id and renumber.

    Returns the original tuple object when the move is rejected: unknown ids,
    a cycle, or INSIDE an item.
    """
    if not can_move(nodes, node_id, target_id):
        logger.warning("Rejected move of {} {} {}", node_id, mode.value, target_id)
        return nodes
    target = next(n for n in nodes if n.id == target_id)
    if mode is InsertMode.INSIDE and not target.is_stage:
        logger.warning("Rejected move of {} into item {}", node_id, target_id)
        return nodes

    removed, cleaned = remove_node(build_tree(nodes), node_id)
    if removed is None:
        return nodes
    # The dragged subtree may have picked up the target via orphan promotion.
    if find_subtree(removed.children, target_id) is not None:
        logger.warning("Rejected move of {} below its own descendant {}", node_id, target_id)
        return nodes
    inserted = insert_node(cleaned, removed, target_id, mode)
    if inserted is cleaned:
        return nodes
    logger.debug("Moved {} {} {}", node_id, mode.value, target_id)
    return flatten_tree(inserted)


def delete_node(nodes: tuple[BudgetNode, ...], node_id: str) -> tuple[BudgetNode, ...]:
    """Remove a node and all its descendants, renumbering the rest."""
    removed, cleaned = remove_node(build_tree(nodes), node_id)
    if removed is None:
        logger.warning("Cannot delete {}: not found", node_id)
        return nodes
    logger.debug("Deleted {} ({} descendants)", node_id, len(flatten_tree(removed.children)))
    return flatten_tree(cleaned)
