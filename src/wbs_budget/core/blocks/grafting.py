"""Save a stage subtree as a reusable block and graft blocks back in."""

import dataclasses
from collections.abc import Callable
from datetime import UTC, datetime

from loguru import logger

from wbs_budget.config import DEFAULT_UNIT
from wbs_budget.core.tree.codec import build_tree, flatten_tree, sort_by_path
from wbs_budget.core.tree.mutators import insert_node
from wbs_budget.core.tree.paths import is_descendant_of, parent_path
from wbs_budget.models.node import Block, BudgetNode, InsertMode, generate_id


def _zero_values(node: BudgetNode) -> BudgetNode:
    """Template copy: stage aggregates and all prices zeroed, quantity 1."""
    if node.is_stage:
        return dataclasses.replace(node, value=0.0)
    reference = node.reference
    if reference is not None:
        reference = dataclasses.replace(reference, price=0.0)
    return dataclasses.replace(
        node,
        value=0.0,
        quantity=1.0,
        unit=node.unit or (node.reference.unit if node.reference else DEFAULT_UNIT),
        unit_price=0.0,
        reference=reference,
    )


def extract_block(
    nodes: tuple[BudgetNode, ...],
    root_id: str,
    name: str,
    *,
    now: datetime | None = None,
) -> Block | None:
    """Copy a stage and its descendants into a value-zeroed block template.

    Paths are rebased so the stage becomes "1"; node ids are kept, so
    extracting the same unchanged subtree twice yields identical items.

    Returns:
        The block, or None if root_id is unknown or not a stage.
    """
    root = next((n for n in nodes if n.id == root_id), None)
    if root is None:
        logger.warning("Cannot save block: node {} not found", root_id)
        return None
    if not root.is_stage:
        logger.warning("Cannot save block: {} is an item", root.path)
        return None

    subtree = sort_by_path(
        n for n in nodes if n.id == root_id or is_descendant_of(n.path, root.path)
    )
    prefix = parent_path(root.path)
    if prefix is not None:
        # strip the enclosing stages so the subtree parses as a root of its own
        subtree = tuple(dataclasses.replace(n, path=n.path[len(prefix) + 1 :]) for n in subtree)
    items = flatten_tree(build_tree(_zero_values(n) for n in subtree))
    created = (now or datetime.now(tz=UTC)).isoformat()
    logger.debug("Extracted block {!r} with {} nodes from {}", name, len(items), root.path)
    return Block(id=generate_id(), name=name, created_at=created, items=items)


def insert_block(
    nodes: tuple[BudgetNode, ...],
    block: Block,
    target_id: str,
    *,
    id_factory: Callable[[], str] = generate_id,
) -> tuple[BudgetNode, ...]:
    """Graft a fresh copy of block under the stage target_id.

    Every block node gets a new id (one-to-one, so the block's own hierarchy
    survives). All block roots are appended inside the target and the result is
    flattened once. The block itself is never modified.

    Returns:
        The new flat list, or the original tuple if the target is unknown or
        an item, or the block is empty.
    """
    target = next((n for n in nodes if n.id == target_id), None)
    if target is None or not target.is_stage:
        logger.warning("Cannot insert block {!r} under {}", block.name, target_id)
        return nodes
    if not block.items:
        return nodes

    id_map = {item.id: id_factory() for item in block.items}
    copies = [dataclasses.replace(item, id=id_map[item.id]) for item in block.items]

    tree = build_tree(nodes)
    for block_root in build_tree(copies):
        tree = insert_node(tree, block_root, target_id, InsertMode.INSIDE)
    logger.info("Inserted block {!r} ({} nodes) under {}", block.name, len(copies), target.path)
    return flatten_tree(tree)
