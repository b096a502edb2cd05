"""Convert between the flat node list and the nested tree view."""

import dataclasses
from collections.abc import Iterable, Sequence

from loguru import logger

from wbs_budget.core.tree.paths import child_path, parent_path, sort_key
from wbs_budget.models.node import BudgetNode, TreeNode


def sort_by_path(nodes: Iterable[BudgetNode]) -> tuple[BudgetNode, ...]:
    """Order nodes by numeric path; ties keep their input order."""
    return tuple(sorted(nodes, key=lambda n: sort_key(n.path)))


def build_tree(nodes: Iterable[BudgetNode]) -> tuple[TreeNode, ...]:
    """Rebuild the hierarchy encoded by node paths.

    Nodes are sorted first so parents precede children. A node whose parent
    path does not resolve to a stage (missing, or an item) becomes an extra
    root, so corrupt input is reshaped rather than dropped.
    """
    roots: list[BudgetNode] = []
    children: dict[str, list[BudgetNode]] = {}
    # path -> id of the last stage seen at that path
    stage_by_path: dict[str, str] = {}

    for node in sort_by_path(nodes):
        parent = parent_path(node.path)
        parent_id = stage_by_path.get(parent) if parent is not None else None
        if parent_id is None:
            if parent is not None:
                logger.debug("Orphaned node {} at {}, promoting to root", node.id, node.path)
            roots.append(node)
        else:
            children.setdefault(parent_id, []).append(node)
        if node.is_stage:
            stage_by_path[node.path] = node.id

    def freeze(node: BudgetNode) -> TreeNode:
        return TreeNode(node=node, children=tuple(freeze(c) for c in children.pop(node.id, [])))

    return tuple(freeze(r) for r in roots)


def flatten_tree(
    forest: Sequence[TreeNode], parent: str | None = None
) -> tuple[BudgetNode, ...]:
    """Flatten depth-first, renumbering every path from sibling positions.

    Previous paths are discarded entirely; this is the only place paths are
    (re)written after a structural change.
    """
    result: list[BudgetNode] = []
    for index, tree_node in enumerate(forest, start=1):
        path = child_path(parent, index)
        node = tree_node.node
        if node.path != path:
            node = dataclasses.replace(node, path=path)
        result.append(node)
        result.extend(flatten_tree(tree_node.children, path))
    return tuple(result)


def normalize(nodes: Iterable[BudgetNode]) -> tuple[BudgetNode, ...]:
    """Canonical form: sorted, contiguous, gap-free paths."""
    return flatten_tree(build_tree(nodes))
