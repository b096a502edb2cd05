"""Tree navigation over the flat list: ancestors, children, visibility, totals."""

from collections.abc import Collection, Sequence

from wbs_budget.core.tree.codec import build_tree, sort_by_path
from wbs_budget.core.tree.paths import ancestor_paths, is_descendant_of, parent_path
from wbs_budget.models.node import BudgetNode, TreeNode


def get_ancestors(nodes: Sequence[BudgetNode], path: str) -> tuple[BudgetNode, ...]:
    """Breadcrumbs for a path, from the root down to the immediate parent."""
    by_path = {n.path: n for n in nodes}
    return tuple(by_path[p] for p in ancestor_paths(path) if p in by_path)


def get_children(nodes: Sequence[BudgetNode], parent_id: str | None) -> tuple[BudgetNode, ...]:
    """Direct children of a node (roots when parent_id is None), in path order."""
    if parent_id is None:
        return sort_by_path(n for n in nodes if parent_path(n.path) is None)
    parent = next((n for n in nodes if n.id == parent_id), None)
    if parent is None:
        return ()
    return sort_by_path(n for n in nodes if parent_path(n.path) == parent.path)


def count_descendants(nodes: Sequence[BudgetNode], node_id: str) -> int:
    """How many nodes a cascading delete of node_id would also remove."""
    node = next((n for n in nodes if n.id == node_id), None)
    if node is None:
        return 0
    return sum(1 for n in nodes if is_descendant_of(n.path, node.path))


def is_visible(
    node: BudgetNode, nodes: Sequence[BudgetNode], collapsed: Collection[str]
) -> bool:
    """A node is visible iff none of its ancestor stages is collapsed."""
    if not collapsed:
        return True
    return not any(a.id in collapsed for a in get_ancestors(nodes, node.path))


def visible_nodes(
    nodes: Sequence[BudgetNode], collapsed: Collection[str]
) -> tuple[BudgetNode, ...]:
    """Rows to render, in path order."""
    return tuple(n for n in sort_by_path(nodes) if is_visible(n, nodes, collapsed))


def rollup_totals(nodes: Sequence[BudgetNode]) -> dict[str, float]:
    """Total per node id: item lines, and stages summed over their subtree.

    A stage with no children keeps its stored value.
    """
    totals: dict[str, float] = {}

    def visit(tree_node: TreeNode) -> float:
        node = tree_node.node
        if node.is_stage and tree_node.children:
            total = sum(visit(c) for c in tree_node.children)
        else:
            total = node.total
        totals[node.id] = total
        return total

    for root in build_tree(nodes):
        visit(root)
    return totals
