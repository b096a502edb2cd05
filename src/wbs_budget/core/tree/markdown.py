"""Render the budget (or a stage subtree) as markdown."""

import io
from collections.abc import Sequence

from wbs_budget.core.tree.codec import sort_by_path
from wbs_budget.core.tree.navigation import count_descendants, rollup_totals
from wbs_budget.core.tree.paths import depth, is_descendant_of
from wbs_budget.models.node import BudgetNode


def _format_line(node: BudgetNode, total: float) -> str:
    if node.is_stage:
        return f"**{node.path} {node.label}** = {total:.2f}"
    quantity = node.quantity if node.quantity is not None else 1
    unit = node.unit or (node.reference.unit if node.reference else "")
    price = node.unit_price if node.unit_price is not None else node.value
    code = f" [{node.reference.source} {node.reference.code}]" if node.reference else ""
    return f"{node.path} {node.label}{code}: {quantity:g} {unit} x {price:.2f} = {total:.2f}"


def render_budget_as_markdown(
    nodes: Sequence[BudgetNode],
    *,
    root_id: str | None = None,
    max_depth: int | None = None,
) -> str:
    """Render nodes as an indented markdown bullet list.

    Args:
        nodes: The flat budget.
        root_id: Render only this node and its descendants (None = whole budget).
        max_depth: Max levels below the start to include (None = unlimited).

    Returns:
        Markdown string, empty if root_id is not found.
    """
    ordered = sort_by_path(nodes)
    start_depth = 0
    if root_id is not None:
        root = next((n for n in ordered if n.id == root_id), None)
        if root is None:
            return ""
        start_depth = depth(root.path)
        ordered = tuple(
            n for n in ordered if n.id == root_id or is_descendant_of(n.path, root.path)
        )

    totals = rollup_totals(nodes)

    out = io.StringIO()
    for node in ordered:
        relative_depth = depth(node.path) - start_depth
        if max_depth is not None and relative_depth > max_depth:
            continue
        indent = "    " * relative_depth
        out.write(f"{indent}- {_format_line(node, totals.get(node.id, 0.0))}\n")

        # Truncation indicator when children are cut off by max_depth
        if max_depth is not None and relative_depth == max_depth and node.is_stage:
            hidden = count_descendants(nodes, node.id)
            if hidden > 0:
                child_indent = "    " * (relative_depth + 1)
                noun = "node" if hidden == 1 else "nodes"
                out.write(f"{child_indent}- ... ({hidden} more {noun}, id={node.id})\n")

    return out.getvalue()
