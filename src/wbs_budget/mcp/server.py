"""MCP server exposing budget reading and tree editing tools."""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any

from loguru import logger
from mcp.server.fastmcp import Context, FastMCP

from wbs_budget.config import resolve_data_directory
from wbs_budget.core.editor import BudgetEditor
from wbs_budget.core.tree.codec import build_tree
from wbs_budget.core.tree.markdown import render_budget_as_markdown
from wbs_budget.core.tree.mutators import find_subtree
from wbs_budget.core.tree.navigation import get_ancestors
from wbs_budget.models.node import ActionType, BudgetNode, InsertMode, TreeNode
from wbs_budget.store import BudgetStore


def _load(store: BudgetStore) -> BudgetEditor:
    return BudgetEditor(
        store.load_budget(),
        blocks=store.load_blocks(),
        user_catalog=store.load_user_catalog(),
    )


def _save(store: BudgetStore, editor: BudgetEditor) -> None:
    store.save_budget(editor.nodes)
    store.save_blocks(editor.blocks)
    store.save_user_catalog(editor.user_catalog)


def _node_json(node: BudgetNode, totals: dict[str, float]) -> dict[str, Any]:
    entry: dict[str, Any] = {
        "id": node.id,
        "path": node.path,
        "kind": node.kind.value,
        "label": node.label,
        "total": round(totals.get(node.id, 0.0), 2),
    }
    if not node.is_stage:
        entry["quantity"] = node.quantity
        entry["unit"] = node.unit
        entry["unit_price"] = node.unit_price
        if node.reference:
            entry["code"] = f"{node.reference.source} {node.reference.code}"
    return entry


def _tree_json(
    tree_node: TreeNode, totals: dict[str, float], depth: int, max_depth: int | None
) -> dict[str, Any]:
    entry = _node_json(tree_node.node, totals)
    if tree_node.node.is_stage:
        entry["child_count"] = len(tree_node.children)
        # At the depth limit, omit children to signal "drill down"
        if max_depth is None or depth < max_depth:
            entry["children"] = [
                _tree_json(c, totals, depth + 1, max_depth) for c in tree_node.children
            ]
    return entry


# --- Core functions (testable without MCP context) ---


def budget_read(
    store: BudgetStore,
    *,
    node: str | None = None,
    max_depth: int | None = None,
    output_format: str = "markdown",
) -> dict[str, Any]:
    """Read the budget (or one node's subtree) as markdown or structured JSON.

    Args:
        node: Node id or path (None = whole budget).
        max_depth: Max depth levels to include (None = unlimited).
        output_format: "markdown" or "json".
    """
    editor = _load(store)
    root: BudgetNode | None = None
    if node is not None:
        root = editor.find(node)
        if root is None:
            return {"error": f"Node '{node}' not found."}

    output: dict[str, Any] = {"total": round(editor.grand_total(), 2)}
    if root is not None:
        output["breadcrumbs"] = " > ".join(
            a.label[:40] for a in get_ancestors(editor.nodes, root.path)
        )

    if output_format == "json":
        totals = editor.totals()
        forest = build_tree(editor.nodes)
        if root is None:
            output["children"] = [_tree_json(t, totals, 1, max_depth) for t in forest]
        else:
            subtree = find_subtree(forest, root.id)
            if subtree is not None:
                output.update(_tree_json(subtree, totals, 0, max_depth))
        return output

    output["content"] = render_budget_as_markdown(
        editor.nodes, root_id=root.id if root else None, max_depth=max_depth
    )
    return output


def budget_move(
    store: BudgetStore, *, node: str, target: str, mode: str = "INSIDE"
) -> dict[str, Any]:
    """Move a node with its subtree BEFORE, AFTER or INSIDE a target."""
    try:
        insert_mode = InsertMode(mode.upper())
    except ValueError:
        return {"success": False, "error": f"Unknown mode {mode!r}."}

    editor = _load(store)
    moved = editor.find(node)
    target_node = editor.find(target)
    if moved is None or target_node is None:
        return {"success": False, "error": "Node or target not found."}
    if not editor.move(moved.id, target_node.id, insert_mode):
        return {
            "success": False,
            "error": f"Cannot move {moved.path} {insert_mode.value} {target_node.path}.",
        }
    _save(store, editor)
    new_path = next(n.path for n in editor.nodes if n.id == moved.id)
    return {"success": True, "node_id": moved.id, "path": new_path}


def budget_add_stage(
    store: BudgetStore,
    *,
    label: str,
    parent: str | None = None,
    sibling_of: str | None = None,
) -> dict[str, Any]:
    """Add a stage as a child of parent, a sibling of sibling_of, or a new root."""
    editor = _load(store)
    ref = parent or sibling_of
    target_id: str | None = None
    if ref is not None:
        target_node = editor.find(ref)
        if target_node is None:
            return {"success": False, "error": f"Node '{ref}' not found."}
        target_id = target_node.id

    if parent is not None:
        action = ActionType.ADD_CHILD_STAGE
    elif sibling_of is not None:
        action = ActionType.ADD_SIBLING_STAGE
    else:
        action = ActionType.ADD_ROOT_STAGE

    if editor.begin_action(target_id, action) is None:
        return {"success": False, "error": f"Cannot add a stage there ({action.value})."}
    created = editor.confirm_stage(label)
    if created is None:
        return {"success": False, "error": "No label given."}
    _save(store, editor)
    return {"success": True, "node_id": created.id, "path": created.path}


def budget_remove(store: BudgetStore, *, node: str) -> dict[str, Any]:
    """Delete a node and its whole subtree."""
    editor = _load(store)
    found = editor.find(node)
    if found is None:
        return {"success": False, "error": f"Node '{node}' not found."}
    removed = editor.descendant_count(found.id) + 1
    editor.delete(found.id)
    _save(store, editor)
    return {"success": True, "removed": removed}


def budget_list_blocks(store: BudgetStore) -> dict[str, Any]:
    """List saved blocks."""
    blocks = store.load_blocks()
    return {
        "blocks": [
            {"id": b.id, "name": b.name, "created_at": b.created_at, "item_count": b.item_count}
            for b in blocks
        ],
        "count": len(blocks),
    }


def budget_insert_block(store: BudgetStore, *, block_id: str, target: str) -> dict[str, Any]:
    """Graft a fresh copy of a saved block under a stage."""
    editor = _load(store)
    target_node = editor.find(target)
    if target_node is None:
        return {"success": False, "error": f"Node '{target}' not found."}
    before = len(editor.nodes)
    if not editor.insert_block(block_id, target_node.id):
        return {"success": False, "error": f"Cannot insert block '{block_id}' there."}
    _save(store, editor)
    return {"success": True, "inserted": len(editor.nodes) - before}


# --- MCP Server Setup ---


@dataclass
class ServerContext:
    """Shared resources for the MCP server lifetime."""

    store: BudgetStore
    write_lock: asyncio.Lock = field(default_factory=asyncio.Lock)


@asynccontextmanager
async def server_lifespan(_server: FastMCP) -> AsyncIterator[ServerContext]:
    """Open the data directory on startup."""
    data_dir = resolve_data_directory()
    data_dir.mkdir(parents=True, exist_ok=True)
    logger.info("Serving budget from {}", data_dir)
    yield ServerContext(store=BudgetStore(data_dir))


mcp_server = FastMCP(
    "wbs-budget",
    instructions="""\
A hierarchical construction budget. Stages group other stages and items;
items carry quantity, unit and unit price. Nodes are addressed by id or by
their dotted path ("1", "1.2", "1.2.3"). Paths are renumbered after every
structural change, so re-read the budget before reusing a path.
""",
    lifespan=server_lifespan,
)


def _ctx(mcp_ctx: Context) -> ServerContext:
    return mcp_ctx.request_context.lifespan_context  # type: ignore[return-value]


# --- MCP Tool Wrappers ---


@mcp_server.tool()
async def budget_read_tool(
    ctx: Context,
    node: str | None = None,
    max_depth: int | None = None,
    output_format: str = "markdown",
) -> dict[str, Any]:
    """Read the budget or a node's subtree with rolled-up totals.

    Args:
        node: Node id or path (omit for the whole budget).
        max_depth: Max depth levels (None = unlimited).
        output_format: "markdown" (human-readable) or "json" (structured).
    """
    return budget_read(_ctx(ctx).store, node=node, max_depth=max_depth, output_format=output_format)


@mcp_server.tool()
async def budget_move_tool(
    ctx: Context, node: str, target: str, mode: str = "INSIDE"
) -> dict[str, Any]:
    """Move a node and its subtree relative to a target.

    Args:
        node: Node id or path to move.
        target: Target node id or path.
        mode: "BEFORE", "AFTER" or "INSIDE" (stages only).
    """
    async with _ctx(ctx).write_lock:
        return budget_move(_ctx(ctx).store, node=node, target=target, mode=mode)


@mcp_server.tool()
async def budget_add_stage_tool(
    ctx: Context, label: str, parent: str | None = None, sibling_of: str | None = None
) -> dict[str, Any]:
    """Add a stage.

    Args:
        label: Stage description.
        parent: Add as last child of this stage.
        sibling_of: Add as last sibling of this node.
    """
    async with _ctx(ctx).write_lock:
        return budget_add_stage(_ctx(ctx).store, label=label, parent=parent, sibling_of=sibling_of)


@mcp_server.tool()
async def budget_remove_tool(ctx: Context, node: str) -> dict[str, Any]:
    """Delete a node together with everything below it.

    Args:
        node: Node id or path.
    """
    async with _ctx(ctx).write_lock:
        return budget_remove(_ctx(ctx).store, node=node)


@mcp_server.tool()
async def budget_list_blocks_tool(ctx: Context) -> dict[str, Any]:
    """List saved blocks (reusable value-zeroed stage templates)."""
    return budget_list_blocks(_ctx(ctx).store)


@mcp_server.tool()
async def budget_insert_block_tool(ctx: Context, block_id: str, target: str) -> dict[str, Any]:
    """Insert a fresh copy of a saved block under a stage.

    Args:
        block_id: Block id from budget_list_blocks_tool.
        target: Stage id or path.
    """
    async with _ctx(ctx).write_lock:
        return budget_insert_block(_ctx(ctx).store, block_id=block_id, target=target)


def run_mcp_server() -> None:
    """Run the MCP server with stdio transport."""
    from wbs_budget.logging_config import configure_logging

    configure_logging(verbose=False)
    mcp_server.run(transport="stdio")
