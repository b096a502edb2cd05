"""CLI for the WBS budget (show, edit, search, blocks, MCP server)."""

import json
from pathlib import Path
from typing import Annotated

import typer

from wbs_budget.api import CatalogApi
from wbs_budget.config import resolve_data_directory
from wbs_budget.core.editor import BudgetEditor
from wbs_budget.core.storage.json_format import node_to_dict
from wbs_budget.core.tree.markdown import render_budget_as_markdown
from wbs_budget.logging_config import configure_logging
from wbs_budget.models.node import ActionType, BudgetNode, InsertMode
from wbs_budget.store import BudgetStore

app = typer.Typer(help="WBS budget: edit a hierarchical construction budget.")

DataDirOption = Annotated[
    Path | None,
    typer.Option("--data-dir", "-d", help="Budget data directory"),
]


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    configure_logging(verbose=verbose)


def _open(data_dir: Path | None, *, remote: bool = False) -> tuple[BudgetStore, BudgetEditor]:
    """Open the store (creating the directory) and load an editor from it."""
    dst = data_dir or resolve_data_directory()
    dst.mkdir(parents=True, exist_ok=True)
    store = BudgetStore(dst)
    editor = BudgetEditor(
        store.load_budget(),
        blocks=store.load_blocks(),
        user_catalog=store.load_user_catalog(),
        catalog_api=CatalogApi() if remote else None,
    )
    return store, editor


def _save(store: BudgetStore, editor: BudgetEditor) -> None:
    store.save_budget(editor.nodes)
    store.save_blocks(editor.blocks)
    store.save_user_catalog(editor.user_catalog)


def _require(editor: BudgetEditor, ref: str) -> BudgetNode:
    node = editor.find(ref)
    if node is None:
        typer.echo(f"Node '{ref}' not found.")
        raise typer.Exit(1)
    return node


@app.command()
def show(
    node: Annotated[
        str | None,
        typer.Option("--node", "-n", help="Only this node's subtree (id or path)"),
    ] = None,
    max_depth: Annotated[
        int | None,
        typer.Option("--max-depth", "-m", help="Max depth levels to render"),
    ] = None,
    output_json: bool = typer.Option(False, "--json", "-j", help="Output as JSON"),
    data_dir: DataDirOption = None,
) -> None:
    """Print the budget tree with totals."""
    _store, editor = _open(data_dir)
    if output_json:
        typer.echo(json.dumps([node_to_dict(n) for n in editor.nodes], indent=2))
        return
    root_id = _require(editor, node).id if node else None
    md = render_budget_as_markdown(editor.nodes, root_id=root_id, max_depth=max_depth)
    typer.echo(md if md else "Budget is empty.")
    if root_id is None and editor.nodes:
        typer.echo(f"Total: {editor.grand_total():.2f}")


def _target_action(
    parent: str | None, sibling_of: str | None, *, stage: bool
) -> tuple[str | None, ActionType]:
    if parent and sibling_of:
        typer.echo("Use only one of --parent and --sibling-of.")
        raise typer.Exit(1)
    if parent:
        return parent, ActionType.ADD_CHILD_STAGE if stage else ActionType.ADD_CHILD_ITEM
    if sibling_of:
        return sibling_of, ActionType.ADD_SIBLING_STAGE if stage else ActionType.ADD_SIBLING_ITEM
    return None, ActionType.ADD_ROOT_STAGE if stage else ActionType.ADD_SIBLING_ITEM


@app.command(name="add-stage")
def add_stage(
    label: str = typer.Argument(..., help="Stage description"),
    parent: Annotated[
        str | None, typer.Option("--parent", "-p", help="Add as last child of this stage")
    ] = None,
    sibling_of: Annotated[
        str | None, typer.Option("--sibling-of", "-s", help="Add as last sibling of this node")
    ] = None,
    data_dir: DataDirOption = None,
) -> None:
    """Add a stage (a root stage when no target is given)."""
    store, editor = _open(data_dir)
    target, action = _target_action(parent, sibling_of, stage=True)
    target_id = _require(editor, target).id if target else None
    if editor.begin_action(target_id, action) is None:
        typer.echo(f"Cannot add a stage there ({action.value}).")
        raise typer.Exit(1)
    created = editor.confirm_stage(label)
    if created is None:
        typer.echo("Stage not added.")
        raise typer.Exit(1)
    _save(store, editor)
    typer.echo(f"Added stage {created.path} {created.label}  id={created.id}")


@app.command(name="add-item")
def add_item(
    label: str = typer.Argument(..., help="Item description, or search text with --code"),
    parent: Annotated[
        str | None, typer.Option("--parent", "-p", help="Add as last child of this stage")
    ] = None,
    sibling_of: Annotated[
        str | None, typer.Option("--sibling-of", "-s", help="Add as last sibling of this node")
    ] = None,
    code: Annotated[
        str | None, typer.Option("--code", "-c", help="Link the catalog entry with this code")
    ] = None,
    accept_newer: bool = typer.Option(
        False, "--accept-newer", help="Use catalog prices newer than the project date"
    ),
    remote: bool = typer.Option(False, "--remote", "-r", help="Also query the catalog service"),
    data_dir: DataDirOption = None,
) -> None:
    """Add an item, optionally linked to a catalog entry."""
    store, editor = _open(data_dir, remote=remote)
    target, action = _target_action(parent, sibling_of, stage=False)
    target_id = _require(editor, target).id if target else None
    if editor.begin_action(target_id, action) is None:
        typer.echo(f"Cannot add an item there ({action.value}).")
        raise typer.Exit(1)

    if code is None:
        created = editor.confirm_manual_item(label)
    else:
        entry = next((e for e in editor.search(label) if e.code == code), None)
        if entry is None:
            typer.echo(f"Catalog entry '{code}' not found for '{label}'.")
            raise typer.Exit(1)
        if not editor.select_candidate(entry):
            if editor.pending_conflict is None:
                raise typer.Exit(1)
            typer.echo(f"Entry {entry.code} is priced at {entry.date}, after the project date.")
            if not editor.resolve_conflict(accept_newer):
                typer.echo("Kept prior data; pass --accept-newer to use it anyway.")
                raise typer.Exit(1)
        created = editor.get(editor.highlighted_id) if editor.highlighted_id else None

    if created is None:
        typer.echo("Item not added.")
        raise typer.Exit(1)
    _save(store, editor)
    typer.echo(f"Added item {created.path} {created.label[:60]}  id={created.id}")


@app.command()
def move(
    node: str = typer.Argument(..., help="Node to move (id or path)"),
    target: str = typer.Argument(..., help="Target node (id or path)"),
    mode: Annotated[
        InsertMode | None,
        typer.Option("--mode", "-m", case_sensitive=False, help="BEFORE, AFTER or INSIDE"),
    ] = None,
    offset: Annotated[
        float | None,
        typer.Option("--offset", "-o", help="Drop offset on the target row (0=top, 1=bottom)"),
    ] = None,
    data_dir: DataDirOption = None,
) -> None:
    """Move a node (with its subtree) relative to a target.

    Give either an explicit --mode or a drag-style --offset.
    """
    if (mode is None) == (offset is None):
        typer.echo("Give exactly one of --mode and --offset.")
        raise typer.Exit(1)
    store, editor = _open(data_dir)
    moved = _require(editor, node)
    target_node = _require(editor, target)
    if offset is not None:
        ok = editor.drop(moved.id, target_node.id, offset)
    else:
        ok = editor.move(moved.id, target_node.id, mode or InsertMode.AFTER)
    if not ok:
        typer.echo(f"Cannot move {moved.path} onto {target_node.path}.")
        raise typer.Exit(1)
    _save(store, editor)
    new_path = next(n.path for n in editor.nodes if n.id == moved.id)
    typer.echo(f"Moved {moved.label} from {moved.path} to {new_path}")


@app.command()
def remove(
    node: str = typer.Argument(..., help="Node to delete (id or path)"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
    data_dir: DataDirOption = None,
) -> None:
    """Delete a node and everything below it."""
    store, editor = _open(data_dir)
    found = _require(editor, node)
    count = editor.descendant_count(found.id)
    if not yes:
        extra = f" and its {count} descendant(s)" if count else ""
        typer.confirm(f"Delete {found.path} {found.label}{extra}?", abort=True)
    editor.delete(found.id)
    _save(store, editor)
    typer.echo(f"Deleted {found.path} {found.label} ({count + 1} node(s))")


@app.command()
def search(
    query: str = typer.Argument(..., help="Search text (min 3 characters)"),
    remote: bool = typer.Option(False, "--remote", "-r", help="Also query the catalog service"),
    data_dir: DataDirOption = None,
) -> None:
    """Search the price-book catalog."""
    _store, editor = _open(data_dir, remote=remote)
    results = editor.search(query)
    typer.echo(f"Found {len(results)} entries:\n")
    for e in results:
        typer.echo(f"  [{e.source} {e.code}] {e.description[:80]}")
        typer.echo(f"    {e.unit}  {e.price:.2f}  {e.entry_type}  {e.date}")


@app.command(name="block-save")
def block_save(
    node: str = typer.Argument(..., help="Stage to save (id or path)"),
    name: Annotated[str | None, typer.Option("--name", help="Block name")] = None,
    data_dir: DataDirOption = None,
) -> None:
    """Save a stage subtree as a reusable, value-zeroed block."""
    store, editor = _open(data_dir)
    block = editor.save_block(_require(editor, node).id, name)
    if block is None:
        typer.echo("Only stages can be saved as blocks.")
        raise typer.Exit(1)
    _save(store, editor)
    typer.echo(f"Saved block '{block.name}' ({block.item_count} nodes)  id={block.id}")


@app.command(name="block-list")
def block_list(data_dir: DataDirOption = None) -> None:
    """List saved blocks."""
    _store, editor = _open(data_dir)
    typer.echo(f"{len(editor.blocks)} blocks:\n")
    for b in editor.blocks:
        typer.echo(f"  {b.name} - {b.item_count} nodes, {b.created_at[:10]}  [id={b.id}]")


@app.command(name="block-insert")
def block_insert(
    block_id: str = typer.Argument(..., help="Block id"),
    target: str = typer.Argument(..., help="Stage to graft into (id or path)"),
    data_dir: DataDirOption = None,
) -> None:
    """Insert a fresh copy of a saved block under a stage."""
    store, editor = _open(data_dir)
    target_node = _require(editor, target)
    if not editor.insert_block(block_id, target_node.id):
        typer.echo(f"Could not insert block '{block_id}' under {target_node.path}.")
        raise typer.Exit(1)
    _save(store, editor)
    typer.echo(f"Inserted block under {target_node.path} {target_node.label}")


@app.command()
def serve() -> None:
    """Start the MCP server (stdio transport)."""
    from wbs_budget.mcp.server import run_mcp_server

    run_mcp_server()

