"""Convert budget models to and from JSON-compatible dicts."""

from typing import Any

from wbs_budget.core.search.catalog import parse_entry
from wbs_budget.models.node import Block, BudgetNode, CatalogEntry, CostBreakdown, NodeKind


def entry_to_dict(entry: CatalogEntry) -> dict[str, Any]:
    return {
        "id": entry.id,
        "code": entry.code,
        "source": entry.source,
        "description": entry.description,
        "unit": entry.unit,
        "price": entry.price,
        "type": entry.entry_type,
        "date": entry.date,
    }


def node_to_dict(node: BudgetNode) -> dict[str, Any]:
    """Serialize a node, omitting unset optional fields."""
    data: dict[str, Any] = {
        "id": node.id,
        "path": node.path,
        "kind": node.kind.value,
        "label": node.label,
        "value": node.value,
    }
    for key in ("quantity", "unit", "unit_price", "calculation_memory"):
        val = getattr(node, key)
        if val is not None:
            data[key] = val
    if node.reference is not None:
        data["reference"] = entry_to_dict(node.reference)
    if node.cost_breakdown is not None:
        data["cost_breakdown"] = {
            "material": node.cost_breakdown.material,
            "labor": node.cost_breakdown.labor,
            "others": node.cost_breakdown.others,
        }
    return data


def node_from_dict(data: dict[str, Any]) -> BudgetNode:
    """Parse a node dict; numeric fields are kept exactly as stored."""
    breakdown = data.get("cost_breakdown")
    reference = data.get("reference")
    return BudgetNode(
        id=data["id"],
        path=data["path"],
        kind=NodeKind(data["kind"]),
        label=data.get("label", ""),
        quantity=data.get("quantity"),
        unit=data.get("unit"),
        unit_price=data.get("unit_price"),
        value=data.get("value", 0.0),
        reference=parse_entry(reference) if reference else None,
        calculation_memory=data.get("calculation_memory"),
        cost_breakdown=CostBreakdown(**breakdown) if breakdown else None,
    )


def block_to_dict(block: Block) -> dict[str, Any]:
    return {
        "id": block.id,
        "name": block.name,
        "created_at": block.created_at,
        "item_count": block.item_count,
        "items": [node_to_dict(n) for n in block.items],
    }


def block_from_dict(data: dict[str, Any]) -> Block:
    return Block(
        id=data["id"],
        name=data["name"],
        created_at=data["created_at"],
        items=tuple(node_from_dict(n) for n in data.get("items", [])),
    )
