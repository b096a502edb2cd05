"""Work breakdown structure (WBS) budget editor."""

from wbs_budget.api import CatalogApi
from wbs_budget.core.editor import BudgetEditor
from wbs_budget.models.node import Block, BudgetNode, CatalogEntry, InsertMode, NodeKind
from wbs_budget.protocols import CatalogApiProtocol
from wbs_budget.store import BudgetStore

__all__ = [
    "Block",
    "BudgetEditor",
    "BudgetNode",
    "BudgetStore",
    "CatalogApi",
    "CatalogApiProtocol",
    "CatalogEntry",
    "InsertMode",
    "NodeKind",
]
