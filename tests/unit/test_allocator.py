"""Tests for next-path allocation of menu insertions."""

import pytest

from tests.unit.fakes import item, stage
from wbs_budget.core.tree.allocator import (
    allocate_path,
    next_child_path,
    next_root_path,
    next_sibling_path,
)
from wbs_budget.errors import NodeNotFoundError, StructuralError
from wbs_budget.models.node import ActionType, BudgetNode


def test_next_root_path_on_empty_budget() -> None:
    assert next_root_path(()) == "1"


def test_next_root_path_after_last_root(sample_nodes: tuple[BudgetNode, ...]) -> None:
    assert next_root_path(sample_nodes) == "3"


def test_add_child_to_empty_stage() -> None:
    nodes = (stage("a", "1"), stage("b", "1.1"))

    assert allocate_path(nodes, "b", ActionType.ADD_CHILD_STAGE) == "1.1.1"


def test_add_child_after_last_child(sample_nodes: tuple[BudgetNode, ...]) -> None:
    assert next_child_path(sample_nodes, "s11") == "1.1.3"


def test_add_sibling_after_numerically_last() -> None:
    nodes = (
        stage("a", "1"),
        stage("p", "1.2"),
        item("x", "1.2.1"),
        item("y", "1.2.2"),
        item("z", "1.2.3"),
    )

    assert allocate_path(nodes, "z", ActionType.ADD_SIBLING_ITEM) == "1.2.4"
    assert allocate_path(nodes, "x", ActionType.ADD_SIBLING_ITEM) == "1.2.4"


def test_sibling_ordering_is_numeric() -> None:
    nodes = (stage("a", "1"), *(item(f"i{i}", f"1.{i}") for i in range(1, 11)))

    assert next_sibling_path(nodes, "i2") == "1.11"


def test_sibling_without_target_is_a_root(sample_nodes: tuple[BudgetNode, ...]) -> None:
    assert allocate_path(sample_nodes, None, ActionType.ADD_SIBLING_ITEM) == "3"


def test_root_stage_after_target_branch(sample_nodes: tuple[BudgetNode, ...]) -> None:
    assert allocate_path(sample_nodes, "i111", ActionType.ADD_ROOT_STAGE) == "2"


def test_child_of_item_is_structural_error(sample_nodes: tuple[BudgetNode, ...]) -> None:
    with pytest.raises(StructuralError, match="cannot have children"):
        allocate_path(sample_nodes, "i111", ActionType.ADD_CHILD_ITEM)


def test_child_without_target_raises(sample_nodes: tuple[BudgetNode, ...]) -> None:
    with pytest.raises(NodeNotFoundError):
        allocate_path(sample_nodes, None, ActionType.ADD_CHILD_STAGE)


def test_unknown_target_raises(sample_nodes: tuple[BudgetNode, ...]) -> None:
    with pytest.raises(NodeNotFoundError):
        allocate_path(sample_nodes, "ghost", ActionType.ADD_SIBLING_STAGE)


def test_replace_keeps_item_path(sample_nodes: tuple[BudgetNode, ...]) -> None:
    assert allocate_path(sample_nodes, "i112", ActionType.REPLACE_ITEM) == "1.1.2"


def test_replace_stage_is_structural_error(sample_nodes: tuple[BudgetNode, ...]) -> None:
    with pytest.raises(StructuralError):
        allocate_path(sample_nodes, "s1", ActionType.REPLACE_ITEM)
