"""Shared test fixtures."""

from pathlib import Path

import pytest

from tests.unit.fakes import TAPUME, item, stage
from wbs_budget.core.editor import BudgetEditor
from wbs_budget.models.node import BudgetNode
from wbs_budget.store import BudgetStore


@pytest.fixture
def sample_nodes() -> tuple[BudgetNode, ...]:
    """A small canonical budget.

    1   Serviços preliminares      3200.00
    1.1   Canteiro                 2700.00
    1.1.1   Tapume  10 m² x 240    2400.00
    1.1.2   Placa    2 un x 150     300.00
    1.2   Limpeza (no children)     500.00
    2   Fundações                     0.00
    """
    return (
        stage("s1", "1", "Serviços preliminares"),
        stage("s11", "1.1", "Canteiro"),
        item("i111", "1.1.1", "Tapume", quantity=10, unit="m²", unit_price=240, reference=TAPUME),
        item("i112", "1.1.2", "Placa de obra", quantity=2, unit_price=150),
        stage("s12", "1.2", "Limpeza", value=500),
        stage("s2", "2", "Fundações"),
    )


@pytest.fixture
def editor(sample_nodes: tuple[BudgetNode, ...]) -> BudgetEditor:
    return BudgetEditor(sample_nodes)


@pytest.fixture
def populated_dir(tmp_path: Path, sample_nodes: tuple[BudgetNode, ...]) -> Path:
    """Data directory holding the sample budget."""
    BudgetStore(tmp_path).save_budget(sample_nodes)
    return tmp_path
