"""Tests for BudgetEditor, the editing session over the flat budget."""

import pytest

from tests.unit.fakes import FakeCatalogApi, item, remote_row, stage
from wbs_budget.core.editor import BudgetEditor
from wbs_budget.core.search.catalog import BUILTIN_ENTRIES
from wbs_budget.core.tree.codec import normalize
from wbs_budget.models.node import ActionType, BudgetNode, InsertMode, NodeKind


def _layout(editor: BudgetEditor) -> list[tuple[str, str]]:
    return [(n.id, n.path) for n in editor.nodes]


def test_init_normalizes_paths() -> None:
    editor = BudgetEditor([stage("b", "4"), stage("a", "2")])

    assert _layout(editor) == [("a", "1"), ("b", "2")]


def test_find_by_id_or_path(editor: BudgetEditor) -> None:
    assert editor.find("s11") is editor.find("1.1")
    assert editor.find("9.9") is None


# --- Collapse ---


def test_toggle_collapse_hides_descendants(editor: BudgetEditor) -> None:
    editor.toggle_collapse("s11")

    assert [n.id for n in editor.visible_nodes()] == ["s1", "s11", "s12", "s2"]

    editor.toggle_collapse("s11")
    assert len(editor.visible_nodes()) == 6


def test_collapse_all_and_expand_all(editor: BudgetEditor) -> None:
    editor.collapse_all()
    assert [n.id for n in editor.visible_nodes()] == ["s1", "s2"]

    editor.expand_all()
    assert editor.collapsed == frozenset()


# --- Drag and drop ---


def test_hover_does_not_mutate(editor: BudgetEditor) -> None:
    before = editor.nodes

    assert editor.hover("s2", "s11", 0.5) is InsertMode.INSIDE
    assert editor.nodes is before


def test_drop_inside_stage(editor: BudgetEditor) -> None:
    assert editor.drop("s2", "s11", 0.5)

    assert editor.find("s2").path == "1.1.3"  # type: ignore[union-attr]


def test_drop_on_descendant_is_rejected(editor: BudgetEditor) -> None:
    """Hover shows no target and the drop commits nothing."""
    before = editor.nodes

    assert editor.hover("s1", "i111", 0.1) is None
    assert not editor.drop("s1", "i111", 0.1)
    assert editor.nodes is before


def test_drop_on_item_reorders(editor: BudgetEditor) -> None:
    assert editor.drop("i112", "i111", 0.2)

    assert [n.id for n in editor.nodes if not n.is_stage] == ["i112", "i111"]


# --- Menu insertions ---


def test_add_child_stage_expands_target(editor: BudgetEditor) -> None:
    editor.toggle_collapse("s2")

    pending = editor.begin_action("s2", ActionType.ADD_CHILD_STAGE)
    assert pending is not None
    assert pending.suggested_path == "2.1"
    assert "s2" not in editor.collapsed

    created = editor.confirm_stage("Sapatas")
    assert created is not None
    assert created.path == "2.1"
    assert editor.highlighted_id == created.id
    assert editor.pending is None


def test_add_root_stage_without_target_appends(editor: BudgetEditor) -> None:
    editor.begin_action(None, ActionType.ADD_ROOT_STAGE)

    created = editor.confirm_stage("Estrutura")

    assert created is not None
    assert created.path == "3"


def test_add_root_stage_with_target_goes_after_its_branch(editor: BudgetEditor) -> None:
    editor.begin_action("i111", ActionType.ADD_ROOT_STAGE)

    created = editor.confirm_stage("Demolição")

    assert created is not None
    assert created.path == "2"
    assert editor.find("s2").path == "3"  # type: ignore[union-attr]


def test_add_sibling_stage(editor: BudgetEditor) -> None:
    editor.begin_action("s11", ActionType.ADD_SIBLING_STAGE)

    created = editor.confirm_stage("Ligações provisórias")

    assert created is not None
    assert created.path == "1.3"


def test_confirm_stage_with_blank_label_keeps_pending(editor: BudgetEditor) -> None:
    editor.begin_action(None, ActionType.ADD_ROOT_STAGE)

    assert editor.confirm_stage("   ") is None
    assert editor.pending is not None


def test_begin_action_on_invalid_target_is_none(editor: BudgetEditor) -> None:
    assert editor.begin_action("i111", ActionType.ADD_CHILD_ITEM) is None
    assert editor.begin_action("ghost", ActionType.ADD_SIBLING_ITEM) is None
    assert editor.pending is None


def test_manual_item_gets_defaults(editor: BudgetEditor) -> None:
    editor.begin_action("s12", ActionType.ADD_CHILD_ITEM)

    created = editor.confirm_manual_item("Caçamba")

    assert created is not None
    assert created.kind is NodeKind.ITEM
    assert created.path == "1.2.1"
    assert created.quantity == 1.0
    assert created.unit == "un"
    assert created.reference is None


def test_manual_replace_relabels_and_unlinks(editor: BudgetEditor) -> None:
    editor.begin_action("i111", ActionType.REPLACE_ITEM)

    replaced = editor.confirm_manual_item("Tapume próprio")

    assert replaced is not None
    assert replaced.id == "i111"
    assert replaced.path == "1.1.1"
    assert replaced.reference is None
    assert replaced.quantity == 10


def test_select_candidate_adds_linked_item(editor: BudgetEditor) -> None:
    editor.begin_action("i112", ActionType.ADD_SIBLING_ITEM)
    m1 = BUILTIN_ENTRIES[0]

    assert editor.select_candidate(m1)

    created = editor.get(editor.highlighted_id)  # type: ignore[arg-type]
    assert created is not None
    assert created.path == "1.1.3"
    assert created.reference == m1
    assert created.unit_price == m1.price


def test_newer_candidate_waits_for_confirmation(editor: BudgetEditor) -> None:
    editor.begin_action("s12", ActionType.ADD_CHILD_ITEM)
    m2 = BUILTIN_ENTRIES[1]
    before = editor.nodes

    assert not editor.select_candidate(m2)
    assert editor.pending_conflict == m2
    assert editor.nodes is before

    assert editor.resolve_conflict(use_candidate=True)
    assert editor.find("1.2.1").reference == m2  # type: ignore[union-attr]


def test_declining_newer_candidate_keeps_prior_data(editor: BudgetEditor) -> None:
    editor.begin_action("i111", ActionType.REPLACE_ITEM)
    before = editor.nodes

    editor.select_candidate(BUILTIN_ENTRIES[1])
    assert not editor.resolve_conflict(use_candidate=False)

    assert editor.nodes is before
    assert editor.pending is None
    assert editor.pending_conflict is None


def test_replace_with_candidate_keeps_quantity(editor: BudgetEditor) -> None:
    editor.begin_action("i111", ActionType.REPLACE_ITEM)
    m3 = BUILTIN_ENTRIES[2]

    assert editor.select_candidate(m3)

    replaced = editor.get("i111")
    assert replaced is not None
    assert replaced.reference == m3
    assert replaced.quantity == 10
    assert replaced.total == pytest.approx(10 * m3.price)


def test_search_includes_user_catalog_and_remote(sample_nodes: tuple[BudgetNode, ...]) -> None:
    api = FakeCatalogApi([remote_row("777", "Tapume remoto")])
    editor = BudgetEditor(sample_nodes, catalog_api=api)
    editor.save_to_user_catalog("i112")

    results = editor.search("placa")

    assert results[0].source == "PROPRIA"
    assert results[-1].code == "777"
    assert api.calls == ["placa"]


def test_path_is_reallocated_at_confirm_time(editor: BudgetEditor) -> None:
    editor.begin_action("s11", ActionType.ADD_CHILD_ITEM)
    editor.delete("i111")

    created = editor.confirm_manual_item("Novo")

    assert created is not None
    assert created.path == "1.1.2"


# --- Inline edits ---


def test_update_item_parses_numbers(editor: BudgetEditor) -> None:
    assert editor.update_item("i112", "quantity", "4")
    assert editor.update_item("i112", "unit_price", "abc")
    assert editor.update_item("i112", "unit", "cj")

    node = editor.get("i112")
    assert node is not None
    assert node.quantity == 4.0
    assert node.unit_price == 0.0
    assert node.unit == "cj"


@pytest.mark.parametrize("raw", ["nan", "inf", "-Infinity"])
def test_update_item_rejects_non_finite_numbers(editor: BudgetEditor, raw: str) -> None:
    assert editor.update_item("i111", "quantity", raw)

    assert editor.get("i111").quantity == 0.0  # type: ignore[union-attr]
    assert editor.grand_total() == pytest.approx(800)


def test_update_item_rejects_stages_and_unknown_fields(editor: BudgetEditor) -> None:
    assert not editor.update_item("s1", "quantity", "3")
    assert not editor.update_item("i112", "label", "x")


def test_rename(editor: BudgetEditor) -> None:
    assert editor.rename("s2", "  Fundações profundas ")
    assert editor.get("s2").label == "Fundações profundas"  # type: ignore[union-attr]
    assert not editor.rename("s2", " ")


def test_totals_roll_up(editor: BudgetEditor) -> None:
    assert editor.grand_total() == pytest.approx(3200)

    editor.update_item("i111", "quantity", "20")

    assert editor.totals()["s1"] == pytest.approx(5600)


# --- Deletion ---


def test_delete_cascades_and_cleans_state(editor: BudgetEditor) -> None:
    editor.toggle_collapse("s11")
    editor.begin_action("s11", ActionType.ADD_CHILD_ITEM)
    editor.highlighted_id = "i111"

    assert editor.descendant_count("s11") == 2
    assert editor.delete("s11")

    assert _layout(editor) == [("s1", "1"), ("s12", "1.1"), ("s2", "2")]
    assert editor.collapsed == frozenset()
    assert editor.pending is None
    assert editor.highlighted_id is None


def test_delete_unknown_is_noop(editor: BudgetEditor) -> None:
    assert not editor.delete("ghost")


# --- Blocks ---


def test_save_and_insert_block(editor: BudgetEditor) -> None:
    block = editor.save_block("s11", "Canteiro padrão")
    assert block is not None
    assert editor.blocks[0] is block

    editor.toggle_collapse("s2")
    assert editor.insert_block(block.id, "s2")

    grafted = [n for n in editor.nodes if n.path.startswith("2.")]
    assert [n.path for n in grafted] == ["2.1", "2.1.1", "2.1.2"]
    assert all(n.total == 0 for n in grafted if not n.is_stage)
    assert "s2" not in editor.collapsed


def test_newest_block_comes_first(editor: BudgetEditor) -> None:
    first = editor.save_block("s11")
    second = editor.save_block("s12")

    assert [b.id for b in editor.blocks] == [second.id, first.id]  # type: ignore[union-attr]
    assert editor.blocks[1].name == "Canteiro"


def test_save_block_from_item_fails(editor: BudgetEditor) -> None:
    assert editor.save_block("i111") is None
    assert editor.blocks == ()


def test_delete_block(editor: BudgetEditor) -> None:
    block = editor.save_block("s12")
    assert block is not None

    assert editor.delete_block(block.id)
    assert not editor.delete_block(block.id)


def test_insert_unknown_block_fails(editor: BudgetEditor) -> None:
    assert not editor.insert_block("ghost", "s2")


# --- User catalog ---


def test_save_linked_item_to_user_catalog(editor: BudgetEditor) -> None:
    entry = editor.save_to_user_catalog("i111")

    assert entry is not None
    assert entry.code == "P-98567"
    assert entry.source == "PROPRIA"
    assert entry.price == 240
    assert entry.unit == "m²"
    assert editor.user_catalog == (entry,)


def test_save_unlinked_item_gets_generated_code(editor: BudgetEditor) -> None:
    entry = editor.save_to_user_catalog("i112")

    assert entry is not None
    assert entry.code.startswith("P-")
    assert entry.entry_type == "INSUMO"


def test_stage_cannot_go_to_user_catalog(editor: BudgetEditor) -> None:
    assert editor.save_to_user_catalog("s1") is None


def test_delete_user_catalog_entry(editor: BudgetEditor) -> None:
    entry = editor.save_to_user_catalog("i112")
    assert entry is not None

    assert editor.delete_user_catalog_entry(entry.id)
    assert editor.user_catalog == ()


def test_items_added_under_empty_budget() -> None:
    editor = BudgetEditor()
    editor.begin_action(None, ActionType.ADD_SIBLING_ITEM)

    created = editor.confirm_manual_item("Mobilização")

    assert created is not None
    assert created.path == "1"
    assert editor.grand_total() == 0


def test_orphans_under_items_are_promoted() -> None:
    editor = BudgetEditor([item("x", "1"), stage("s", "1.1")])

    assert _layout(editor) == [("x", "1"), ("s", "2")]


def _assert_canonical(nodes: tuple[BudgetNode, ...]) -> None:
    paths = [n.path for n in nodes]
    by_path = {n.path: n for n in nodes}
    assert len(set(paths)) == len(paths)
    assert normalize(nodes) == nodes
    for node in nodes:
        if "." in node.path:
            parent = by_path.get(node.path.rsplit(".", 1)[0])
            assert parent is not None
            assert parent.is_stage


def test_paths_stay_canonical_across_edits(editor: BudgetEditor) -> None:
    block = editor.save_block("s11", "Canteiro padrão")
    assert block is not None

    assert editor.drop("s2", "s11", 0.5)
    _assert_canonical(editor.nodes)
    assert editor.drop("i112", "s12", 0.5)
    _assert_canonical(editor.nodes)
    assert editor.insert_block(block.id, "s2")
    _assert_canonical(editor.nodes)
    assert editor.delete("i111")
    _assert_canonical(editor.nodes)
    editor.begin_action("s12", ActionType.ADD_CHILD_STAGE)
    assert editor.confirm_stage("Nova") is not None
    _assert_canonical(editor.nodes)
    assert not editor.drop("s1", "i112", 0.5)

    assert len(editor.nodes) == 9
    _assert_canonical(editor.nodes)
