import pytest

from cta.core.notices import Severity
from cta.template import controller as c
from cta.template import fields as fm
from cta.template import tree_store as ts
from cta.template.controller import ClipOp, Nav, TreeEditorController
from cta.template.models import FieldType

from builders import field, node


@pytest.fixture()
def ctl(qtbot, notifier, confirmer):
    return TreeEditorController(notify=notifier, confirm=confirmer, debounce_ms=20)


@pytest.fixture()
def loaded(ctl, sample_forest):
    ctl.load(sample_forest)
    return ctl


def keys(forest):
    return [n.key for n in forest]


# --- Loading and selection

def test_load_selects_and_expands_first_root(loaded):
    assert loaded.selected_id == "r"
    assert loaded.is_expanded("r")
    assert not loaded.is_expanded("a")
    assert not loaded.has_errors


def test_load_emits_forest_before_selection(ctl, sample_forest):
    order = []
    ctl.forestChanged.connect(lambda f: order.append("forest"))
    ctl.selectionChanged.connect(lambda nid: order.append(("selection", nid)))
    ctl.load(sample_forest)
    assert order == ["forest", ("selection", "r")]


def test_selection_is_pinned_while_key_is_invalid(loaded, notifier):
    assert loaded.select("a")
    assert not loaded.set_key("1bad")
    assert loaded.key_error == fm.KEY_FORMAT

    assert not loaded.select("b")
    assert loaded.selected_id == "a"
    assert notifier.last == (c.MSG_FIX_ERRORS, Severity.ERROR)

    # Re-selecting the same node and clearing the selection are always allowed
    assert loaded.select("a")
    assert loaded.select(None)
    assert loaded.selected_id is None
    assert not loaded.has_errors


def test_select_unknown_id_is_rejected(loaded):
    assert not loaded.select("missing")
    assert loaded.selected_id == "r"


# --- Key editing

def test_key_is_buffered_until_commit(loaded):
    loaded.select("a")
    loaded.set_key_text("alpha2")
    assert ts.find(loaded.forest, "a").key == "alpha"
    assert loaded.has_pending
    assert loaded.commit_key()
    assert ts.find(loaded.forest, "a").key == "alpha2"
    assert not loaded.has_pending


def test_duplicate_sibling_key_marks_both_nodes(loaded):
    loaded.select("b")
    assert not loaded.set_key("alpha")
    assert loaded.key_error == fm.KEY_DUPLICATE
    # The invalid key never reaches the tree, both clashing nodes are reported
    assert ts.find(loaded.forest, "b").key == "beta"
    assert loaded.node_errors() == {"a": fm.KEY_DUPLICATE, "b": fm.KEY_DUPLICATE}

    assert loaded.set_key("gamma")
    assert loaded.key_error is None
    assert loaded.node_errors() == {}
    assert ts.find(loaded.forest, "b").key == "gamma"


def test_same_key_under_another_parent_is_allowed(loaded):
    loaded.select("a1")
    assert loaded.set_key("beta")


# --- Node operations

def test_add_node_under_selection(loaded, notifier):
    loaded.select("b")
    new = loaded.add_node()
    assert new is not None
    assert ts.find_parent_id(loaded.forest, new.id) == "b"
    assert loaded.selected_id == new.id
    assert loaded.is_expanded("b")
    assert loaded.key_error == fm.KEY_REQUIRED
    assert notifier.last[1] is Severity.SUCCESS


def test_add_root_without_selection(loaded):
    loaded.select(None)
    new = loaded.add_node()
    assert loaded.forest[-1].id == new.id


def test_add_node_blocked_by_errors(loaded, notifier):
    loaded.add_node()  # new child with an empty key
    before = loaded.forest
    assert loaded.add_node() is None
    assert loaded.forest is before
    assert notifier.last == (c.MSG_FIX_ERRORS_ADD, Severity.ERROR)


def test_delete_requires_confirmation(loaded, confirmer):
    loaded.select("a")
    confirmer.answer = False
    assert not loaded.delete_node()
    assert ts.find(loaded.forest, "a") is not None

    confirmer.answer = True
    loaded.set_expanded("a", True)
    assert loaded.delete_node()
    assert confirmer.prompts == [c.MSG_CONFIRM_DELETE, c.MSG_CONFIRM_DELETE]
    assert set(ts.all_ids(loaded.forest)) == {"r", "b", "s"}
    assert loaded.selected_id is None
    assert not loaded.is_expanded("a")


def test_delete_is_allowed_with_errors(loaded):
    loaded.add_node()
    assert loaded.has_errors
    assert loaded.delete_node()
    assert not loaded.has_errors


def test_copy_and_repeat_paste(loaded):
    """ Copy a node, paste it twice under its sibling. """
    loaded.select("a")
    assert loaded.copy_node()
    assert loaded.clipboard.operation is ClipOp.copy

    loaded.select("b")
    first = loaded.paste_node()
    loaded.select("b")
    second = loaded.paste_node()

    b = ts.find(loaded.forest, "b")
    assert [ch.id for ch in b.children] == [first.id, second.id]
    assert keys(b.children) == ["alpha", "alpha"]
    assert loaded.clipboard is not None
    ids = ts.all_ids(loaded.forest)
    assert len(ids) == len(set(ids))
    assert loaded.selected_id == second.id


def test_cut_and_paste_moves_the_subtree(loaded, confirmer):
    loaded.select("a")
    assert loaded.cut_node()
    assert confirmer.prompts == [c.MSG_CONFIRM_CUT]
    assert ts.find(loaded.forest, "a") is None
    assert loaded.selected_id is None

    loaded.select("s")
    pasted = loaded.paste_node()
    assert ts.find_parent_id(loaded.forest, pasted.id) == "s"
    assert keys(pasted.children) == ["leaf", "leaf2"]
    assert loaded.clipboard is None


def test_cut_declined_changes_nothing(loaded, confirmer):
    loaded.select("a")
    confirmer.answer = False
    before = loaded.forest
    assert not loaded.cut_node()
    assert loaded.forest is before
    assert loaded.clipboard is None


def test_paste_target_checks(ctl, notifier):
    forest = [node("x", "x", node("y", "y")), node("z", "z")]
    ctl.load(forest)
    ctl.select("x")
    ctl.copy_node()
    # A copy may be pasted anywhere, even into itself
    ctl.select("y")
    assert ctl.can_paste()

    # For a cut the source and its former descendants are refused
    ctl.load(forest, keep_clipboard=False)
    ctl.select("x")
    assert ctl.cut_node()
    ctl.load(forest, keep_clipboard=True)
    for target in ("x", "y"):
        ctl.select(target)
        assert not ctl.can_paste()
        assert ctl.paste_node() is None
        assert notifier.last == (c.MSG_PASTE_BLOCKED, Severity.WARNING)
    ctl.select("z")
    assert ctl.can_paste()


def test_copy_blocked_by_errors(loaded, notifier):
    loaded.add_node()
    assert not loaded.copy_node()
    assert notifier.last == (c.MSG_COPY_BLOCKED, Severity.ERROR)
    assert not loaded.cut_node()
    assert notifier.last == (c.MSG_CUT_BLOCKED, Severity.ERROR)


def test_stored_field_errors_apply_on_selection(ctl, notifier):
    ctl.load([
        node("r", "root", fields=[field("1bad"), field("dup"), field("dup")]),
        node("s", "second"),
    ])
    assert ctl.selected_id == "r"
    assert set(ctl.field_errors) == {0, 1, 2}
    assert ctl.has_errors

    assert not ctl.copy_node()
    assert notifier.last == (c.MSG_COPY_BLOCKED, Severity.ERROR)
    assert not ctl.select("s")
    assert not ctl.navigate(Nav.DOWN)
    assert ctl.selected_id == "r"


def test_without_confirmer_destructive_actions_are_declined(qtbot, sample_forest):
    ctl = TreeEditorController()
    ctl.load(sample_forest)
    ctl.select("a")
    assert not ctl.delete_node()
    assert not ctl.cut_node()
    ctl.select("b")
    assert not ctl.change_field_type(0, FieldType.number)
    assert ts.all_ids(ctl.forest) == ts.all_ids(sample_forest)
    assert ctl.fields[0].type is FieldType.text


def test_move_up_and_down(loaded):
    loaded.select("b")
    assert loaded.can_move_up() and not loaded.can_move_down()
    assert not loaded.move_down()
    assert loaded.move_up()
    assert [ch.id for ch in ts.find(loaded.forest, "r").children] == ["b", "a"]
    assert loaded.selected_id == "b"


def test_node_flags(loaded, notifier):
    loaded.select("a")
    assert loaded.set_node_flag("editable", False)
    assert ts.find(loaded.forest, "a").editable is False

    loaded.set_key("1bad")
    assert not loaded.set_node_flag("orderable", False)
    assert notifier.last == (c.MSG_FLAGS_BLOCKED, Severity.ERROR)
    assert ts.find(loaded.forest, "a").orderable is True


# --- Fields

def test_field_values_are_debounced(loaded, qtbot):
    loaded.select("b")
    assert loaded.set_field_value(0, "Hi there")
    assert ts.find(loaded.forest, "b").fields[0].value == "Hello"
    assert loaded.fields[0].value == "Hi there"
    qtbot.waitUntil(lambda: ts.find(loaded.forest, "b").fields[0].value == "Hi there", timeout=1000)
    assert not loaded.has_pending


def test_flush_drains_pending_edits(loaded):
    loaded.select("b")
    loaded.set_field_value(0, "Flushed")
    loaded.set_key_text("renamed")
    forest = loaded.flush()
    b = ts.find(forest, "b")
    assert (b.key, b.fields[0].value) == ("renamed", "Flushed")
    assert not loaded.has_pending


def test_flush_keeps_tree_when_key_invalid(loaded):
    loaded.select("b")
    loaded.set_key_text("bad key")
    forest = loaded.flush()
    assert ts.find(forest, "b").key == "beta"
    assert loaded.key_error == fm.KEY_FORMAT


def test_boolean_edits_commit_immediately(loaded):
    loaded.select("b")
    loaded.change_field_type(0, FieldType.checkbox)
    assert ts.find(loaded.forest, "b").fields[0].value is True
    loaded.set_field_value(0, False)
    assert ts.find(loaded.forest, "b").fields[0].value is False


def test_new_field_blocks_until_keyed(loaded, notifier):
    loaded.select("b")
    loaded.add_field()
    assert loaded.field_errors == {1: fm.KEY_REQUIRED}
    assert not loaded.select("a")

    loaded.set_field_attr(1, "key", "title")
    assert loaded.field_errors == {0: fm.KEY_DUPLICATE, 1: fm.KEY_DUPLICATE}
    loaded.set_field_attr(1, "key", "subtitle")
    assert loaded.field_errors == {}
    assert loaded.select("a")
    assert [f.key for f in ts.find(loaded.forest, "b").fields] == ["title", "subtitle"]


def test_delete_field_clears_its_error(loaded):
    loaded.select("b")
    loaded.add_field()
    assert loaded.has_errors
    loaded.delete_field(1)
    assert not loaded.has_errors
    assert len(ts.find(loaded.forest, "b").fields) == 1


def test_number_input_is_coerced(loaded):
    loaded.select("b")
    loaded.change_field_type(0, "number")
    loaded.set_field_value(0, "12.5")
    assert loaded.fields[0].value == 12.5
    loaded.set_field_value(0, "abc")
    assert loaded.fields[0].value == 0


def test_type_change_needs_confirmation(loaded, confirmer):
    loaded.select("b")
    loaded.set_field_attr(0, "regex", "^H")
    confirmer.answer = False
    assert not loaded.change_field_type(0, FieldType.number)
    assert loaded.fields[0].type is FieldType.text

    confirmer.answer = True
    assert loaded.change_field_type(0, FieldType.number)
    f = ts.find(loaded.forest, "b").fields[0]
    assert (f.type, f.value, f.regex) == (FieldType.number, 0, "")


def test_field_flag_rules(loaded, notifier):
    loaded.select("b")
    assert loaded.set_field_flag(0, "visible", False)
    f = ts.find(loaded.forest, "b").fields[0]
    assert (f.visible, f.editable, f.required) == (False, False, False)

    assert not loaded.set_field_flag(0, "required", True)
    assert notifier.last == (fm.FLAG_LOCKED, Severity.WARNING)


def test_list_and_option_edits(loaded, notifier):
    loaded.select("b")
    loaded.add_field()
    loaded.set_field_attr(1, "key", "tags")
    loaded.change_field_type(1, FieldType.tag)
    assert loaded.add_list_item(1, "news")
    assert not loaded.add_list_item(1, "news")
    assert notifier.last == (fm.ITEM_DUPLICATE, Severity.WARNING)

    loaded.change_field_type(0, FieldType.select)
    assert loaded.add_option(0, "a", "A")
    assert loaded.add_option(0, "b", "B")
    assert loaded.select_option(0, 1)
    assert loaded.remove_option(0, 1)
    forest = loaded.flush()
    b = ts.find(forest, "b")
    assert b.fields[1].value == ["news"]
    assert b.fields[0].value == [{"key": "a", "value": "A", "selected": True}]


def test_field_errors_reset_on_selection_change(loaded):
    loaded.select("b")
    loaded.set_field_attr(0, "key", "ok_key")
    loaded.select("a")
    assert loaded.fields == []
    assert loaded.field_errors == {}


# --- Image previews

def test_image_preview_handles_are_released(loaded, tmp_path):
    loaded.select("b")
    loaded.change_field_type(0, FieldType.image)
    first = loaded.set_image_file(0, tmp_path / "one.png")
    assert first in loaded.previews

    second = loaded.set_image_file(0, tmp_path / "two.png")
    assert first not in loaded.previews
    assert second in loaded.previews

    # Type change away from image releases the handle
    loaded.change_field_type(0, FieldType.text)
    assert len(loaded.previews) == 0


def test_preview_released_when_node_deleted_and_on_close(loaded, tmp_path):
    loaded.select("b")
    loaded.change_field_type(0, FieldType.image)
    ref = loaded.set_image_file(0, tmp_path / "one.png")
    loaded.flush()
    loaded.select("a")
    assert ref in loaded.previews

    loaded.select("b")
    loaded.delete_node()
    assert ref not in loaded.previews

    loaded.select("a")
    loaded.add_field()
    loaded.change_field_type(0, FieldType.image)
    loaded.set_image_file(0, tmp_path / "two.png")
    loaded.close()
    assert len(loaded.previews) == 0


def test_copied_preview_survives_until_clipboard_clears(loaded, tmp_path):
    loaded.select("b")
    loaded.change_field_type(0, FieldType.image)
    ref = loaded.set_image_file(0, tmp_path / "one.png")
    loaded.cut_node()
    # The cut node is only on the clipboard now
    assert ref in loaded.previews
    loaded.load([node("n", "n")])
    assert ref not in loaded.previews


def test_pasted_copy_keeps_its_preview_when_source_changes(loaded, tmp_path):
    loaded.select("b")
    loaded.change_field_type(0, FieldType.image)
    first = loaded.set_image_file(0, tmp_path / "one.png")
    assert loaded.copy_node()
    loaded.select("s")
    clone = loaded.paste_node()

    loaded.select("b")
    second = loaded.set_image_file(0, tmp_path / "two.png")
    forest = loaded.flush()
    assert ts.find(forest, clone.id).fields[0].value == first
    assert loaded.previews.resolve(first) == tmp_path / "one.png"
    assert loaded.previews.resolve(second) == tmp_path / "two.png"

    # Once the copy and the clipboard are gone so is the old handle
    loaded.select(clone.id)
    loaded.delete_node()
    assert first in loaded.previews  # still on the clipboard
    loaded.load(forest[:1])
    assert first not in loaded.previews


# --- Keyboard navigation

def test_arrow_navigation(loaded):
    assert loaded.navigate(Nav.DOWN)
    assert loaded.selected_id == "a"
    # Right on a collapsed parent expands it, a second Right enters it
    assert loaded.navigate(Nav.RIGHT)
    assert loaded.is_expanded("a") and loaded.selected_id == "a"
    assert loaded.navigate(Nav.RIGHT)
    assert loaded.selected_id == "a1"
    assert not loaded.navigate(Nav.RIGHT)  # leaf
    assert loaded.navigate(Nav.DOWN)
    assert loaded.selected_id == "a2"
    assert loaded.navigate(Nav.DOWN)
    assert loaded.selected_id == "b"
    # Left on a leaf goes to the parent, Left on an expanded parent collapses it
    assert loaded.navigate(Nav.LEFT)
    assert loaded.selected_id == "r"
    assert loaded.navigate(Nav.LEFT)
    assert not loaded.is_expanded("r")
    assert not loaded.navigate(Nav.LEFT)  # root without parent
    assert loaded.navigate(Nav.DOWN)
    assert loaded.selected_id == "s"
    assert not loaded.navigate(Nav.DOWN)


def test_navigation_is_blocked_by_errors(loaded):
    loaded.select("a")
    loaded.set_key("bad key")
    assert not loaded.navigate(Nav.DOWN)
    assert loaded.selected_id == "a"


def test_navigation_without_selection_picks_first_root(loaded):
    loaded.select(None)
    assert loaded.navigate("down")
    assert loaded.selected_id == "r"


def test_expansion_of_invalid_node_is_refused(loaded):
    loaded.select("a")
    loaded.set_key("")
    assert not loaded.set_expanded("a", True)
    assert loaded.set_expanded("s", True)


# --- Scenarios

def test_scenario_add_child_and_rename(ctl):
    ctl.load([node("r", "root")])
    child = ctl.add_node()
    assert ts.find_parent_id(ctl.forest, child.id) == "r"

    # No sibling carries "root", so it is allowed here
    assert ctl.set_key("root")
    assert not ctl.set_key("1bad")
    assert ctl.key_error == fm.KEY_FORMAT
    assert ts.find(ctl.forest, child.id).key == "root"
    assert ctl.set_key("child1")
    assert ts.find(ctl.forest, child.id).key == "child1"
    assert not ctl.has_errors


def test_scenario_copy_to_sibling(ctl):
    ctl.load([node("A", "foo"), node("B", "bar")])
    ctl.select("A")
    ctl.copy_node()
    ctl.select("B")
    pasted = ctl.paste_node()

    b = ts.find(ctl.forest, "B")
    assert [ch.id for ch in b.children] == [pasted.id]
    assert pasted.id != "A"
    assert pasted.key == "foo"
    assert not ctl.has_errors
    assert ctl.clipboard.operation is ClipOp.copy
