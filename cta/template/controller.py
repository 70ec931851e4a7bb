from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Set

from PySide6.QtCore import QObject, QTimer, Signal

from cta.core.notices import Confirmer, Notifier, Severity
from cta.template import fields as fm
from cta.template import tree_store as ts
from cta.template.models import FieldType, Node, NodeField
from cta.template.previews import PreviewHandles, is_preview_ref

logger = logging.getLogger(__name__)

# ---- Messages ----------------------------------------------------------------
MSG_FIX_ERRORS = "Fix the errors on the current node first."
MSG_FIX_ERRORS_ADD = "Fix the errors on the current node before adding a child node."
MSG_COPY_BLOCKED = "A node with errors cannot be copied."
MSG_CUT_BLOCKED = "A node with errors cannot be cut."
MSG_PASTE_BLOCKED = "Cannot paste here (a node cannot be moved into itself or its descendants)."
MSG_FLAGS_BLOCKED = "Properties of a node with errors cannot be changed."
MSG_CONFIRM_DELETE = "The selected node and all of its children will be deleted. Continue?"
MSG_CONFIRM_CUT = "The selected node and all of its children will be cut to the clipboard. Continue?"
MSG_CONFIRM_TYPE = "Changing the type resets the value, regex and extra of this field. Continue?"


class ClipOp(str, Enum):
    copy = "copy"
    cut = "cut"


class Nav(str, Enum):
    UP = "up"
    DOWN = "down"
    LEFT = "left"
    RIGHT = "right"


@dataclass(frozen=True)
class Clipboard:
    node: Node
    operation: ClipOp
    source_id: str


def _noop_notify(message: str, severity: Severity) -> None:
    logger.info("%s: %s", severity.value, message)


class TreeEditorController(QObject):
    """ Editing session over one template forest.

    Holds the authoritative forest together with selection, clipboard, expansion and error state.
    Structural operations go through ``tree_store`` and replace the forest as a whole. Rejected
    operations report through ``notify`` and leave every piece of state untouched.

    Field edits of the selected node are buffered. Boolean, type and flag changes are written to the
    forest immediately, everything else after a short debounce. ``flush()`` drains the buffer and must
    be called before the forest is handed to anything outside the editor.
    """
    forestChanged = Signal(list)
    selectionChanged = Signal(object)
    errorsChanged = Signal(bool)
    clipboardChanged = Signal(bool)
    expansionChanged = Signal(object)
    fieldsChanged = Signal(list)

    def __init__(self, notify: Notifier | None = None, confirm: Confirmer | None = None, *,
                 debounce_ms: int = 100, previews: PreviewHandles | None = None,
                 parent: QObject | None = None):
        super().__init__(parent)
        self._notify = notify or _noop_notify
        # Without a confirmer destructive actions are declined
        self._confirm = confirm or (lambda prompt: False)
        self.previews = previews or PreviewHandles()

        self._forest: List[Node] = []
        self._selected_id: Optional[str] = None
        self._expanded: Set[str] = set()
        self._clipboard: Optional[Clipboard] = None

        # Buffered edits of the selected node
        self._pending_key: Optional[str] = None
        self._fields: List[NodeField] = []
        self._fields_dirty = False

        # Derived error state of the selected node
        self._key_error: Optional[str] = None
        self._field_errors: Dict[int, str] = {}

        self._debounce_ms = debounce_ms
        self._debounce = QTimer(self)
        self._debounce.setSingleShot(True)
        self._debounce.timeout.connect(self._commit_fields)

    # --- getters ---
    @property
    def forest(self) -> List[Node]:
        return self._forest

    @property
    def selected_id(self) -> Optional[str]:
        return self._selected_id

    @property
    def selected_node(self) -> Optional[Node]:
        if self._selected_id is None:
            return None
        return ts.find(self._forest, self._selected_id)

    @property
    def clipboard(self) -> Optional[Clipboard]:
        return self._clipboard

    @property
    def expanded_ids(self) -> frozenset:
        return frozenset(self._expanded)

    @property
    def fields(self) -> List[NodeField]:
        return list(self._fields)

    @property
    def key_error(self) -> Optional[str]:
        return self._key_error

    @property
    def field_errors(self) -> Dict[int, str]:
        return dict(self._field_errors)

    @property
    def has_errors(self) -> bool:
        return bool(self._key_error) or bool(self._field_errors)

    @property
    def has_pending(self) -> bool:
        return self._fields_dirty or self._pending_key is not None

    @property
    def pending_key(self) -> Optional[str]:
        return self._pending_key

    def is_expanded(self, node_id: str) -> bool:
        return node_id in self._expanded

    def node_errors(self) -> Dict[str, str]:
        """ Per-node key errors for display. The selected node's buffered key is taken into account so
        a clash marks both the edited node and the sibling it collides with.
        """
        forest = self._forest
        if self._selected_id and self._pending_key is not None:
            forest = ts.update(forest, self._selected_id, {"key": self._pending_key.strip()})
        errors = {nid: fm.KEY_DUPLICATE for nid in ts.duplicate_key_ids(forest)}
        if self._selected_id and self._key_error:
            errors[self._selected_id] = self._key_error
        return errors

    # --- session ---
    def load(self, forest: List[Node], *, keep_clipboard: bool = False) -> None:
        """ Start editing a new forest. The first root is selected and expanded when it has children. """
        self._debounce.stop()
        self._forest = list(forest)
        self._expanded = set()
        self._selected_id = None
        self._reset_buffers()
        if not keep_clipboard and self._clipboard is not None:
            self._clipboard = None
            self.clipboardChanged.emit(False)
        if self._forest and self._forest[0].children:
            self._expanded.add(self._forest[0].id)
        self._sweep_previews()
        self.forestChanged.emit(self._forest)
        self.expansionChanged.emit(self.expanded_ids)
        self._set_selection(self._forest[0].id if self._forest else None)

    def flush(self) -> List[Node]:
        """ Apply the buffered key (when valid) and any pending field edits; return the forest. """
        if self._pending_key is not None:
            self.commit_key()
        self._commit_fields()
        return self._forest

    def close(self) -> None:
        self._debounce.stop()
        self._fields_dirty = False
        self.previews.release_all()

    # --- selection ---
    def select(self, node_id: Optional[str]) -> bool:
        if node_id == self._selected_id:
            return True
        self.flush()
        if node_id is not None and self.has_errors:
            self._notify(MSG_FIX_ERRORS, Severity.ERROR)
            return False
        if node_id is not None and ts.find(self._forest, node_id) is None:
            return False
        self._set_selection(node_id)
        return True

    def _set_selection(self, node_id: Optional[str]) -> None:
        self._debounce.stop()
        self._selected_id = node_id
        self._reset_buffers()
        node = self.selected_node
        if node is not None:
            self._fields = list(node.fields)
            self._key_error = self._check_key(node.key)
            self._field_errors = fm.validate_fields(self._fields)
        self.selectionChanged.emit(node_id)
        self.fieldsChanged.emit(self.fields)
        self.errorsChanged.emit(self.has_errors)

    def _reset_buffers(self) -> None:
        self._pending_key = None
        self._fields = []
        self._fields_dirty = False
        self._key_error = None
        self._field_errors = {}

    # --- expansion ---
    def set_expanded(self, node_id: str, expand: bool) -> bool:
        if self.has_errors and node_id == self._selected_id:
            self._notify(MSG_FIX_ERRORS, Severity.ERROR)
            return False
        if expand == (node_id in self._expanded):
            return True
        if expand:
            self._expanded.add(node_id)
        else:
            self._expanded.discard(node_id)
        self.expansionChanged.emit(self.expanded_ids)
        return True

    def _prune_expansion(self) -> None:
        live = set(ts.all_ids(self._forest))
        if self._expanded - live:
            self._expanded &= live
            self.expansionChanged.emit(self.expanded_ids)

    # --- node operations ---
    def _blocked(self, message: str) -> bool:
        if self._selected_id is not None and self.has_errors:
            self._notify(message, Severity.ERROR)
            return True
        return False

    def add_node(self) -> Optional[Node]:
        """ Add an empty node under the selection, or as a new root when nothing is selected. """
        self.flush()
        if self._blocked(MSG_FIX_ERRORS_ADD):
            return None
        node = Node()
        parent_id = self._selected_id
        self._set_forest(ts.append_child(self._forest, parent_id, node))
        if parent_id is None:
            self._notify("Added a new top-level node.", Severity.SUCCESS)
        else:
            self.set_expanded(parent_id, True)
            self._notify("Added a child node to the selected node.", Severity.SUCCESS)
        self._set_selection(node.id)
        return node

    def delete_node(self) -> bool:
        if self._selected_id is None:
            return False
        if not self._confirm(MSG_CONFIRM_DELETE):
            return False
        target = self._selected_id
        self._set_selection(None)
        self._set_forest(ts.delete(self._forest, target))
        self._prune_expansion()
        self._notify("Deleted the selected node.", Severity.SUCCESS)
        return True

    def copy_node(self) -> bool:
        if self._selected_id is None:
            return False
        self.flush()
        if self._blocked(MSG_COPY_BLOCKED):
            return False
        node = self.selected_node
        self._clipboard = Clipboard(node.model_copy(deep=True), ClipOp.copy, node.id)
        self.clipboardChanged.emit(True)
        self._notify("Copied the selected node.", Severity.SUCCESS)
        return True

    def cut_node(self) -> bool:
        if self._selected_id is None:
            return False
        self.flush()
        if self._blocked(MSG_CUT_BLOCKED):
            return False
        if not self._confirm(MSG_CONFIRM_CUT):
            return False
        node = self.selected_node
        self._clipboard = Clipboard(node.model_copy(deep=True), ClipOp.cut, node.id)
        self._set_selection(None)
        self._set_forest(ts.delete(self._forest, node.id))
        self._prune_expansion()
        self.clipboardChanged.emit(True)
        self._notify("Cut the selected node.", Severity.SUCCESS)
        return True

    def can_paste(self) -> bool:
        target = self._selected_id
        clip = self._clipboard
        if target is None or clip is None:
            return False
        if clip.operation is ClipOp.copy:
            return True
        if target == clip.source_id:
            return False
        if target in ts.all_ids([clip.node]):
            return False
        return not ts.is_descendant_of(self._forest, clip.node.id, target)

    def paste_node(self) -> Optional[Node]:
        if self._selected_id is None or self._clipboard is None:
            return None
        self.flush()
        if self._blocked(MSG_FIX_ERRORS):
            return None
        if not self.can_paste():
            self._notify(MSG_PASTE_BLOCKED, Severity.WARNING)
            return None
        target = self._selected_id
        clone = ts.clone_with_new_ids(self._clipboard.node)
        self._set_forest(ts.append_child(self._forest, target, clone))
        self.set_expanded(target, True)
        if self._clipboard.operation is ClipOp.cut:
            self._clipboard = None
            self.clipboardChanged.emit(False)
        self._set_selection(clone.id)
        self._sweep_previews()
        self._notify("Pasted the clipboard node.", Severity.SUCCESS)
        return clone

    def _sibling_index(self) -> tuple[int, int]:
        if self._selected_id is None:
            return -1, 0
        siblings = ts.siblings_of(self._forest, self._selected_id)
        for i, n in enumerate(siblings):
            if n.id == self._selected_id:
                return i, len(siblings)
        return -1, 0

    def can_move_up(self) -> bool:
        return self._sibling_index()[0] > 0

    def can_move_down(self) -> bool:
        i, count = self._sibling_index()
        return 0 <= i < count - 1

    def move_up(self) -> bool:
        if not self.can_move_up():
            return False
        self._set_forest(ts.move_up(self._forest, self._selected_id))
        self._notify("Moved the selected node up.", Severity.SUCCESS)
        return True

    def move_down(self) -> bool:
        if not self.can_move_down():
            return False
        self._set_forest(ts.move_down(self._forest, self._selected_id))
        self._notify("Moved the selected node down.", Severity.SUCCESS)
        return True

    def set_node_flag(self, flag: str, on: bool) -> bool:
        if flag not in ("editable", "orderable"):
            raise KeyError(flag)
        if self._selected_id is None:
            return False
        self.flush()
        if self._blocked(MSG_FLAGS_BLOCKED):
            return False
        self._set_forest(ts.update(self._forest, self._selected_id, {flag: bool(on)}))
        return True

    # --- key editing ---
    def _check_key(self, key: str) -> Optional[str]:
        key = (key or "").strip()
        err = fm.validate_key(key)
        if err:
            return err
        parent_id = ts.find_parent_id(self._forest, self._selected_id)
        if ts.is_duplicate_key(self._forest, key, self._selected_id, parent_id):
            return fm.KEY_DUPLICATE
        return None

    def set_key_text(self, text: str) -> None:
        """ Buffer the key while it is being typed. """
        if self._selected_id is None:
            return
        self._pending_key = text

    def commit_key(self) -> bool:
        """ Validate the buffered key and write it when valid. Invalid keys stay buffered. """
        if self._selected_id is None or self._pending_key is None:
            return False
        key = self._pending_key.strip()
        err = self._check_key(key)
        changed = err != self._key_error
        self._key_error = err
        if err:
            if changed:
                self.errorsChanged.emit(self.has_errors)
            return False
        self._pending_key = None
        node = self.selected_node
        if node is not None and node.key != key:
            self._set_forest(ts.update(self._forest, self._selected_id, {"key": key}))
        if changed:
            self.errorsChanged.emit(self.has_errors)
        return True

    def set_key(self, text: str) -> bool:
        self.set_key_text(text)
        return self.commit_key()

    # --- field editing ---
    def _recompute_field_errors(self) -> None:
        before = self.has_errors
        self._field_errors = fm.validate_fields(self._fields)
        if before != self.has_errors or self._field_errors:
            self.errorsChanged.emit(self.has_errors)

    def _edit_fields(self, new_fields: List[NodeField], *, immediate: bool) -> None:
        self._fields = new_fields
        self._fields_dirty = True
        # Superseded preview handles go once nothing else refers to them
        self._sweep_previews()
        self._recompute_field_errors()
        self.fieldsChanged.emit(self.fields)
        if immediate:
            self._commit_fields()
        else:
            self._debounce.start(self._debounce_ms)

    def _replace_field(self, index: int, field: NodeField, *, immediate: bool) -> None:
        new_fields = list(self._fields)
        new_fields[index] = field
        self._edit_fields(new_fields, immediate=immediate)

    def _field(self, index: int) -> Optional[NodeField]:
        if self._selected_id is None or not (0 <= index < len(self._fields)):
            return None
        return self._fields[index]

    def add_field(self) -> bool:
        if self._selected_id is None:
            return False
        self._edit_fields(self._fields + [fm.new_field()], immediate=True)
        return True

    def delete_field(self, index: int) -> bool:
        if self._field(index) is None:
            return False
        self._edit_fields(self._fields[:index] + self._fields[index + 1:], immediate=True)
        return True

    def set_field_attr(self, index: int, name: str, value: Any) -> bool:
        """ Change key, value, regex or extra of a field. Boolean values commit at once. """
        if name not in ("key", "value", "regex", "extra"):
            raise KeyError(name)
        field = self._field(index)
        if field is None:
            return False
        if name == "value" and field.type is FieldType.number and isinstance(value, str):
            value = fm.coerce_number(value)
        if getattr(field, name) == value:
            return True
        self._replace_field(index, field.model_copy(update={name: value}),
                            immediate=isinstance(value, bool))
        return True

    def set_field_value(self, index: int, value: Any) -> bool:
        return self.set_field_attr(index, "value", value)

    def set_field_flag(self, index: int, flag: str, on: bool) -> bool:
        field = self._field(index)
        if field is None:
            return False
        try:
            updated = fm.set_flag(field, flag, on)
        except ValueError as e:
            self._notify(str(e), Severity.WARNING)
            return False
        self._replace_field(index, updated, immediate=True)
        return True

    def change_field_type(self, index: int, field_type: FieldType | str) -> bool:
        field = self._field(index)
        if field is None:
            return False
        field_type = FieldType(field_type)
        if field_type == field.type:
            return True
        if not self._confirm(MSG_CONFIRM_TYPE):
            return False
        self._replace_field(index, fm.change_type(field, field_type), immediate=True)
        return True

    def _apply_value_op(self, index: int, op, *args) -> bool:
        field = self._field(index)
        if field is None:
            return False
        try:
            updated = op(field, *args)
        except ValueError as e:
            self._notify(str(e), Severity.WARNING)
            return False
        if updated is not field:
            self._replace_field(index, updated, immediate=False)
        return True

    def add_list_item(self, index: int, item: str) -> bool:
        return self._apply_value_op(index, fm.add_list_item, item)

    def remove_list_item(self, index: int, item_index: int) -> bool:
        return self._apply_value_op(index, fm.remove_list_item, item_index)

    def add_option(self, index: int, key: str, value: str) -> bool:
        return self._apply_value_op(index, fm.add_option, key, value)

    def remove_option(self, index: int, option_index: int) -> bool:
        return self._apply_value_op(index, fm.remove_option, option_index)

    def select_option(self, index: int, option_index: int) -> bool:
        return self._apply_value_op(index, fm.select_option, option_index)

    def set_image_file(self, index: int, path: Path | str) -> Optional[str]:
        """ Point an image field at a local file through a preview handle.

        The previous handle is released once neither the tree, the clipboard nor the buffer refers to it.
        """
        field = self._field(index)
        if field is None or field.type is not FieldType.image:
            return None
        ref = self.previews.acquire(path)
        self._replace_field(index, field.model_copy(update={"value": ref}), immediate=False)
        return ref

    def _commit_fields(self) -> None:
        self._debounce.stop()
        if not self._fields_dirty:
            return
        self._fields_dirty = False
        if self._selected_id is None or ts.find(self._forest, self._selected_id) is None:
            return
        self._set_forest(ts.update(self._forest, self._selected_id, {"fields": list(self._fields)}))

    # --- keyboard navigation ---
    def navigate(self, direction: Nav | str) -> bool:
        direction = Nav(direction)
        if self._selected_id is None:
            if self._forest:
                self._set_selection(self._forest[0].id)
                return True
            return False
        self.flush()
        node = self.selected_node
        if node is None or self.has_errors:
            return False

        if direction in (Nav.UP, Nav.DOWN):
            rows = ts.flatten_visible(self._forest, self._expanded)
            idx = next((i for i, r in enumerate(rows) if r.id == node.id), -1)
            step = -1 if direction is Nav.UP else 1
            if idx < 0 or not (0 <= idx + step < len(rows)):
                return False
            self._set_selection(rows[idx + step].id)
            return True

        if direction is Nav.LEFT:
            if node.children and node.id in self._expanded:
                return self.set_expanded(node.id, False)
            parent_id = ts.find_parent_id(self._forest, node.id)
            if parent_id is None:
                return False
            self._set_selection(parent_id)
            return True

        if not node.children:
            return False
        if node.id not in self._expanded:
            return self.set_expanded(node.id, True)
        self._set_selection(node.children[0].id)
        return True

    # --- internals ---
    def _set_forest(self, forest: List[Node]) -> None:
        if forest is self._forest:
            return
        self._forest = forest
        self._sweep_previews()
        self.forestChanged.emit(self._forest)

    def _live_preview_refs(self) -> Iterator[str]:
        roots = list(self._forest)
        if self._clipboard is not None:
            roots.append(self._clipboard.node)
        for node, _, _ in ts.iter_nodes(roots):
            for f in node.fields:
                if is_preview_ref(f.value):
                    yield f.value
        for f in self._fields:
            if is_preview_ref(f.value):
                yield f.value

    def _sweep_previews(self) -> None:
        if len(self.previews):
            released = self.previews.release_unused(self._live_preview_refs())
            if released:
                logger.debug("Released %d unused preview handle(s)", released)
