from .editor_dialog import TemplateEditorDialog
from .tree_panel import TreePanel
from .node_panel import NodePanel
from .field_widgets import FieldEditor
from .diff_dialog import DiffDialog
