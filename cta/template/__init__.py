from .models import FieldType, Node, NodeField, SelectOption
from .controller import ClipOp, Clipboard, Nav, TreeEditorController
from .previews import PreviewHandles
from .serialization import TemplateDataError, dump_forest, load_forest, parse_forest, to_backend
from .diff import ForestDiff, diff_forests
