from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any, List, Optional

from jsonschema.validators import Draft202012Validator
from pydantic import TypeAdapter, ValidationError

from cta.template.models import Node, NodeField, new_id
from cta.template.schema import FOREST_SCHEMA

logger = logging.getLogger(__name__)

TRANSPORT_KEYS = frozenset({"__typename"})

_forest_adapter = TypeAdapter(List[Node])
_UNSAFE_FILENAME = re.compile(r'[\\/:*?"<>|\x00-\x1f]')


class TemplateDataError(ValueError):
    """ Template data that cannot be turned into a forest. """


def strip_metadata(obj: Any) -> Any:
    """ Recursively drop transport-only keys from every dict in the structure. """
    if isinstance(obj, dict):
        return {k: strip_metadata(v) for k, v in obj.items() if k not in TRANSPORT_KEYS}
    if isinstance(obj, list):
        return [strip_metadata(v) for v in obj]
    return obj


# ---- Export ------------------------------------------------------------------
def forest_to_data(forest: List[Node]) -> list:
    return strip_metadata(_forest_adapter.dump_python(forest, mode="json"))


def dump_forest(forest: List[Node]) -> str:
    return json.dumps(forest_to_data(forest), indent=2, ensure_ascii=False)


def to_backend(forest: List[Node]) -> Optional[str]:
    """ The string stored on a template record; an empty tree is stored as None. """
    return dump_forest(forest) if forest else None


# ---- Import ------------------------------------------------------------------
def _repair_ids(forest: List[Node]) -> List[Node]:
    """ Re-mint node ids that occur more than once, keeping the first occurrence. """
    seen: set[str] = set()
    repaired = 0

    def fix(nodes: List[Node]) -> List[Node]:
        nonlocal repaired
        out = []
        for n in nodes:
            changes = {}
            if n.id in seen:
                changes["id"] = new_id()
                repaired += 1
            seen.add(changes.get("id", n.id))
            children = fix(n.children)
            if any(a is not b for a, b in zip(children, n.children)):
                changes["children"] = children
            out.append(n.model_copy(update=changes) if changes else n)
        return out

    result = fix(forest)
    if repaired:
        logger.warning("Re-minted %d duplicated node id(s) in imported template", repaired)
    return result


def forest_from_data(data: Any) -> List[Node]:
    if not isinstance(data, list):
        raise TemplateDataError(f"Template data must be a JSON array, got {type(data).__name__}")
    try:
        forest = _forest_adapter.validate_python(strip_metadata(data))
    except ValidationError as e:
        raise TemplateDataError(f"Invalid template node: {e}") from e
    return _repair_ids(forest)


def _salvage_list(value: Any, what: str) -> list:
    if value is None:
        return []
    if not isinstance(value, list):
        logger.warning("Ignoring %s: expected a list, got %s", what, type(value).__name__)
        return []
    return value


def _salvage_node(item: Any, where: str) -> Optional[Node]:
    """ Best-effort node from stored data. Bad fields are dropped; the node keeps its children. """
    if not isinstance(item, dict):
        logger.warning("Dropping %s: not an object", where)
        return None
    base = {k: v for k, v in item.items() if k not in ("fields", "children")}
    for name in ("id", "key"):
        value = base.get(name)
        if isinstance(value, str):
            continue
        if value is None:
            base.pop(name, None)
            continue
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            base[name] = str(value)
        else:
            # A fresh id is minted; an empty key shows up as a key error in the editor
            logger.warning("Discarding unusable %s of %s: %r", name, where, value)
            del base[name]
    try:
        node = Node.model_validate(base)
    except ValidationError as e:
        logger.warning("Dropping %s and its subtree: %s", where, e)
        return None

    fields = []
    for i, raw in enumerate(_salvage_list(item.get("fields"), f"fields of {where}")):
        try:
            fields.append(NodeField.model_validate(raw))
        except ValidationError as e:
            logger.warning("Dropping field %d of %s: %s", i, where, e)
    children = _salvage_forest(_salvage_list(item.get("children"), f"children of {where}"), where)
    return node.model_copy(update={"fields": fields, "children": children})


def _salvage_forest(items: list, parent: str = "") -> List[Node]:
    out = []
    for i, item in enumerate(items):
        n = _salvage_node(item, f"{parent}/{i}" if parent else f"node {i}")
        if n is not None:
            out.append(n)
    return out


def parse_forest(text: str) -> List[Node]:
    """ Parse template JSON into a forest.

    Raises
    ------
    TemplateDataError
        if the text is not JSON, not an array, or holds items that are not nodes.
    """
    try:
        data = json.loads(text)
    except (TypeError, json.JSONDecodeError) as e:
        raise TemplateDataError(f"Malformed template JSON: {e}") from e
    return forest_from_data(data)


def load_forest(text: Optional[str]) -> List[Node]:
    """ Fresh-load path for stored template data.

    Text that is not a JSON array becomes an empty forest. Inside the array, items that do not
    validate are dropped one by one (with a warning) so a single bad field never costs the tree.
    """
    if text is None or not str(text).strip():
        return []
    try:
        data = strip_metadata(json.loads(text))
    except (TypeError, json.JSONDecodeError) as e:
        logger.error("Could not load template data, starting with an empty tree: %s", e)
        return []
    if not isinstance(data, list):
        logger.error("Could not load template data, starting with an empty tree: got %s", type(data).__name__)
        return []
    return _repair_ids(_salvage_forest(data))


# ---- File interchange --------------------------------------------------------
def export_filename(name: str | None) -> str:
    stem = _UNSAFE_FILENAME.sub("_", (name or "").strip()).strip(" .")
    return f"{stem}.json" if stem else "template.json"


def validate_forest_document(data: Any) -> None:
    validator = Draft202012Validator(FOREST_SCHEMA)
    errors = sorted(validator.iter_errors(data), key=lambda e: [str(p) for p in e.path])
    if errors:
        lines = []
        for e in errors:
            loc = "/".join(map(str, e.path)) or "<root>"
            lines.append(f"- at {loc}: {e.message}")
        raise TemplateDataError("Invalid template file:\n" + "\n".join(lines))


def write_forest_file(path: Path | str, forest: List[Node]) -> Path:
    path = Path(path)
    path.write_text(dump_forest(forest), encoding="utf-8")
    return path


def read_forest_file(path: Path | str) -> List[Node]:
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise TemplateDataError(f"Could not read {path.name}: {e}") from e
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise TemplateDataError(f"Malformed template JSON: {e}") from e
    data = strip_metadata(data)
    validate_forest_document(data)
    return forest_from_data(data)
