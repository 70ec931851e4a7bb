from __future__ import annotations

import re
from typing import Any, Dict, List, Optional, Sequence

from pydantic import ValidationError

from cta.template.models import FieldType, NodeField, SelectOption

KEY_RE = re.compile(r"^[A-Za-z][A-Za-z0-9_]*$")

# ---- Messages ----------------------------------------------------------------
KEY_REQUIRED = "key required"
KEY_FORMAT = "must start with a letter, then letters/digits/underscore"
KEY_DUPLICATE = "key already in use"
ITEM_REQUIRED = "item required"
ITEM_DUPLICATE = "item already in list"
OPTION_KEY_REQUIRED = "option key required"
OPTION_KEY_DUPLICATE = "option key already in use"
OPTION_VALUE_REQUIRED = "option value required"
FLAG_LOCKED = "hidden fields cannot be editable or required"

LIST_TYPES = (FieldType.textList, FieldType.color, FieldType.tag)
FLAGS = ("editable", "required", "visible")


def default_value_for(field_type: FieldType | str) -> Any:
    """ Zero-value of each field type. Returns a fresh object for the list types. """
    field_type = FieldType(field_type)
    if field_type is FieldType.text:
        return ""
    if field_type in (FieldType.textList, FieldType.tag, FieldType.color, FieldType.select):
        return []
    if field_type is FieldType.number:
        return 0
    if field_type is FieldType.checkbox:
        return True
    if field_type is FieldType.image:
        return "https://"
    raise ValueError(f"Unknown field type: {field_type!r}")


def new_field() -> NodeField:
    return NodeField(key="", type=FieldType.text, value=default_value_for(FieldType.text))


# ---- Key validation ----------------------------------------------------------
def validate_key(key: str | None) -> Optional[str]:
    """ Validates a node or field key.

    Parameters
    ----------
    key : str
        The key as typed, surrounding whitespace is ignored.

    Returns
    -------
    str or None
        The error message, None if the key is acceptable.
    """
    key = (key or "").strip()
    if not key:
        return KEY_REQUIRED
    if not KEY_RE.match(key):
        return KEY_FORMAT
    return None


def validate_sibling_field_keys(fields: Sequence[NodeField]) -> Dict[int, str]:
    """ Validate the keys of all fields of one node.

    Format errors are reported first. Only keys that passed the format check take part in the
    duplicate check, and every member of a duplicated group is marked.
    """
    errors: Dict[int, str] = {}
    seen: Dict[str, List[int]] = {}
    for i, f in enumerate(fields):
        err = validate_key(f.key)
        if err:
            errors[i] = err
            continue
        seen.setdefault(f.key.strip(), []).append(i)

    for indices in seen.values():
        if len(indices) > 1:
            for i in indices:
                errors[i] = KEY_DUPLICATE
    return errors


# ---- Value validation --------------------------------------------------------
def _is_str_list(value: Any) -> bool:
    return isinstance(value, list) and all(isinstance(v, str) for v in value)


def value_shape_error(field_type: FieldType | str, value: Any) -> Optional[str]:
    """ Check that a value has the shape its type requires. Returns the error, or None. """
    field_type = FieldType(field_type)
    if field_type in (FieldType.text, FieldType.image):
        return None if isinstance(value, str) else "value must be text"
    if field_type in LIST_TYPES:
        return None if _is_str_list(value) else "value must be a list of text"
    if field_type is FieldType.number:
        ok = isinstance(value, (int, float)) and not isinstance(value, bool)
        return None if ok else "value must be a number"
    if field_type is FieldType.checkbox:
        return None if isinstance(value, bool) else "value must be true or false"
    if field_type is FieldType.select:
        if not isinstance(value, list):
            return "value must be a list of options"
        try:
            options = [SelectOption.model_validate(o) for o in value]
        except ValidationError:
            return "malformed option"
        keys = [o.key for o in options]
        if len(set(keys)) != len(keys):
            return OPTION_KEY_DUPLICATE
        if options and sum(1 for o in options if o.selected) != 1:
            return "exactly one option must be selected"
        return None
    raise ValueError(f"Unknown field type: {field_type!r}")


def validate_field_values(fields: Sequence[NodeField]) -> Dict[int, str]:
    errors: Dict[int, str] = {}
    for i, f in enumerate(fields):
        err = value_shape_error(f.type, f.value)
        if err:
            errors[i] = err
    return errors


def validate_fields(fields: Sequence[NodeField]) -> Dict[int, str]:
    """ Full field-error mapping of a node. Key errors win over value errors. """
    errors = validate_field_values(fields)
    errors.update(validate_sibling_field_keys(fields))
    return errors


# ---- Field edits -------------------------------------------------------------
def change_type(field: NodeField, field_type: FieldType | str) -> NodeField:
    """ Switch type. The value resets to the new type's default and regex/extra are cleared. """
    field_type = FieldType(field_type)
    if field_type == field.type:
        return field
    return field.model_copy(update={
        "type": field_type,
        "value": default_value_for(field_type),
        "regex": "",
        "extra": "",
    })


def set_flag(field: NodeField, flag: str, on: bool) -> NodeField:
    """ Toggle editable/required/visible.

    Hiding a field also clears editable and required. Turning editable or required on for a
    hidden field raises ValueError.
    """
    if flag not in FLAGS:
        raise KeyError(flag)
    on = bool(on)
    if flag == "visible":
        if on:
            return field.model_copy(update={"visible": True})
        return field.model_copy(update={"visible": False, "editable": False, "required": False})
    if on and not field.visible:
        raise ValueError(FLAG_LOCKED)
    return field.model_copy(update={flag: on})


def coerce_number(text: Any) -> int | float:
    """ Parse user input as a number, anything unparseable becomes 0. """
    if isinstance(text, bool):
        return 0
    if isinstance(text, (int, float)):
        return text
    try:
        v = float(str(text).strip())
    except ValueError:
        return 0
    if v != v or v in (float("inf"), float("-inf")):
        return 0
    return int(v) if v.is_integer() else v


# ---- List-valued fields (textList / color / tag) -----------------------------
def list_item_error(items: Sequence[str], item: str) -> Optional[str]:
    """ Only the incoming item is checked against the current entries. """
    item = (item or "").strip()
    if not item:
        return ITEM_REQUIRED
    if item in items:
        return ITEM_DUPLICATE
    return None


def add_list_item(field: NodeField, item: str) -> NodeField:
    items = list(field.value) if isinstance(field.value, list) else []
    err = list_item_error(items, item)
    if err:
        raise ValueError(err)
    return field.model_copy(update={"value": items + [item.strip()]})


def remove_list_item(field: NodeField, index: int) -> NodeField:
    items = list(field.value) if isinstance(field.value, list) else []
    if not (0 <= index < len(items)):
        return field
    del items[index]
    return field.model_copy(update={"value": items})


# ---- Select options ----------------------------------------------------------
def _options(field: NodeField) -> List[dict]:
    return [dict(o) for o in field.value] if isinstance(field.value, list) else []


def option_key_error(options: Sequence[dict], key: str) -> Optional[str]:
    key = (key or "").strip()
    if not key:
        return OPTION_KEY_REQUIRED
    if any(o.get("key") == key for o in options):
        return OPTION_KEY_DUPLICATE
    return None


def add_option(field: NodeField, key: str, value: str) -> NodeField:
    """ Append an option. The first option of a field is selected. """
    options = _options(field)
    err = option_key_error(options, key)
    if err:
        raise ValueError(err)
    value = (value or "").strip()
    if not value:
        raise ValueError(OPTION_VALUE_REQUIRED)
    options.append({"key": key.strip(), "value": value, "selected": not options})
    return field.model_copy(update={"value": options})


def remove_option(field: NodeField, index: int) -> NodeField:
    """ Remove an option. If it was the selected one and nothing else is selected, the first remaining
    option takes over.
    """
    options = _options(field)
    if not (0 <= index < len(options)):
        return field
    removed = options.pop(index)
    if removed.get("selected") and options and not any(o.get("selected") for o in options):
        options[0]["selected"] = True
    return field.model_copy(update={"value": options})


def select_option(field: NodeField, index: int) -> NodeField:
    options = _options(field)
    if not (0 <= index < len(options)):
        return field
    for i, o in enumerate(options):
        o["selected"] = i == index
    return field.model_copy(update={"value": options})
