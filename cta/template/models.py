from __future__ import annotations

import uuid
from enum import Enum
from typing import Any, List

from pydantic import BaseModel, ConfigDict, Field


def new_id() -> str:
    return str(uuid.uuid4())


# ---- Enums -------------------------------------------------------------------
class FieldType(str, Enum):
    text = "text"
    textList = "textList"
    number = "number"
    checkbox = "checkbox"
    color = "color"
    image = "image"
    select = "select"
    tag = "tag"


# ---- Models ------------------------------------------------------------------
class SelectOption(BaseModel):
    """ One entry of a select field. Stored inside NodeField.value as a plain dict. """
    model_config = ConfigDict(extra="ignore")

    key: str
    value: str = ""
    selected: bool = False


class NodeField(BaseModel):
    """ A typed, named configuration value owned by a Node.

    The value is kept as plain JSON data; its shape depends on ``type`` and is checked by
    ``cta.template.fields.value_shape_error``.
    """
    model_config = ConfigDict(frozen=True, extra="ignore")

    key: str = ""
    type: FieldType = FieldType.text
    value: Any = ""
    editable: bool = True
    required: bool = True
    visible: bool = True
    regex: str = ""
    extra: str = ""


class Node(BaseModel):
    """ One element of the template tree. Never mutated in place; use model_copy(update=...). """
    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str = Field(default_factory=new_id)
    key: str = ""
    editable: bool = True
    orderable: bool = True
    fields: List[NodeField] = Field(default_factory=list)
    children: List["Node"] = Field(default_factory=list)

    def __repr__(self) -> str:
        return f"<Node id={self.id!r} key={self.key!r} children={len(self.children)}>"


Node.model_rebuild()
