from __future__ import annotations

import difflib
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from cta.template.models import Node
from cta.template.serialization import dump_forest


class DiffKind(str, Enum):
    equal = "equal"
    insert = "insert"
    delete = "delete"


@dataclass(frozen=True)
class DiffLine:
    kind: DiffKind
    content: str
    old_lineno: Optional[int] = None
    new_lineno: Optional[int] = None

    @property
    def prefix(self) -> str:
        return {DiffKind.equal: " ", DiffKind.insert: "+", DiffKind.delete: "-"}[self.kind]


@dataclass
class ForestDiff:
    lines: List[DiffLine] = field(default_factory=list)
    old_count: int = 0
    new_count: int = 0

    @property
    def has_changes(self) -> bool:
        return any(line.kind is not DiffKind.equal for line in self.lines)

    @property
    def header(self) -> str:
        return f"@@ -1,{self.old_count} +1,{self.new_count} @@"

    @property
    def inserted(self) -> int:
        return sum(1 for line in self.lines if line.kind is DiffKind.insert)

    @property
    def deleted(self) -> int:
        return sum(1 for line in self.lines if line.kind is DiffKind.delete)


def diff_text(old_text: str, new_text: str) -> ForestDiff:
    """ Line diff of two texts. Each side is numbered on its own, a replaced run is reported as
    its deleted lines followed by its inserted lines.
    """
    old = old_text.splitlines()
    new = new_text.splitlines()
    out: List[DiffLine] = []
    matcher = difflib.SequenceMatcher(a=old, b=new, autojunk=False)
    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        if tag == "equal":
            for k in range(i2 - i1):
                out.append(DiffLine(DiffKind.equal, old[i1 + k], i1 + k + 1, j1 + k + 1))
            continue
        if tag in ("delete", "replace"):
            for i in range(i1, i2):
                out.append(DiffLine(DiffKind.delete, old[i], old_lineno=i + 1))
        if tag in ("insert", "replace"):
            for j in range(j1, j2):
                out.append(DiffLine(DiffKind.insert, new[j], new_lineno=j + 1))
    return ForestDiff(lines=out, old_count=len(old), new_count=len(new))


def diff_forests(old: List[Node], new: List[Node]) -> ForestDiff:
    return diff_text(dump_forest(old), dump_forest(new))
