""" Pure functions over a forest (list of root Nodes).

Nothing here mutates its input. Functions that change the forest return a new list in which only
the nodes on the path from a changed node up to its root are copied; every other subtree is shared
with the input. When nothing changes the input list itself is returned.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, List, Optional, Set, Tuple

from cta.template.models import Node, new_id

Forest = List[Node]


@dataclass(frozen=True)
class VisibleEntry:
    id: str
    parent_id: Optional[str]
    level: int


# ---- Traversal ---------------------------------------------------------------
def iter_nodes(forest: Iterable[Node]) -> Iterator[Tuple[Node, Optional[str], int]]:
    """ Depth-first pre-order walk yielding (node, parent_id, level). """
    stack: List[Tuple[Node, Optional[str], int]] = [(n, None, 0) for n in reversed(list(forest))]
    while stack:
        node, parent_id, level = stack.pop()
        yield node, parent_id, level
        for child in reversed(node.children):
            stack.append((child, node.id, level + 1))


def all_ids(forest: Iterable[Node]) -> List[str]:
    return [n.id for n, _, _ in iter_nodes(forest)]


def find(forest: Iterable[Node], node_id: str) -> Optional[Node]:
    for node, _, _ in iter_nodes(forest):
        if node.id == node_id:
            return node
    return None


def find_parent_id(forest: Iterable[Node], node_id: str) -> Optional[str]:
    """ Parent id of the node, None for a root or an unknown id. """
    for node, parent_id, _ in iter_nodes(forest):
        if node.id == node_id:
            return parent_id
    return None


def siblings_of(forest: Forest, node_id: str) -> List[Node]:
    """ The list the node lives in (the forest itself for roots). Empty if the id is unknown. """
    parent_id = find_parent_id(forest, node_id)
    if parent_id is None:
        return forest if any(n.id == node_id for n in forest) else []
    parent = find(forest, parent_id)
    return parent.children if parent else []


def is_descendant_of(forest: Iterable[Node], ancestor_id: str, node_id: str) -> bool:
    """ True when node_id sits strictly below ancestor_id. """
    ancestor = find(forest, ancestor_id)
    if ancestor is None:
        return False
    return any(n.id == node_id for n, _, _ in iter_nodes(ancestor.children))


def is_duplicate_key(forest: Forest, key: str, self_id: Optional[str], parent_id: Optional[str]) -> bool:
    if parent_id is None:
        siblings: List[Node] = forest
    else:
        parent = find(forest, parent_id)
        siblings = parent.children if parent else []
    return any(n.key == key and n.id != self_id for n in siblings)


def duplicate_key_ids(forest: Forest) -> Set[str]:
    """ Ids of every node whose non-empty key is shared with a sibling. """
    dupes: Set[str] = set()

    def scan(siblings: List[Node]) -> None:
        by_key: Dict[str, List[str]] = {}
        for n in siblings:
            if n.key:
                by_key.setdefault(n.key, []).append(n.id)
            if n.children:
                scan(n.children)
        for ids in by_key.values():
            if len(ids) > 1:
                dupes.update(ids)

    scan(forest)
    return dupes


def flatten_visible(forest: Iterable[Node], expanded_ids: Set[str] | frozenset) -> List[VisibleEntry]:
    """ Rows in on-screen order. Children are listed only under expanded nodes. """
    out: List[VisibleEntry] = []

    def walk(nodes: Iterable[Node], parent_id: Optional[str], level: int) -> None:
        for n in nodes:
            out.append(VisibleEntry(n.id, parent_id, level))
            if n.children and n.id in expanded_ids:
                walk(n.children, n.id, level + 1)

    walk(forest, None, 0)
    return out


# ---- Copy-on-write edits -----------------------------------------------------
def _map_path(forest: Forest, node_id: str, fn) -> Forest:
    """ Rebuild the path to node_id, replacing its owning list by fn(list, index). """
    for i, n in enumerate(forest):
        if n.id == node_id:
            return fn(forest, i)
    for i, n in enumerate(forest):
        if not n.children:
            continue
        children = _map_path(n.children, node_id, fn)
        if children is not n.children:
            out = list(forest)
            out[i] = n.model_copy(update={"children": children})
            return out
    return forest


def update(forest: Forest, node_id: str, changes: Dict[str, Any]) -> Forest:
    """ Shallow-merge `changes` into the node. Unknown ids leave the forest unchanged. """
    def _apply(nodes: Forest, i: int) -> Forest:
        out = list(nodes)
        out[i] = nodes[i].model_copy(update=dict(changes))
        return out

    return _map_path(forest, node_id, _apply)


def delete(forest: Forest, node_id: str) -> Forest:
    """ Remove the node together with its subtree. """
    def _drop(nodes: Forest, i: int) -> Forest:
        return nodes[:i] + nodes[i + 1:]

    return _map_path(forest, node_id, _drop)


def append_child(forest: Forest, parent_id: Optional[str], node: Node) -> Forest:
    """ Append a node as the last child of parent_id, or as the last root when parent_id is None. """
    if parent_id is None:
        return list(forest) + [node]
    parent = find(forest, parent_id)
    if parent is None:
        return forest
    return update(forest, parent_id, {"children": list(parent.children) + [node]})


def _swap(forest: Forest, node_id: str, offset: int) -> Forest:
    def _do(nodes: Forest, i: int) -> Forest:
        j = i + offset
        if not (0 <= j < len(nodes)):
            return nodes
        out = list(nodes)
        out[i], out[j] = out[j], out[i]
        return out

    return _map_path(forest, node_id, _do)


def move_up(forest: Forest, node_id: str) -> Forest:
    return _swap(forest, node_id, -1)


def move_down(forest: Forest, node_id: str) -> Forest:
    return _swap(forest, node_id, 1)


def clone_with_new_ids(node: Node) -> Node:
    """ Deep copy with a fresh id on the node and every descendant. """
    return node.model_copy(update={
        "id": new_id(),
        "fields": list(node.fields),
        "children": [clone_with_new_ids(c) for c in node.children],
    })
