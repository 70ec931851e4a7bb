""" Small constructors for hand-written forests in tests. """
from cta.template.models import FieldType, Node, NodeField


def node(node_id: str, key: str, *children: Node, fields=(), **kw) -> Node:
    return Node(id=node_id, key=key, fields=list(fields), children=list(children), **kw)


def field(key: str, type: FieldType | str = FieldType.text, value="", **kw) -> NodeField:
    return NodeField(key=key, type=FieldType(type), value=value, **kw)
