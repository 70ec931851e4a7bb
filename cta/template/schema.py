# schema.py
FIELD_TYPES = ["text", "textList", "number", "checkbox", "color", "image", "select", "tag"]

FOREST_SCHEMA = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "$id": "https://example.com/content-template.schema.json",
    "title": "Content Template File",
    "type": "array",
    "items": {"$ref": "#/$defs/node"},

    "$defs": {
        "node": {
            "type": "object",
            "description": "One template node with its fields and child nodes",
            "properties": {
                "id": {"type": "string", "minLength": 1},
                "key": {"type": "string"},
                "editable": {"type": "boolean"},
                "orderable": {"type": "boolean"},
                "fields": {
                    "type": "array",
                    "items": {"$ref": "#/$defs/field"}
                },
                "children": {
                    "type": "array",
                    "items": {"$ref": "#/$defs/node"}
                }
            },
            "required": ["id", "key"]
        },
        "field": {
            "type": "object",
            "properties": {
                "key": {"type": "string"},
                "type": {"type": "string", "enum": FIELD_TYPES},
                "value": {},
                "editable": {"type": "boolean"},
                "required": {"type": "boolean"},
                "visible": {"type": "boolean"},
                "regex": {"type": "string"},
                "extra": {"type": "string"}
            },
            "required": ["key", "type"],
            "if": {"properties": {"type": {"const": "select"}}},
            "then": {
                "properties": {
                    "value": {"type": "array", "items": {"$ref": "#/$defs/option"}}
                }
            }
        },
        "option": {
            "type": "object",
            "properties": {
                "key": {"type": "string", "minLength": 1},
                "value": {"type": "string"},
                "selected": {"type": "boolean"}
            },
            "required": ["key", "value", "selected"]
        }
    }
}
