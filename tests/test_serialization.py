import json
import logging

import pytest

from cta.template import tree_store as ts
from cta.template.models import FieldType
from cta.template.serialization import (
    TemplateDataError, dump_forest, export_filename, forest_to_data, load_forest, parse_forest,
    read_forest_file, strip_metadata, to_backend, write_forest_file
)

from builders import field, node


@pytest.fixture()
def rich_forest():
    return [
        node("r", "page", node("c", "header", fields=[
            field("title", value="Welcome"),
            field("count", FieldType.number, value=3),
            field("show", FieldType.checkbox, value=False, visible=False, editable=False, required=False),
            field("palette", FieldType.color, value=["#000000", "#ffffff"]),
            field("size", FieldType.select,
                  value=[{"key": "s", "value": "Small", "selected": True},
                         {"key": "l", "value": "Large", "selected": False}]),
            field("logo", FieldType.image, value="https://cdn/logo.png", regex="^https://", extra="png only"),
        ])),
        node("f", "footer", editable=False, orderable=False),
    ]


def test_round_trip(rich_forest):
    assert parse_forest(dump_forest(rich_forest)) == rich_forest


def test_dump_is_pretty_and_keeps_order(rich_forest):
    text = dump_forest(rich_forest)
    assert text.startswith("[\n  {")
    data = json.loads(text)
    assert [n["key"] for n in data] == ["page", "footer"]
    assert [f["key"] for f in data[0]["children"][0]["fields"]] == [
        "title", "count", "show", "palette", "size", "logo"
    ]
    assert data[0]["children"][0]["fields"][0]["type"] == "text"


def test_empty_forest():
    assert dump_forest([]) == "[]"
    assert to_backend([]) is None
    assert load_forest(None) == []
    assert load_forest("") == []


def test_strip_metadata_is_recursive():
    data = {"__typename": "Node", "children": [{"__typename": "Node", "fields": [{"__typename": "F", "key": "a"}]}]}
    assert strip_metadata(data) == {"children": [{"fields": [{"key": "a"}]}]}


def test_parse_ignores_transport_keys():
    text = json.dumps([{"__typename": "Node", "id": "x", "key": "k",
                        "fields": [{"__typename": "Field", "key": "f", "type": "text", "value": "v"}]}])
    forest = parse_forest(text)
    assert forest[0].key == "k"
    assert "__typename" not in dump_forest(forest)


@pytest.mark.parametrize("text", ["{not json", '{"key": "obj"}', "42", '[{"key": 5, "children": "x"}]'])
def test_parse_forest_rejects(text):
    with pytest.raises(TemplateDataError):
        parse_forest(text)


def test_load_forest_falls_back_to_empty(caplog):
    with caplog.at_level(logging.ERROR, logger="cta.template.serialization"):
        assert load_forest('{"key": "not an array"}') == []
    assert "Could not load template data" in caplog.text


def test_load_forest_drops_only_bad_items(caplog):
    text = json.dumps([
        {"id": "r", "key": "root",
         "fields": [{"key": "a", "type": "richtext"}, {"key": "b", "type": "text", "value": "kept"}],
         "children": [{"id": "c", "key": "child"}, "not a node"]},
        {"id": 7, "key": 42},
    ])
    with caplog.at_level(logging.WARNING, logger="cta.template.serialization"):
        forest = load_forest(text)
    assert [(n.id, n.key) for n in forest] == [("r", "root"), ("7", "42")]
    assert [f.key for f in forest[0].fields] == ["b"]
    assert [ch.id for ch in forest[0].children] == ["c"]
    assert "Dropping field 0 of node 0" in caplog.text
    assert "Dropping node 0/1" in caplog.text

    # Import from a file stays strict
    with pytest.raises(TemplateDataError):
        parse_forest(text)


def test_duplicate_ids_are_reminted(caplog):
    text = json.dumps([
        {"id": "same", "key": "a", "children": [{"id": "same", "key": "b"}]},
        {"id": "same", "key": "c"},
    ])
    with caplog.at_level(logging.WARNING, logger="cta.template.serialization"):
        forest = parse_forest(text)
    ids = ts.all_ids(forest)
    assert ids[0] == "same"
    assert len(set(ids)) == 3
    assert "Re-minted 2" in caplog.text


def test_missing_ids_are_generated():
    forest = parse_forest('[{"key": "a"}, {"key": "b"}]')
    assert all(n.id for n in forest)
    assert forest[0].id != forest[1].id


@pytest.mark.parametrize("name, expected", [
    ("Landing Page", "Landing Page.json"),
    ("a/b\\c:d", "a_b_c_d.json"),
    ("", "template.json"),
    (None, "template.json"),
    ("  ..  ", "template.json"),
])
def test_export_filename(name, expected):
    assert export_filename(name) == expected


def test_file_round_trip(tmp_path, rich_forest):
    path = write_forest_file(tmp_path / "t.json", rich_forest)
    assert read_forest_file(path) == rich_forest
    assert forest_to_data(rich_forest) == json.loads(path.read_text(encoding="utf-8"))


@pytest.mark.parametrize("payload, message", [
    ({"key": "x"}, "Invalid template file"),
    ([{"id": "a", "key": "k", "fields": [{"key": "f", "type": "nope"}]}], "fields/0/type"),
    ([{"id": "a", "key": "k", "fields": [{"key": "f", "type": "select", "value": "x"}]}], "fields/0/value"),
    ([{"key": "no id"}], r"at 0: 'id' is a required property"),
])
def test_read_forest_file_validates_schema(tmp_path, payload, message):
    path = tmp_path / "bad.json"
    path.write_text(json.dumps(payload), encoding="utf-8")
    with pytest.raises(TemplateDataError, match=message):
        read_forest_file(path)


def test_read_forest_file_reports_bad_json(tmp_path):
    path = tmp_path / "bad.json"
    path.write_text("[", encoding="utf-8")
    with pytest.raises(TemplateDataError, match="Malformed"):
        read_forest_file(path)
    with pytest.raises(TemplateDataError, match="Could not read"):
        read_forest_file(tmp_path / "missing.json")
