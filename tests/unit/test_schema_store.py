from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest

from metacanvas.exceptions import SchemaStoreError
from metacanvas.schema_store import SchemaStore, schema_display_name
from metacanvas.typing.enums import VocabularyType


def _write(root: Path, name: str, payload: Any) -> None:
    (root / name).write_text(json.dumps(payload, ensure_ascii=False), encoding="utf-8")


@pytest.mark.parametrize(
    ("name", "expected"),
    [("event.json", "Event"), ("event_series.json", "Event Series"), ("educational_offer.json", "Educational Offer")],
)
def test_schema_display_name(name: str, expected: str) -> None:
    assert schema_display_name(name) == expected


def test_bundled_core_fields_skip_non_fillable(bundled: SchemaStore) -> None:
    ids = [field.id for field in bundled.get_fields("core.json")]

    assert ids == [
        "cclom:title",
        "cclom:general_description",
        "cclom:general_keyword",
        "ccm:oeh_flex_lrt",
        "ccm:educationalcontext",
        "ccm:wwwurl",
        "ccm:commonlicense_key",
    ]


def test_bundled_core_field_details(bundled: SchemaStore) -> None:
    fields = {field.id: field for field in bundled.get_fields("core.json")}

    title = fields["cclom:title"]
    assert title.label == "Titel"
    assert title.required is True
    assert title.schema_name == "Core"
    assert title.group_label == "Grunddaten"
    assert title.group_order == 0
    assert title.examples == ["Einführung in die Bruchrechnung"]

    contexts = fields["ccm:educationalcontext"]
    assert contexts.multiple is True
    assert contexts.vocabulary is not None
    assert contexts.vocabulary.type is VocabularyType.SKOS
    assert contexts.group_order == 1

    assert fields["ccm:wwwurl"].validation is not None
    assert fields["ccm:wwwurl"].validation.pattern == "^https?://"


def test_bundled_event_shape_and_schema_name(bundled: SchemaStore) -> None:
    fields = {field.id: field for field in bundled.get_fields("event.json")}

    price = fields["schema:price"]
    assert price.schema_name == "Event"
    assert [(item.id, item.datatype, item.label) for item in price.shape] == [
        ("amount", "number", "Betrag"),
        ("currency", "string", "Währung"),
    ]
    assert fields["schema:location"].examples[0].startswith('{"@type": "Place"')


def test_content_type_concepts_come_from_core_vocabulary(bundled: SchemaStore) -> None:
    concepts = bundled.get_content_type_concepts()

    assert [(concept.label, concept.schema_file) for concept in concepts] == [
        ("Veranstaltung", "event.json"),
        ("Kurs", "course.json"),
    ]


def test_output_template_is_a_copy(bundled: SchemaStore) -> None:
    template = bundled.get_output_template("event.json")
    template["schema:location"].append("x")

    assert bundled.get_output_template("event.json")["schema:location"] == []
    assert template["@type"] == "Event"


def test_list_schemas(bundled: SchemaStore) -> None:
    assert bundled.list_schemas() == ["core.json", "course.json", "event.json"]
    assert bundled.list_special_schemas() == ["course.json", "event.json"]


def test_fallback_content_types_from_special_files(tmp_path: Path) -> None:
    _write(tmp_path, "core.json", {"fields": [{"id": "cclom:title"}]})
    _write(tmp_path, "event_series.json", {"fields": []})

    concepts = SchemaStore(root=tmp_path).get_content_type_concepts()

    assert [(concept.label, concept.schema_file) for concept in concepts] == [("Event Series", "event_series.json")]


def test_fields_resolve_labels_groups_and_shapes(tmp_path: Path) -> None:
    _write(
        tmp_path,
        "workshop_offer.json",
        {
            "groups": [{"id": "main", "label": {"de": "Hauptdaten", "en": "Main"}}],
            "fields": [
                {"id": "a", "group": "main", "label": "Feld A", "type": "number"},
                {"id": "b", "group": "unknown"},
                {"id": "c", "group_label": "Eigene Gruppe"},
                {
                    "id": "d",
                    "system": {"items": {"shape": [{"id": "x", "type": "integer"}, {"label": "ohne id"}]}},
                },
                {"label": "no id"},
            ],
        },
    )

    fields = SchemaStore(root=tmp_path).get_fields("workshop_offer.json")

    assert [field.id for field in fields] == ["a", "b", "c", "d"]
    assert fields[0].label == "Feld A"
    assert fields[0].datatype == "number"
    assert fields[0].group_label == "Hauptdaten"
    assert fields[0].schema_name == "Workshop Offer"
    assert (fields[1].group_label, fields[1].group_order) == ("Sonstige", 999)
    assert (fields[2].group, fields[2].group_label) == ("other", "Eigene Gruppe")
    assert [(item.id, item.datatype) for item in fields[3].shape] == [("x", "integer")]


def test_missing_schema_raises(tmp_path: Path) -> None:
    with pytest.raises(SchemaStoreError, match="not found"):
        SchemaStore(root=tmp_path).load("missing.json")


def test_undecodable_schema_raises(tmp_path: Path) -> None:
    (tmp_path / "broken.json").write_text("{", encoding="utf-8")

    with pytest.raises(SchemaStoreError, match="cannot be decoded"):
        SchemaStore(root=tmp_path).load("broken.json")


def test_non_object_schema_raises(tmp_path: Path) -> None:
    _write(tmp_path, "list.json", [1, 2])

    with pytest.raises(SchemaStoreError, match="JSON object"):
        SchemaStore(root=tmp_path).load("list.json")


@pytest.mark.parametrize("name", ["../core.json", "", "sub/core.json"])
def test_schema_names_cannot_escape_root(tmp_path: Path, name: str) -> None:
    with pytest.raises(SchemaStoreError, match="Invalid schema file name"):
        SchemaStore(root=tmp_path).schema_path(name)


def test_invalid_field_raises(tmp_path: Path) -> None:
    _write(tmp_path, "bad.json", {"fields": [{"id": "a", "system": {"vocabulary": {"concepts": [{"uri": "x"}]}}}]})

    with pytest.raises(SchemaStoreError, match="Invalid field 'a'"):
        SchemaStore(root=tmp_path).get_fields("bad.json")


def test_load_is_cached(tmp_path: Path) -> None:
    _write(tmp_path, "core.json", {"fields": [{"id": "a"}]})
    store = SchemaStore(root=tmp_path)
    store.load("core.json")

    _write(tmp_path, "core.json", {"fields": []})

    assert [field.id for field in store.get_fields("core.json")] == ["a"]
