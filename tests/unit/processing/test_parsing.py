from __future__ import annotations

import pytest

from metacanvas.processing.parsing import (
    classify_value,
    find_json_object,
    flatten_array_item,
    flatten_object,
    parse_content_type_response,
    parse_field_response,
    parse_json_response,
    parse_text_response,
)
from metacanvas.typing.enums import ValueKind
from metacanvas.typing.models import (
    FieldDefinition,
    ShapeField,
    ValidationRules,
    Vocabulary,
    VocabularyConcept,
)


def _field(field_id: str = "cclom:title", **kwargs: object) -> FieldDefinition:
    return FieldDefinition(id=field_id, label=field_id, **kwargs)


def test_classify_value_variants() -> None:
    assert classify_value(None) is ValueKind.NULL
    assert classify_value([1]) is ValueKind.ARRAY
    assert classify_value({"a": 1}) is ValueKind.OBJECT
    assert classify_value("x") is ValueKind.SCALAR
    assert classify_value(3) is ValueKind.SCALAR


def test_find_json_object_spans_first_to_last_brace() -> None:
    assert find_json_object('Antwort: {"a": {"b": 1}} fertig') == '{"a": {"b": 1}}'
    assert find_json_object("kein json") is None


def test_multiple_field_keeps_array() -> None:
    definition = _field("keywords", multiple=True)
    assert parse_field_response('{"keywords": ["A", "B"]}', definition) == ["A", "B"]


def test_money_object_is_flattened_for_plain_field() -> None:
    definition = _field("price")
    assert parse_field_response('{"price": {"amount": 120, "currency": "EUR"}}', definition) == "120 EUR"


def test_money_with_integral_float_drops_decimal() -> None:
    assert flatten_object({"amount": 120.0, "currency": "EUR"}) == "120 EUR"


def test_generic_object_is_flattened_as_key_value_pairs() -> None:
    assert flatten_object({"name": "Raum 1", "floor": 2, "open": True}) == "name: Raum 1, floor: 2, open: true"
    assert flatten_object({}) is None


def test_array_items_are_flattened() -> None:
    assert flatten_array_item({"amount": 5, "currency": "EUR"}) == "5 EUR"
    assert flatten_array_item({"a": "x", "b": "y"}) == "x, y"
    assert flatten_array_item("plain") == "plain"


def test_structured_field_keeps_object() -> None:
    definition = _field("price", datatype="object", shape=[ShapeField(id="amount"), ShapeField(id="currency")])

    value = parse_field_response('{"price": {"amount": 50, "currency": "EUR"}}', definition)

    assert value == {"amount": 50, "currency": "EUR"}


def test_scalar_is_wrapped_for_multiple_field() -> None:
    definition = _field("keywords", multiple=True)
    assert parse_field_response('{"keywords": "Mathe"}', definition) == ["Mathe"]


def test_blank_array_items_are_dropped() -> None:
    definition = _field("keywords", multiple=True)
    assert parse_field_response('{"keywords": ["A", "", null, "  "]}', definition) == ["A"]
    assert parse_field_response('{"keywords": []}', definition) is None


@pytest.mark.parametrize("content", ['{"cclom:title": null}', '{"cclom:title": "  "}', '{"other": "x"}'])
def test_json_without_usable_value_yields_none(content: str) -> None:
    outcome = parse_json_response(content, _field())
    assert outcome.found is True
    assert outcome.value is None


def test_undecodable_json_is_not_found() -> None:
    assert parse_json_response("{kaputt", _field()).found is False
    assert parse_json_response("{kaputt}", _field()).found is False


@pytest.mark.parametrize("content", ["null", "", "  Nicht gefunden  ", "NULL"])
def test_text_markers_mean_not_found(content: str) -> None:
    assert parse_field_response(content, _field()) is None


def test_text_fallback_splits_array_fields_on_commas() -> None:
    definition = _field("keywords", datatype="array", multiple=True)
    assert parse_text_response("Mathe, Brüche , ,Geometrie", definition) == ["Mathe", "Brüche", "Geometrie"]


def test_text_fallback_keeps_commas_for_multiple_string_fields() -> None:
    definition = _field("cclom:general_description", multiple=True)
    text = "Brüche, Dezimalzahlen und Prozente"
    assert parse_text_response(text, definition) == text


def test_text_fallback_rejects_uri_not_matching_pattern() -> None:
    definition = _field("ccm:wwwurl", datatype="uri", validation=ValidationRules(pattern=r"^https?://"))

    assert parse_field_response("keine Adresse", definition) is None
    assert parse_field_response("https://example.org", definition) == "https://example.org"


def test_text_fallback_matches_vocabulary_label() -> None:
    definition = _field(
        "mode",
        vocabulary=Vocabulary(
            type="open",
            concepts=[VocabularyConcept(label="Online", uri="https://vocab.example/online", alt_labels=["digital"])],
        ),
    )

    assert parse_field_response("digital", definition) == "https://vocab.example/online"
    assert parse_field_response("hybrid", definition) == "hybrid"


def test_text_fallback_returns_trimmed_text() -> None:
    assert parse_field_response("  Workshop Bruchrechnung \n", _field()) == "Workshop Bruchrechnung"


def test_json_embedded_in_prose_is_used() -> None:
    content = 'Hier ist das Ergebnis:\n```json\n{"cclom:title": "Workshop"}\n```'
    assert parse_field_response(content, _field()) == "Workshop"


def test_content_type_answer_is_parsed() -> None:
    detection = parse_content_type_response('Ergebnis: {"schema": "event.json", "confidence": 0.92}')

    assert detection is not None
    assert detection.schema_file == "event.json"
    assert detection.confidence == pytest.approx(0.92)


@pytest.mark.parametrize("content", ["keine Ahnung", '{"schema": 3}', "{kaputt}"])
def test_unusable_content_type_answer_is_none(content: str) -> None:
    assert parse_content_type_response(content) is None
