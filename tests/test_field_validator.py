"""
Tests for mapping raw responses onto a form's fields.
"""
from models.base import Form
from services.field_validator import validate_responses


def _form(*sections) -> Form:
    return Form(id="form-1", title="Survey", owner="owner-1", url_id="url-1", sections=list(sections))


def _section(section_id, *fields):
    return {"id": section_id, "title": section_id.upper(), "fields": list(fields)}


def _field(field_id, label, field_type="text"):
    return {"id": field_id, "type": field_type, "label": label, "name": label.lower()}


def test_copies_value_and_label_for_known_field():
    form = _form(_section("s1", _field("f1", "Name")))

    responses, labels = validate_responses(form, {"f1": "Alice"})

    assert responses == {"f1": "Alice"}
    assert labels == {"f1": "Name"}


def test_unknown_keys_are_dropped():
    form = _form(_section("s1", _field("f1", "Name")))

    responses, labels = validate_responses(form, {"f1": "x", "unknown_field": "y"})

    assert responses == {"f1": "x"}
    assert "unknown_field" not in labels


def test_output_keys_are_subset_of_field_ids():
    form = _form(
        _section("s1", _field("a", "A"), _field("b", "B", "number")),
        _section("s2", _field("c", "C", "date")),
    )
    payload = {"a": "1", "c": "2024-01-01", "zzz": 1, "s1": "section ids are not fields"}

    responses, labels = validate_responses(form, payload)

    field_ids = {f.id for f in form.iter_fields()}
    assert set(responses) <= field_ids
    assert set(labels) == set(responses)


def test_absent_fields_are_skipped_even_when_required():
    form = _form(_section("s1", {**_field("f1", "Name"), "required": True}, _field("f2", "Age", "number")))

    responses, labels = validate_responses(form, {"f2": 30})

    assert responses == {"f2": 30}
    assert labels == {"f2": "Age"}


def test_values_are_kept_verbatim():
    form = _form(_section("s1", _field("n", "Count", "number"), _field("s", "Pick", "select")))

    responses, _ = validate_responses(form, {"n": "not a number", "s": ["x", "y"]})

    assert responses == {"n": "not a number", "s": ["x", "y"]}


def test_uploaded_file_replaces_value_of_named_field():
    form = _form(_section("s1", _field("cv", "Resume", "file")))

    responses, labels = validate_responses(form, {"cv": "resume.pdf"}, [("cv", "1700000000000-resume.pdf")])

    assert responses == {"cv": "1700000000000-resume.pdf"}
    assert labels == {"cv": "Resume"}


def test_upload_for_field_missing_from_payload_is_ignored():
    form = _form(_section("s1", _field("cv", "Resume", "file"), _field("f1", "Name")))

    responses, _ = validate_responses(form, {"f1": "Bob"}, [("cv", "stored.pdf"), ("other", "x.pdf")])

    assert responses == {"f1": "Bob"}


def test_fields_are_walked_in_section_order():
    form = _form(_section("s2", _field("b", "Second")), _section("s1", _field("a", "First")))

    responses, _ = validate_responses(form, {"a": 1, "b": 2})

    assert list(responses) == ["b", "a"]
