"""
Tests for request-body sanitizing on form definitions.
"""
import pytest
from pydantic import ValidationError

from conftest import form_definition
from models.base import FieldInput, FormCreate, strip_html


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("<b>Bold</b> title", "Bold title"),
        ('<a href="https://x.test">link</a>', "link"),
        ("<em>a</em> & <strong>b</strong>", "a & b"),
        ("  Q&A day  ", "Q&A day"),
        ("plain", "plain"),
    ],
)
def test_strip_html_returns_plain_text(raw, expected):
    assert strip_html(raw) == expected


def test_definition_strings_are_stored_as_plain_text():
    sections = [
        {
            "id": "s1",
            "title": "<i>Legal</i>",
            "fields": [
                {
                    "id": "t",
                    "type": "select",
                    "label": "Terms & Conditions",
                    "name": "<code>terms</code>",
                    "options": ["<b>Yes</b>", "No & never", "<br>"],
                },
            ],
        }
    ]

    form = FormCreate.model_validate(form_definition(title="<b>Q&A</b> day", sections=sections))

    field = form.sections[0].fields[0]
    assert form.title == "Q&A day"
    assert form.sections[0].title == "Legal"
    assert field.label == "Terms & Conditions"
    assert field.name == "terms"
    assert field.options == ["Yes", "No & never"]


def test_label_made_only_of_markup_is_rejected():
    with pytest.raises(ValidationError):
        FieldInput.model_validate({"type": "text", "label": "<b></b>", "name": "x"})
