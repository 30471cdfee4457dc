"""
Maps a raw response payload onto a form's field schema.
"""

from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from models.base import Form

UploadedFile = Tuple[str, str]


def validate_responses(
    form: Form,
    raw_responses: Mapping[str, Any],
    uploaded_files: Optional[Iterable[UploadedFile]] = None,
) -> Tuple[Dict[str, Any], Dict[str, str]]:
    """Return (responses, field_labels) for the fields of `form` present in the payload.

    Keys that are not field ids are dropped, absent fields are skipped (required
    fields are not enforced here) and values are kept as submitted. An uploaded
    file replaces the value of its field with the stored filename, provided the
    payload names that field too.
    """
    responses: Dict[str, Any] = {}
    labels: Dict[str, str] = {}
    for field in form.iter_fields():
        if field.id in raw_responses:
            responses[field.id] = raw_responses[field.id]
            labels[field.id] = field.label

    for field_name, stored_filename in uploaded_files or ():
        if field_name in responses:
            responses[field_name] = stored_filename

    return responses, labels
