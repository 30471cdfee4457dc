"""
Pydantic models for forms and submissions.

Record models (Form, FormSection, FormField, Submission) are what the stores
return and what the API serializes (camelCase on the wire). Input models
validate and sanitize request bodies before anything reaches a store.
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional
import html
import re
import uuid

import bleach
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


CUSTOM_LINK_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_-]*$")
CUSTOM_LINK_MAX_LENGTH = 100
# Path words under /api/forms that a custom link would shadow
RESERVED_CUSTOM_LINKS = {"expired", "shared", "submissions", "user"}


def strip_html(value: str) -> str:
    """Plain text: all tags removed, entities decoded."""
    return html.unescape(bleach.clean(value.strip(), tags=[], attributes={}, strip=True))


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes (e.g. read back from SQLite) as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


class FieldType(str, Enum):
    TEXT = "text"
    NUMBER = "number"
    DATE = "date"
    SELECT = "select"
    FILE = "file"


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------

class RecordModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_public(self, **kwargs) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json", **kwargs)


class FormField(RecordModel):
    id: str
    type: FieldType
    label: str
    name: str
    required: bool = False
    options: List[str] = Field(default_factory=list)


class FormSection(RecordModel):
    id: str
    title: str
    fields: List[FormField] = Field(default_factory=list)


class Form(RecordModel):
    id: str
    title: str
    description: Optional[str] = None
    sections: List[FormSection] = Field(default_factory=list)
    owner: str
    is_editable: bool = False
    allow_deletion: bool = False
    require_account: bool = False
    published: bool = True
    custom_link: Optional[str] = None
    url_id: str
    expiry_date: Optional[datetime] = None
    last_edited_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("expiry_date", "last_edited_at", "created_at", "updated_at")
    @classmethod
    def _normalize_timestamps(cls, v):
        return as_utc(v)

    def iter_fields(self) -> Iterator[FormField]:
        """Fields across all sections, in display order."""
        for section in self.sections:
            yield from section.fields

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expiry_date is None:
            return False
        return (now or utcnow()) > self.expiry_date

    def summary(self) -> Dict[str, Any]:
        """The limited view joined onto a submitter's own submissions."""
        return {
            "id": self.id,
            "title": self.title,
            "isEditable": self.is_editable,
            "allowDeletion": self.allow_deletion,
        }


class Submission(RecordModel):
    id: str
    form_id: str
    form_title: str
    responses: Dict[str, Any] = Field(default_factory=dict)
    field_labels: Dict[str, str] = Field(default_factory=dict)
    submitted_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("created_at", "updated_at")
    @classmethod
    def _normalize_timestamps(cls, v):
        return as_utc(v)


# ---------------------------------------------------------------------------
# Request bodies
# ---------------------------------------------------------------------------

class BaseDBModel(BaseModel):
    """Base input model: strips HTML from every string before validation."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    @field_validator("*", mode="before")
    @classmethod
    def sanitize_strings(cls, v):
        if isinstance(v, str):
            return strip_html(v)
        return v


class FieldInput(BaseDBModel):
    id: str = Field(default_factory=new_id, validation_alias=AliasChoices("id", "_id"))
    type: FieldType
    label: str = Field(min_length=1)
    name: str = Field(min_length=1)
    required: bool = False
    options: List[str] = Field(default_factory=list)

    @field_validator("id")
    @classmethod
    def ensure_id(cls, v):
        return v or new_id()

    @field_validator("options")
    @classmethod
    def sanitize_options(cls, v):
        cleaned = (strip_html(str(item)) for item in v)
        return [item for item in cleaned if item]

    @model_validator(mode="after")
    def options_only_for_select(self):
        if self.type != FieldType.SELECT:
            self.options = []
        return self


class SectionInput(BaseDBModel):
    id: str = Field(default_factory=new_id)
    title: str = Field(min_length=1)
    fields: List[FieldInput] = Field(default_factory=list)

    @field_validator("id")
    @classmethod
    def ensure_id(cls, v):
        return v or new_id()


class _FormDefinition(BaseDBModel):
    description: Optional[str] = None
    sections: Optional[List[SectionInput]] = None
    is_editable: Optional[bool] = None
    allow_deletion: Optional[bool] = None
    require_account: Optional[bool] = None
    custom_link: Optional[str] = None
    expiry_date: Optional[datetime] = None

    @field_validator("custom_link")
    @classmethod
    def validate_custom_link(cls, v):
        """Blank links mean "no custom link"; others must be URL-safe and not shadow a route."""
        if v is None or not v.strip():
            return None
        link = v.strip()
        if len(link) > CUSTOM_LINK_MAX_LENGTH:
            raise ValueError(f"Custom link must be at most {CUSTOM_LINK_MAX_LENGTH} characters")
        if not CUSTOM_LINK_PATTERN.match(link):
            raise ValueError("Custom link may only contain letters, numbers, hyphens and underscores")
        if link.lower() in RESERVED_CUSTOM_LINKS:
            raise ValueError(f"'{link}' is reserved and cannot be used as a custom link")
        return link

    @field_validator("expiry_date")
    @classmethod
    def normalize_expiry(cls, v):
        return as_utc(v)

    @model_validator(mode="after")
    def unique_field_ids(self):
        seen = set()
        for section in self.sections or []:
            for field in section.fields:
                if field.id in seen:
                    raise ValueError(f"Duplicate field id: {field.id}")
                seen.add(field.id)
        return self


class FormCreate(_FormDefinition):
    title: str = Field(min_length=1)


class FormUpdate(_FormDefinition):
    """Full replace of the editable definition; omitted keys keep their stored value."""

    title: Optional[str] = Field(default=None, min_length=1)


class PublishState(BaseModel):
    published: bool


class ResponsesPayload(BaseModel):
    responses: Dict[str, Any]
