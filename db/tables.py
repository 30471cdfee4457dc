"""
Table definitions for forms and submissions.

Submissions reference forms by id without a foreign key: forms are hard
deleted and their submissions are kept with the denormalized title/labels.
"""

from sqlalchemy import JSON, Boolean, Column, DateTime, Index, MetaData, String, Table, Text

metadata = MetaData()

forms = Table(
    "forms",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("owner_id", String(128), nullable=False, index=True),
    Column("title", Text, nullable=False),
    Column("description", Text),
    Column("sections", JSON, nullable=False, default=list),
    Column("is_editable", Boolean, nullable=False, default=False),
    Column("allow_deletion", Boolean, nullable=False, default=False),
    Column("require_account", Boolean, nullable=False, default=False),
    Column("published", Boolean, nullable=False, default=True),
    # NULLs do not collide, so forms without a custom link never conflict
    Column("custom_link", String(100), unique=True),
    Column("url_id", String(36), nullable=False, unique=True),
    Column("expiry_date", DateTime(timezone=True)),
    Column("last_edited_at", DateTime(timezone=True)),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
)

submissions = Table(
    "submissions",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("form_id", String(36), nullable=False, index=True),
    Column("form_title", Text, nullable=False),
    Column("responses", JSON, nullable=False, default=dict),
    Column("field_labels", JSON, nullable=False, default=dict),
    Column("submitted_by", String(128)),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
)

Index("ix_submissions_submitted_by_created_at", submissions.c.submitted_by, submissions.c.created_at)
