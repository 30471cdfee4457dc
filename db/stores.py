"""
Form and submission stores: translate between table rows and record models.

Each store wraps the request's AsyncSession; every mutation is a single
statement so a failed operation never leaves a partial effect behind.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional

from sqlalchemy import delete, insert, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from db.tables import forms, submissions
from models.base import Form, Submission
from services.errors import Conflict

logger = logging.getLogger("backend.stores")


def _form_from_row(row: Mapping[str, Any]) -> Form:
    return Form(
        id=row["id"],
        title=row["title"],
        description=row["description"],
        sections=row["sections"] or [],
        owner=row["owner_id"],
        is_editable=bool(row["is_editable"]),
        allow_deletion=bool(row["allow_deletion"]),
        require_account=bool(row["require_account"]),
        published=bool(row["published"]),
        custom_link=row["custom_link"],
        url_id=row["url_id"],
        expiry_date=row["expiry_date"],
        last_edited_at=row["last_edited_at"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _submission_from_row(row: Mapping[str, Any]) -> Submission:
    return Submission(
        id=row["id"],
        form_id=row["form_id"],
        form_title=row["form_title"],
        responses=row["responses"] or {},
        field_labels=row["field_labels"] or {},
        submitted_by=row["submitted_by"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _raise_if_custom_link_taken(error: IntegrityError, action: str) -> None:
    """Conflict for a duplicate custom link; any other constraint failure is left to propagate."""
    detail = str(error.orig)
    if "custom_link" not in detail:
        logger.error("form %s violated a constraint: %s", action, detail)
        return
    logger.info("form %s rejected by unique custom_link index: %s", action, detail)
    raise Conflict() from None


def form_to_row(form: Form) -> Dict[str, Any]:
    return {
        "id": form.id,
        "owner_id": form.owner,
        "title": form.title,
        "description": form.description,
        "sections": [section.model_dump(mode="json") for section in form.sections],
        "is_editable": form.is_editable,
        "allow_deletion": form.allow_deletion,
        "require_account": form.require_account,
        "published": form.published,
        "custom_link": form.custom_link,
        "url_id": form.url_id,
        "expiry_date": form.expiry_date,
        "last_edited_at": form.last_edited_at,
        "created_at": form.created_at,
        "updated_at": form.updated_at,
    }


class FormStore:
    """Persistence of form definitions."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _first(self, stmt) -> Optional[Form]:
        result = await self.session.execute(stmt)
        row = result.mappings().first()
        return _form_from_row(row) if row else None

    async def _all(self, stmt) -> List[Form]:
        result = await self.session.execute(stmt)
        return [_form_from_row(row) for row in result.mappings().all()]

    async def get_by_id(self, form_id: str) -> Optional[Form]:
        return await self._first(select(forms).where(forms.c.id == form_id))

    async def get_by_custom_link(self, custom_link: str) -> Optional[Form]:
        return await self._first(select(forms).where(forms.c.custom_link == custom_link))

    async def get_by_url_id(self, url_id: str) -> Optional[Form]:
        return await self._first(select(forms).where(forms.c.url_id == url_id))

    async def get_many(self, form_ids: Iterable[str]) -> Dict[str, Form]:
        ids = list({fid for fid in form_ids if fid})
        if not ids:
            return {}
        found = await self._all(select(forms).where(forms.c.id.in_(ids)))
        return {form.id: form for form in found}

    async def custom_link_in_use(self, custom_link: str, exclude_form_id: Optional[str] = None) -> bool:
        stmt = select(forms.c.id).where(forms.c.custom_link == custom_link)
        if exclude_form_id:
            stmt = stmt.where(forms.c.id != exclude_form_id)
        result = await self.session.execute(stmt.limit(1))
        return result.first() is not None

    async def list_by_owner(self, owner_id: str) -> List[Form]:
        return await self._all(
            select(forms).where(forms.c.owner_id == owner_id).order_by(forms.c.created_at.desc())
        )

    async def list_expired_by_owner(self, owner_id: str, now: datetime) -> List[Form]:
        return await self._all(
            select(forms)
            .where(forms.c.owner_id == owner_id)
            .where(forms.c.expiry_date.is_not(None))
            .where(forms.c.expiry_date < now)
            .order_by(forms.c.expiry_date.desc())
        )

    async def insert(self, form: Form) -> Form:
        try:
            result = await self.session.execute(insert(forms).values(**form_to_row(form)).returning(forms))
        except IntegrityError as e:
            # The unique index on custom_link is the real guard against concurrent creates
            _raise_if_custom_link_taken(e, "insert")
            raise
        return _form_from_row(result.mappings().one())

    async def update_owned(self, form_id: str, owner_id: str, values: Dict[str, Any]) -> Optional[Form]:
        """Conditional update on id+owner; None when nothing matched."""
        stmt = (
            update(forms)
            .where(forms.c.id == form_id)
            .where(forms.c.owner_id == owner_id)
            .values(**values)
            .returning(forms)
        )
        try:
            return await self._first(stmt)
        except IntegrityError as e:
            _raise_if_custom_link_taken(e, "update")
            raise

    async def delete_owned(self, form_id: str, owner_id: str) -> bool:
        result = await self.session.execute(
            delete(forms).where(forms.c.id == form_id).where(forms.c.owner_id == owner_id)
        )
        return (result.rowcount or 0) > 0


class SubmissionStore:
    """Persistence of form responses."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _all(self, stmt) -> List[Submission]:
        result = await self.session.execute(stmt)
        return [_submission_from_row(row) for row in result.mappings().all()]

    async def insert(self, submission: Submission) -> Submission:
        result = await self.session.execute(
            insert(submissions)
            .values(
                id=submission.id,
                form_id=submission.form_id,
                form_title=submission.form_title,
                responses=submission.responses,
                field_labels=submission.field_labels,
                submitted_by=submission.submitted_by,
                created_at=submission.created_at,
                updated_at=submission.updated_at,
            )
            .returning(submissions)
        )
        return _submission_from_row(result.mappings().one())

    async def get(self, submission_id: str) -> Optional[Submission]:
        result = await self.session.execute(select(submissions).where(submissions.c.id == submission_id))
        row = result.mappings().first()
        return _submission_from_row(row) if row else None

    async def list_by_form(self, form_id: str) -> List[Submission]:
        return await self._all(
            select(submissions)
            .where(submissions.c.form_id == form_id)
            .order_by(submissions.c.created_at.desc())
        )

    async def list_by_submitter(self, user_id: str) -> List[Submission]:
        return await self._all(
            select(submissions)
            .where(submissions.c.submitted_by == user_id)
            .order_by(submissions.c.created_at.desc())
        )

    async def replace_responses(self, submission_id: str, responses: Dict[str, Any], now: datetime) -> Optional[Submission]:
        result = await self.session.execute(
            update(submissions)
            .where(submissions.c.id == submission_id)
            .values(responses=responses, updated_at=now)
            .returning(submissions)
        )
        row = result.mappings().first()
        return _submission_from_row(row) if row else None

    async def delete(self, submission_id: str) -> bool:
        result = await self.session.execute(delete(submissions).where(submissions.c.id == submission_id))
        return (result.rowcount or 0) > 0
