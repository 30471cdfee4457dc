"""
Submission lifecycle: accept, list, read, edit and delete form responses.

Each operation loads the records it needs, asks access_policy for a decision
and only then touches a store. Files attached to a submission are stored
before the insert and removed again if the insert fails.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, BinaryIO, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from starlette.concurrency import run_in_threadpool

from db.stores import FormStore, SubmissionStore
from models.base import Form, Submission, new_id, utcnow
from services import access_policy as policy
from services.errors import ValidationFailure
from services.field_validator import validate_responses
from services.file_storage import FileStorage
from services.identity import Identity

logger = logging.getLogger("backend.submissions")


@dataclass
class IncomingFile:
    """A file part of a multipart submission, keyed by the field id it answers."""

    field_name: str
    stream: BinaryIO
    filename: Optional[str] = None
    content_type: Optional[str] = None


def _enforce(decision: policy.Decision, action: str, target: str) -> None:
    if not decision.allowed:
        logger.info("%s %s denied: %s", action, target, decision.reason.value)
    decision.enforce()


class SubmissionsService:
    def __init__(
        self,
        forms: FormStore,
        submissions: SubmissionStore,
        storage: Optional[FileStorage] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.forms = forms
        self.submissions = submissions
        self.storage = storage
        self.clock = clock

    async def _store_files(
        self, form: Form, raw_responses: Mapping[str, Any], files: Sequence[IncomingFile]
    ) -> List[Tuple[str, str]]:
        """Store files for fields that exist on the form and appear in the payload.

        Only the last file part per field is stored; it is the one the field's value will reference.
        """
        if not files:
            return []
        if self.storage is None:
            raise RuntimeError("File storage is not configured")
        field_ids = {field.id for field in form.iter_fields()}
        latest: Dict[str, IncomingFile] = {}
        for incoming in files:
            if incoming.field_name not in field_ids or incoming.field_name not in raw_responses:
                logger.info("ignoring upload for unknown field %s on form %s", incoming.field_name, form.id)
                continue
            if incoming.field_name in latest:
                logger.info("replacing earlier upload for field %s on form %s", incoming.field_name, form.id)
            latest[incoming.field_name] = incoming

        stored: List[Tuple[str, str]] = []
        try:
            for field_name, incoming in latest.items():
                token = await run_in_threadpool(
                    self.storage.save, incoming.stream, incoming.filename, incoming.content_type
                )
                stored.append((field_name, token))
        except Exception:
            await self._discard_files([token for _, token in stored])
            raise
        return stored

    async def _discard_files(self, tokens: Sequence[str]) -> None:
        for token in tokens:
            try:
                await run_in_threadpool(self.storage.delete, token)
            except Exception:
                logger.exception("failed to remove orphaned upload %s", token)

    async def submit(
        self,
        form_id: str,
        requester: Optional[Identity],
        raw_responses: Any,
        files: Sequence[IncomingFile] = (),
    ) -> Submission:
        form = await self.forms.get_by_id(form_id)
        now = self.clock()
        _enforce(policy.can_submit(form, requester, now), "submit to form", form_id)

        if not isinstance(raw_responses, Mapping):
            raise ValidationFailure("responses must be an object keyed by field id")

        stored = await self._store_files(form, raw_responses, files)
        responses, labels = validate_responses(form, raw_responses, stored)
        submission = Submission(
            id=new_id(),
            form_id=form.id,
            form_title=form.title,
            responses=responses,
            field_labels=labels,
            submitted_by=requester.uid if requester else None,
            created_at=now,
            updated_at=now,
        )
        try:
            created = await self.submissions.insert(submission)
        except Exception:
            await self._discard_files([token for _, token in stored])
            raise
        logger.info(
            "submission %s stored for form %s (%s, %d files)",
            created.id,
            form.id,
            "anonymous" if requester is None else requester.uid,
            len(stored),
        )
        return created

    async def list_own_submissions(self, requester: Optional[Identity]) -> List[Dict[str, Any]]:
        """The requester's submissions, newest first, each with a summary of its form (None once deleted)."""
        policy.require_authenticated(requester).enforce()
        own = await self.submissions.list_by_submitter(requester.uid)
        forms_by_id = await self.forms.get_many(sub.form_id for sub in own)

        items = []
        for sub in own:
            data = sub.to_public()
            form = forms_by_id.get(sub.form_id)
            data["form"] = form.summary() if form else None
            items.append(data)
        return items

    async def list_form_submissions(self, form_id: str, requester: Optional[Identity]) -> List[Submission]:
        form = await self.forms.get_by_id(form_id)
        _enforce(policy.can_list_form_submissions(form, requester), "list submissions of form", form_id)
        if form.owner != requester.uid:
            logger.info("user %s listed submissions of form %s they do not own", requester.uid, form_id)
        return await self.submissions.list_by_form(form_id)

    async def _load(self, submission_id: str) -> Tuple[Optional[Submission], Optional[Form]]:
        submission = await self.submissions.get(submission_id)
        form = await self.forms.get_by_id(submission.form_id) if submission else None
        return submission, form

    async def get_submission(self, submission_id: str, requester: Optional[Identity]) -> Dict[str, Any]:
        submission, form = await self._load(submission_id)
        _enforce(policy.can_read_submission(form, submission, requester), "read submission", submission_id)

        data = submission.to_public()
        data["form"] = (
            {
                "id": form.id,
                "title": form.title,
                "sections": [section.to_public() for section in form.sections],
            }
            if form
            else None
        )
        return data

    async def update_submission(self, submission_id: str, requester: Optional[Identity], raw_responses: Any) -> Submission:
        """Replace the stored responses wholesale; the new payload is not re-validated against the form."""
        submission, form = await self._load(submission_id)
        _enforce(policy.can_update_submission(form, submission, requester), "update submission", submission_id)
        if not isinstance(raw_responses, Mapping):
            raise ValidationFailure("responses must be an object keyed by field id")

        updated = await self.submissions.replace_responses(submission_id, dict(raw_responses), self.clock())
        if updated is None:
            policy.deny(policy.Reason.SUBMISSION_NOT_FOUND).enforce()
        logger.info("submission %s updated by %s", submission_id, requester.uid)
        return updated

    async def delete_submission(self, submission_id: str, requester: Optional[Identity]) -> None:
        submission, form = await self._load(submission_id)
        _enforce(policy.can_delete_submission(form, submission, requester), "delete submission", submission_id)
        if not await self.submissions.delete(submission_id):
            policy.deny(policy.Reason.SUBMISSION_NOT_FOUND).enforce()
        logger.info("submission %s deleted by %s", submission_id, requester.uid)
