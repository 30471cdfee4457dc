"""
Access policy for forms and submissions.

Every predicate is a pure function of (form, submission, requester[, now]) and
returns a Decision. Decision.enforce() turns a denial into the matching typed
error; owner-scoped form operations deny with NotFound so a non-owner cannot
tell a foreign form from a missing one.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from models.base import Form, Submission
from services.errors import Expired, Forbidden, FormsAPIError, NotFound, Unauthenticated
from services.identity import Identity


class Reason(str, Enum):
    OK = "ok"
    UNAUTHENTICATED = "unauthenticated"
    FORM_NOT_FOUND = "form_not_found"
    SUBMISSION_NOT_FOUND = "submission_not_found"
    FORM_EXPIRED = "form_expired"
    OWNER_CANNOT_SUBMIT = "owner_cannot_submit"
    NOT_OWNER = "not_owner"
    NOT_SUBMITTER = "not_submitter"
    NOT_PARTICIPANT = "not_participant"
    EDITING_DISABLED = "editing_disabled"
    DELETION_DISABLED = "deletion_disabled"


_ERRORS = {
    Reason.UNAUTHENTICATED: (Unauthenticated, "Authentication required"),
    Reason.FORM_NOT_FOUND: (NotFound, "Form not found"),
    Reason.SUBMISSION_NOT_FOUND: (NotFound, "Submission not found"),
    Reason.FORM_EXPIRED: (Expired, "This form has expired"),
    Reason.OWNER_CANNOT_SUBMIT: (Forbidden, "Form creators cannot submit their own forms"),
    Reason.NOT_OWNER: (NotFound, "Form not found or unauthorized"),
    Reason.NOT_SUBMITTER: (Forbidden, "Only the person who submitted this response can change it"),
    Reason.NOT_PARTICIPANT: (Forbidden, "Unauthorized"),
    Reason.EDITING_DISABLED: (Forbidden, "This form does not allow editing submissions"),
    Reason.DELETION_DISABLED: (Forbidden, "Deletion not allowed for this form"),
}


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: Reason

    def error(self) -> Optional[FormsAPIError]:
        if self.allowed:
            return None
        error_cls, message = _ERRORS[self.reason]
        return error_cls(message, code=self.reason.value)

    def enforce(self) -> None:
        if not self.allowed:
            raise self.error()


ALLOW = Decision(True, Reason.OK)


def deny(reason: Reason) -> Decision:
    return Decision(False, reason)


def _is_owner(form: Form, requester: Optional[Identity]) -> bool:
    return requester is not None and form.owner == requester.uid


def _is_submitter(submission: Submission, requester: Optional[Identity]) -> bool:
    return (
        requester is not None
        and submission.submitted_by is not None
        and submission.submitted_by == requester.uid
    )


def require_authenticated(requester: Optional[Identity]) -> Decision:
    """Create form, list own forms/submissions, list a form's submissions."""
    return ALLOW if requester is not None else deny(Reason.UNAUTHENTICATED)


def can_read_form(form: Optional[Form]) -> Decision:
    """Public read by id or custom link; expiry is reported, not enforced."""
    return ALLOW if form is not None else deny(Reason.FORM_NOT_FOUND)


def can_read_shared_form(form: Optional[Form], now: datetime) -> Decision:
    if form is None:
        return deny(Reason.FORM_NOT_FOUND)
    if form.is_expired(now):
        return deny(Reason.FORM_EXPIRED)
    return ALLOW


def can_submit(form: Optional[Form], requester: Optional[Identity], now: datetime) -> Decision:
    """Anonymous submissions are allowed; requireAccount is left to the client."""
    if form is None:
        return deny(Reason.FORM_NOT_FOUND)
    if form.is_expired(now):
        return deny(Reason.FORM_EXPIRED)
    if _is_owner(form, requester):
        return deny(Reason.OWNER_CANNOT_SUBMIT)
    return ALLOW


def can_list_form_submissions(form: Optional[Form], requester: Optional[Identity]) -> Decision:
    # Any authenticated user may list; ownership is not checked for this operation
    if requester is None:
        return deny(Reason.UNAUTHENTICATED)
    if form is None:
        return deny(Reason.FORM_NOT_FOUND)
    return ALLOW


def can_manage_form(form: Optional[Form], requester: Optional[Identity]) -> Decision:
    """Update, delete, expire and publish: owner only, denials look like not-found."""
    if requester is None:
        return deny(Reason.UNAUTHENTICATED)
    if form is None:
        return deny(Reason.FORM_NOT_FOUND)
    if not _is_owner(form, requester):
        return deny(Reason.NOT_OWNER)
    return ALLOW


def can_read_submission(
    form: Optional[Form], submission: Optional[Submission], requester: Optional[Identity]
) -> Decision:
    if requester is None:
        return deny(Reason.UNAUTHENTICATED)
    if submission is None:
        return deny(Reason.SUBMISSION_NOT_FOUND)
    if _is_submitter(submission, requester):
        return ALLOW
    if form is not None and _is_owner(form, requester):
        return ALLOW
    return deny(Reason.NOT_PARTICIPANT)


def can_update_submission(
    form: Optional[Form], submission: Optional[Submission], requester: Optional[Identity]
) -> Decision:
    if requester is None:
        return deny(Reason.UNAUTHENTICATED)
    if submission is None:
        return deny(Reason.SUBMISSION_NOT_FOUND)
    if not _is_submitter(submission, requester):
        return deny(Reason.NOT_SUBMITTER)
    # A deleted form has no isEditable flag left to grant editing
    if form is None or not form.is_editable:
        return deny(Reason.EDITING_DISABLED)
    return ALLOW


def can_delete_submission(
    form: Optional[Form], submission: Optional[Submission], requester: Optional[Identity]
) -> Decision:
    if requester is None:
        return deny(Reason.UNAUTHENTICATED)
    if submission is None:
        return deny(Reason.SUBMISSION_NOT_FOUND)
    if not _is_submitter(submission, requester):
        return deny(Reason.NOT_SUBMITTER)
    if form is None:
        return ALLOW
    if not form.allow_deletion:
        return deny(Reason.DELETION_DISABLED)
    return ALLOW
