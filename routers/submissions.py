"""
Submissions API router: submit to a form and manage submitted responses
"""

import json
from typing import Any, Dict, List, Optional, Tuple

from fastapi import APIRouter, Depends, Request
from starlette.datastructures import UploadFile

from models.base import ResponsesPayload
from routers.deps import get_submissions_service, optional_identity, require_identity
from services.errors import ValidationFailure
from services.identity import Identity
from services.submissions_service import IncomingFile, SubmissionsService
from utils.limiter import limiter, submit_limit

router = APIRouter(prefix="/api/forms", tags=["submissions"])


async def _read_submit_body(request: Request) -> Tuple[Any, List[IncomingFile], Any]:
    """Parse a JSON body or a multipart body whose `responses` part holds the JSON payload.

    Returns (responses, files, form_data); form_data must be closed by the caller.
    """
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("multipart/form-data"):
        form_data = await request.form()
        raw = form_data.get("responses")
        try:
            responses = json.loads(raw) if raw else {}
        except (TypeError, ValueError):
            await form_data.close()
            raise ValidationFailure("responses must be valid JSON") from None
        files = [
            IncomingFile(
                field_name=key,
                stream=value.file,
                filename=value.filename,
                content_type=value.content_type,
            )
            for key, value in form_data.multi_items()
            if isinstance(value, UploadFile)
        ]
        return responses, files, form_data

    try:
        body = await request.json()
    except ValueError:
        raise ValidationFailure("Request body must be JSON") from None
    if not isinstance(body, dict):
        raise ValidationFailure("Request body must be a JSON object")
    return body.get("responses"), [], None


# Fixed paths first: /user/submissions and /submissions/{id} would otherwise
# match /{form_id}/submissions

@router.get("/user/submissions")
async def list_my_submissions(
    identity: Identity = Depends(require_identity),
    service: SubmissionsService = Depends(get_submissions_service),
) -> List[Dict[str, Any]]:
    """Submissions made by the caller, each with a summary of its form"""
    return await service.list_own_submissions(identity)


@router.get("/submissions/{submission_id}")
async def get_submission(
    submission_id: str,
    identity: Identity = Depends(require_identity),
    service: SubmissionsService = Depends(get_submissions_service),
):
    return await service.get_submission(submission_id, identity)


@router.put("/submissions/{submission_id}")
async def update_submission(
    submission_id: str,
    payload: ResponsesPayload,
    identity: Identity = Depends(require_identity),
    service: SubmissionsService = Depends(get_submissions_service),
):
    submission = await service.update_submission(submission_id, identity, payload.responses)
    return {"message": "Submission updated successfully", "submission": submission.to_public()}


@router.delete("/submissions/{submission_id}")
async def delete_submission(
    submission_id: str,
    identity: Identity = Depends(require_identity),
    service: SubmissionsService = Depends(get_submissions_service),
):
    await service.delete_submission(submission_id, identity)
    return {"message": "Submission deleted successfully"}


@router.post("/{form_id}/submit", status_code=201)
@limiter.limit(submit_limit)
async def submit_form(
    form_id: str,
    request: Request,
    identity: Optional[Identity] = Depends(optional_identity),
    service: SubmissionsService = Depends(get_submissions_service),
):
    """Submit responses to a form; anonymous callers are allowed"""
    responses, files, form_data = await _read_submit_body(request)
    try:
        submission = await service.submit(form_id, identity, responses, files)
    finally:
        if form_data is not None:
            await form_data.close()
    return submission.to_public()


@router.get("/{form_id}/submissions")
async def list_form_submissions(
    form_id: str,
    identity: Identity = Depends(require_identity),
    service: SubmissionsService = Depends(get_submissions_service),
):
    submissions = await service.list_form_submissions(form_id, identity)
    return [submission.to_public() for submission in submissions]
