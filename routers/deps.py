"""
Shared FastAPI dependencies: caller identity and per-request services.
"""

from typing import Optional

from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from db.database import get_session
from db.stores import FormStore, SubmissionStore
from services.errors import Unauthenticated
from services.forms_service import FormsService
from services.identity import Identity, extract_credential
from services.submissions_service import SubmissionsService


async def optional_identity(request: Request, authorization: str = Header(None)) -> Optional[Identity]:
    """Tolerant: a missing or bad credential means an anonymous caller."""
    provider = request.app.state.identity_provider
    # Firebase verification may fetch signing keys over the network
    return await run_in_threadpool(provider.verify, extract_credential(authorization))


async def require_identity(identity: Optional[Identity] = Depends(optional_identity)) -> Identity:
    """Strict: rejects before any service code runs."""
    if identity is None:
        raise Unauthenticated("Missing or invalid authorization token")
    return identity


def get_forms_service(session: AsyncSession = Depends(get_session)) -> FormsService:
    return FormsService(FormStore(session))


def get_submissions_service(request: Request, session: AsyncSession = Depends(get_session)) -> SubmissionsService:
    return SubmissionsService(FormStore(session), SubmissionStore(session), request.app.state.file_storage)
