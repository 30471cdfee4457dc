"""
Forms API router: form definitions, sharing and owner controls
"""

from fastapi import APIRouter, Depends

from models.base import FormCreate, FormUpdate, PublishState
from routers.deps import get_forms_service, require_identity
from services.forms_service import FormsService
from services.identity import Identity

router = APIRouter(prefix="/api/forms", tags=["forms"])


@router.post("", status_code=201)
async def create_form(
    form_data: FormCreate,
    identity: Identity = Depends(require_identity),
    service: FormsService = Depends(get_forms_service),
):
    """Create a new form owned by the caller"""
    form = await service.create_form(identity, form_data)
    return form.to_public()


@router.get("")
async def list_forms(
    identity: Identity = Depends(require_identity),
    service: FormsService = Depends(get_forms_service),
):
    """All forms owned by the caller, newest first"""
    return [form.to_public() for form in await service.list_own_forms(identity)]


@router.get("/expired")
async def list_expired_forms(
    identity: Identity = Depends(require_identity),
    service: FormsService = Depends(get_forms_service),
):
    return [form.to_public() for form in await service.list_expired_forms(identity)]


@router.get("/shared/{identifier}")
async def get_shared_form(identifier: str, service: FormsService = Depends(get_forms_service)):
    """Shared view by custom link, urlId or id; refuses expired forms"""
    return await service.get_shared_form(identifier)


@router.get("/{id_or_custom_link}")
async def get_form(id_or_custom_link: str, service: FormsService = Depends(get_forms_service)):
    """Public read; expired forms are returned with expired=true"""
    return await service.get_form(id_or_custom_link)


@router.put("/{form_id}")
async def update_form(
    form_id: str,
    form_data: FormUpdate,
    identity: Identity = Depends(require_identity),
    service: FormsService = Depends(get_forms_service),
):
    form = await service.update_form(form_id, identity, form_data)
    return form.to_public()


@router.delete("/{form_id}")
async def delete_form(
    form_id: str,
    identity: Identity = Depends(require_identity),
    service: FormsService = Depends(get_forms_service),
):
    await service.delete_form(form_id, identity)
    return {"message": "Form deleted successfully"}


@router.put("/{form_id}/expire")
async def expire_form(
    form_id: str,
    identity: Identity = Depends(require_identity),
    service: FormsService = Depends(get_forms_service),
):
    form = await service.expire_form(form_id, identity)
    return {"message": "Form expired successfully", "form": form.to_public()}


@router.put("/{form_id}/publish")
async def toggle_publish(
    form_id: str,
    status: PublishState,
    identity: Identity = Depends(require_identity),
    service: FormsService = Depends(get_forms_service),
):
    form = await service.set_published(form_id, identity, status.published)
    state = "published" if status.published else "unpublished"
    return {"message": f"Form {state} successfully", "form": form.to_public()}
