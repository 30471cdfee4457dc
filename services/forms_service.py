"""
Forms service: create, read, share and manage form definitions
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from db.stores import FormStore
from models.base import Form, FormCreate, FormUpdate, new_id, utcnow
from services import access_policy as policy
from services.access_policy import Reason
from services.errors import Conflict
from services.identity import Identity

logger = logging.getLogger("backend.forms")

_FLAGS = ("is_editable", "allow_deletion", "require_account")


class FormsService:
    """Form operations; ownership and expiry rules come from access_policy"""

    def __init__(self, forms: FormStore, clock: Callable[[], datetime] = utcnow):
        self.forms = forms
        self.clock = clock

    async def _ensure_custom_link_free(self, custom_link: Optional[str], exclude_form_id: Optional[str] = None) -> None:
        # Check-then-write: the unique index still rejects a concurrent duplicate
        if custom_link and await self.forms.custom_link_in_use(custom_link, exclude_form_id):
            raise Conflict("This custom link is already in use")

    async def create_form(self, requester: Optional[Identity], payload: FormCreate) -> Form:
        policy.require_authenticated(requester).enforce()
        await self._ensure_custom_link_free(payload.custom_link)

        now = self.clock()
        form = Form(
            id=new_id(),
            title=payload.title,
            description=payload.description,
            sections=[section.model_dump(mode="json") for section in payload.sections or []],
            owner=requester.uid,
            is_editable=bool(payload.is_editable),
            allow_deletion=bool(payload.allow_deletion),
            require_account=bool(payload.require_account),
            published=True,
            custom_link=payload.custom_link,
            url_id=new_id(),
            expiry_date=payload.expiry_date,
            created_at=now,
            updated_at=now,
        )
        created = await self.forms.insert(form)
        logger.info("form %s created by %s", created.id, requester.uid)
        return created

    async def get_form(self, id_or_custom_link: str) -> Dict[str, Any]:
        """Public read. An exact custom link match wins over a form id with the same text."""
        form = await self.forms.get_by_custom_link(id_or_custom_link)
        if form is None:
            form = await self.forms.get_by_id(id_or_custom_link)
        policy.can_read_form(form).enforce()

        data = form.to_public()
        data["expired"] = form.is_expired(self.clock())
        return data

    async def resolve_shared(self, identifier: str) -> Optional[Form]:
        """customLink, then urlId, then raw id; first hit wins."""
        for lookup in (self.forms.get_by_custom_link, self.forms.get_by_url_id, self.forms.get_by_id):
            form = await lookup(identifier)
            if form is not None:
                return form
        return None

    async def get_shared_form(self, identifier: str) -> Dict[str, Any]:
        form = await self.resolve_shared(identifier)
        decision = policy.can_read_shared_form(form, self.clock())
        if not decision.allowed:
            logger.info("shared read of %s denied: %s", identifier, decision.reason.value)
        decision.enforce()
        return form.to_public(exclude={"owner"})

    async def list_own_forms(self, requester: Optional[Identity]) -> List[Form]:
        policy.require_authenticated(requester).enforce()
        return await self.forms.list_by_owner(requester.uid)

    async def list_expired_forms(self, requester: Optional[Identity]) -> List[Form]:
        policy.require_authenticated(requester).enforce()
        return await self.forms.list_expired_by_owner(requester.uid, self.clock())

    async def _load_managed(self, form_id: str, requester: Optional[Identity]) -> Form:
        form = await self.forms.get_by_id(form_id)
        decision = policy.can_manage_form(form, requester)
        if not decision.allowed:
            logger.info("manage form %s denied: %s", form_id, decision.reason.value)
        decision.enforce()
        return form

    async def _update_owned(self, form_id: str, requester: Identity, values: Dict[str, Any]) -> Form:
        updated = await self.forms.update_owned(form_id, requester.uid, values)
        if updated is None:
            # Deleted or re-owned between the read and the conditional update
            policy.deny(Reason.NOT_OWNER).enforce()
        return updated

    async def update_form(self, form_id: str, requester: Optional[Identity], payload: FormUpdate) -> Form:
        await self._load_managed(form_id, requester)
        await self._ensure_custom_link_free(payload.custom_link, exclude_form_id=form_id)

        now = self.clock()
        provided = payload.model_fields_set
        values: Dict[str, Any] = {
            "last_edited_at": now,
            "updated_at": now,
            # Omitting the custom link removes it
            "custom_link": payload.custom_link,
        }
        if payload.title is not None:
            values["title"] = payload.title
        if "description" in provided:
            values["description"] = payload.description
        if payload.sections is not None:
            values["sections"] = [section.model_dump(mode="json") for section in payload.sections]
        for flag in _FLAGS:
            value = getattr(payload, flag)
            if value is not None:
                values[flag] = bool(value)
        if "expiry_date" in provided:
            values["expiry_date"] = payload.expiry_date

        updated = await self._update_owned(form_id, requester, values)
        logger.info("form %s updated by %s", form_id, requester.uid)
        return updated

    async def delete_form(self, form_id: str, requester: Optional[Identity]) -> None:
        """Hard delete; submissions stay and keep their denormalized title and labels."""
        await self._load_managed(form_id, requester)
        if not await self.forms.delete_owned(form_id, requester.uid):
            policy.deny(Reason.NOT_OWNER).enforce()
        logger.info("form %s deleted by %s", form_id, requester.uid)

    async def expire_form(self, form_id: str, requester: Optional[Identity]) -> Form:
        await self._load_managed(form_id, requester)
        now = self.clock()
        updated = await self._update_owned(
            form_id, requester, {"expiry_date": now, "published": False, "updated_at": now}
        )
        logger.info("form %s expired by %s", form_id, requester.uid)
        return updated

    async def set_published(self, form_id: str, requester: Optional[Identity], published: bool) -> Form:
        """Publishing clears the expiry date; unpublishing expires the form now."""
        await self._load_managed(form_id, requester)
        now = self.clock()
        updated = await self._update_owned(
            form_id,
            requester,
            {"published": published, "expiry_date": None if published else now, "updated_at": now},
        )
        logger.info("form %s %s by %s", form_id, "published" if published else "unpublished", requester.uid)
        return updated
