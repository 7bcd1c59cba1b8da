from __future__ import annotations

import httpx
from fastapi import APIRouter, Depends

from repodash.core.deps import require_principal
from repodash.core.http import get_http_client
from repodash.core.security import SessionPrincipal
from repodash.schemas.contacts import ContactOut
from repodash.services.contacts import fetch_contacts

router = APIRouter(prefix="/api/contacts", tags=["contacts"])


@router.get("", response_model=list[ContactOut])
def contacts_list(
    principal: SessionPrincipal = Depends(require_principal),
    http_client: httpx.Client = Depends(get_http_client),
) -> list[ContactOut]:
    contacts = fetch_contacts(http_client=http_client, access_token=principal.access_token)
    return [ContactOut.model_validate(c) for c in contacts]
