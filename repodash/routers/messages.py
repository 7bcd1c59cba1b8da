from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from repodash.core.deps import require_principal
from repodash.core.security import SessionPrincipal
from repodash.db.session import get_session
from repodash.schemas.messages import MessageOut
from repodash.services.messages import list_conversation

router = APIRouter(prefix="/api/messages", tags=["messages"])


@router.get("/{receiver_id}", response_model=list[MessageOut])
def messages_conversation(
    receiver_id: str,
    principal: SessionPrincipal = Depends(require_principal),
    session: Session = Depends(get_session),
) -> list[MessageOut]:
    return list_conversation(session=session, user_id=principal.id, other_id=receiver_id)
