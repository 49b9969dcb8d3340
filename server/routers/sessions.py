"""Session Store sub-protocol routes.

Each ``{partition}`` addresses an independent durable Session Store.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from pydantic import ValidationError as PydanticValidationError

from core.container import container
from core.errors import ValidationError
from core.logging import get_logger
from models.session import CreateSessionRequest, UpdateSessionRequest
from services.actors import ActorDirectory
from services.session_store import SessionStore

logger = get_logger(__name__)
router = APIRouter(prefix="/internal/sessions/{partition}", tags=["sessions"])


def get_session_store(
    partition: str,
    directory: ActorDirectory = Depends(lambda: container.session_stores())
) -> SessionStore:
    return directory.get(partition)


async def _json_body(request: Request) -> dict:
    raw = await request.body()
    if not raw:
        return {}
    try:
        body = await request.json()
    except ValueError as e:
        raise ValidationError("Invalid JSON body") from e
    if not isinstance(body, dict):
        raise ValidationError("JSON object expected")
    return body


@router.post("/create")
async def create_session(request: Request, store: SessionStore = Depends(get_session_store)):
    try:
        payload = CreateSessionRequest.model_validate(await _json_body(request))
    except PydanticValidationError as e:
        raise ValidationError("Invalid session payload") from e
    record = await store.create(user_id=payload.user_id, data=payload.data)
    return {"sessionId": record.id, "session": record.to_json()}


@router.get("/get")
async def get_session(
    session_id: Optional[str] = Query(default=None, alias="id"),
    store: SessionStore = Depends(get_session_store)
):
    if not session_id:
        raise ValidationError("Session ID required")
    record = await store.get(session_id)
    return {"session": record.to_json()}


@router.post("/update")
async def update_session(request: Request, store: SessionStore = Depends(get_session_store)):
    try:
        payload = UpdateSessionRequest.model_validate(await _json_body(request))
    except PydanticValidationError as e:
        raise ValidationError("Invalid session payload") from e
    if not payload.session_id:
        raise ValidationError("Session ID required")
    record = await store.update(payload.session_id, payload.data)
    return {"session": record.to_json()}


@router.delete("/delete")
async def delete_session(
    session_id: Optional[str] = Query(default=None, alias="id"),
    store: SessionStore = Depends(get_session_store)
):
    if not session_id:
        raise ValidationError("Session ID required")
    return {"success": await store.delete(session_id)}
