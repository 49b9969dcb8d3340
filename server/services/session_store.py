"""Session Store durable actor.

Holds session records for one partition with a sliding expiration window:
every read or write moves ``updatedAt`` forward, and records idle for longer
than the TTL are purged on cold load and by the background sweeper.
"""

import secrets
from typing import Any, Dict, Optional

from pydantic import ValidationError as PydanticValidationError

from constants import SESSION_NAMESPACE
from core.clock import Clock
from core.errors import NotFoundError
from core.logging import get_logger
from core.storage import StorageService
from models.session import SessionRecord
from services.actors import DurableActor

logger = get_logger(__name__)

SESSION_ID_BYTES = 16


def generate_session_id() -> str:
    """Opaque, URL-safe random identifier."""
    return secrets.token_urlsafe(SESSION_ID_BYTES)


class SessionStore(DurableActor):
    """Serialized store of session records for one partition."""

    namespace = SESSION_NAMESPACE

    def __init__(self, partition: str, storage: StorageService, clock: Clock, ttl_ms: int):
        super().__init__(partition, storage, clock)
        self.ttl_ms = ttl_ms
        self._sessions: Dict[str, SessionRecord] = {}

    async def _on_load(self, state: Dict[str, Any]) -> None:
        self._sessions = {}
        for session_id, raw in state.items():
            try:
                self._sessions[session_id] = SessionRecord.model_validate(raw)
            except PydanticValidationError:
                logger.warning("Discarding malformed session record",
                               partition=self.partition, session_id=session_id)
        await self._purge_expired()

    async def _purge_expired(self) -> int:
        now = self.clock.now()
        expired = [sid for sid, record in self._sessions.items() if record.idle_ms(now) > self.ttl_ms]
        if not expired:
            return 0
        await self._forget(*expired)
        for sid in expired:
            del self._sessions[sid]
        logger.info("Purged expired sessions", partition=self.partition, count=len(expired))
        return len(expired)

    def is_empty(self) -> bool:
        return not self._sessions

    def _new_id(self) -> str:
        session_id = generate_session_id()
        while session_id in self._sessions:
            session_id = generate_session_id()
        return session_id

    async def create(self, user_id: Optional[str] = None,
                     data: Optional[Dict[str, Any]] = None) -> SessionRecord:
        async with self.serialized():
            now = self.clock.now()
            record = SessionRecord(
                id=self._new_id(),
                created_at=now,
                updated_at=now,
                user_id=user_id,
                data=dict(data or {}),
            )
            logger.debug("Session created", partition=self.partition, session_id=record.id)
            return await self._replace(record)

    def _touched(self, record: SessionRecord, **changes: Any) -> SessionRecord:
        updated_at = max(self.clock.now(), record.created_at, record.updated_at)
        return record.model_copy(update={"updated_at": updated_at, **changes}, deep=True)

    async def _replace(self, record: SessionRecord) -> SessionRecord:
        await self._persist(record.id, record.to_json())
        self._sessions[record.id] = record
        return record.model_copy(deep=True)

    async def get(self, session_id: str) -> SessionRecord:
        """Return a record and slide its expiration window."""
        async with self.serialized():
            record = self._sessions.get(session_id)
            if record is None:
                raise NotFoundError("Session not found")
            return await self._replace(self._touched(record))

    async def update(self, session_id: str, data: Dict[str, Any]) -> SessionRecord:
        """Shallow-merge ``data`` into the record's data."""
        async with self.serialized():
            record = self._sessions.get(session_id)
            if record is None:
                raise NotFoundError("Session not found")
            return await self._replace(self._touched(record, data={**record.data, **data}))

    async def delete(self, session_id: str) -> bool:
        async with self.serialized():
            if session_id not in self._sessions:
                return False
            await self._forget(session_id)
            del self._sessions[session_id]
            logger.debug("Session deleted", partition=self.partition, session_id=session_id)
            return True

    async def sweep(self) -> int:
        """Purge idle records. Returns how many were removed."""
        async with self.serialized():
            return await self._purge_expired()

    async def count(self) -> int:
        async with self.serialized():
            return len(self._sessions)
