"""Server-sent-event stream for one session.

Frames are queued and drained by ``events()``, which is handed to a
``StreamingResponse``. When the response stops iterating (client gone,
explicit close, shutdown) the transport closes and runs its close hooks once.
"""

import asyncio
from typing import Any, AsyncIterator, Awaitable, Callable, List, Optional, Union

import orjson

from core.errors import TransportError, ValidationError
from core.logging import get_logger

logger = get_logger(__name__)

MessageHandler = Callable[[Any], Awaitable[None]]
CloseHook = Callable[[], None]


def format_event(event: str, data: str) -> str:
    lines = "".join(f"data: {line}\n" for line in data.split("\n"))
    return f"event: {event}\n{lines}\n"


class SseTransport:
    """Outbound event stream plus inbound message hand-off."""

    def __init__(self, session_id: str, endpoint: str):
        self.session_id = session_id
        self.endpoint = endpoint
        self.on_message: Optional[MessageHandler] = None
        self.frames_written = 0
        self._queue: "asyncio.Queue[Optional[str]]" = asyncio.Queue()
        self._closed = False
        self._close_hooks: List[CloseHook] = []

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def message_endpoint(self) -> str:
        return f"{self.endpoint}?sessionId={self.session_id}"

    def add_close_hook(self, hook: CloseHook) -> None:
        self._close_hooks.append(hook)

    def write(self, frame: str) -> None:
        """Queue a raw frame. Raises TransportError once the stream is closed."""
        if self._closed:
            raise TransportError(f"Stream closed for session {self.session_id}")
        self._queue.put_nowait(frame)
        self.frames_written += 1

    def send_event(self, event: str, data: str) -> None:
        self.write(format_event(event, data))

    def send(self, message: Any) -> None:
        """Send a protocol message to the client."""
        self.send_event("message", orjson.dumps(message).decode())

    def start(self) -> None:
        """Announce where the client must POST its messages."""
        self.send_event("endpoint", self.message_endpoint)

    async def handle_post_message(self, body: Union[bytes, str, Any]) -> None:
        """Decode a POSTed message and pass it to the connected handler."""
        if self._closed:
            raise TransportError(f"Stream closed for session {self.session_id}")
        if self.on_message is None:
            raise TransportError(f"No message handler connected for session {self.session_id}")
        if isinstance(body, (bytes, str)):
            try:
                message = orjson.loads(body)
            except orjson.JSONDecodeError as e:
                raise ValidationError("Invalid message") from e
        else:
            message = body
        await self.on_message(message)

    def close(self) -> None:
        """Close the stream. Safe to call any number of times."""
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(None)
        for hook in self._close_hooks:
            try:
                hook()
            except Exception as e:
                logger.error("Close hook failed", session_id=self.session_id, error=str(e), exc_info=True)

    async def events(self) -> AsyncIterator[str]:
        """Yield queued frames until the stream closes."""
        try:
            while True:
                frame = await self._queue.get()
                if frame is None:
                    break
                yield frame
        finally:
            self.close()
