"""Protocol engine seam.

The transport layer only moves messages; whatever interprets them (tool
listing, tool calls) plugs in here through the container.
"""

from typing import Any, Protocol

from core.logging import get_logger
from services.transport.sse import SseTransport

logger = get_logger(__name__)


class ProtocolEngine(Protocol):
    async def connect(self, transport: SseTransport) -> None:
        """Attach to a freshly opened stream."""
        ...

    async def handle_message(self, transport: SseTransport, message: Any) -> None:
        ...


class LoopbackEngine:
    """Relays every received message back over the session's stream."""

    async def connect(self, transport: SseTransport) -> None:
        async def on_message(message: Any) -> None:
            await self.handle_message(transport, message)

        transport.on_message = on_message
        transport.start()
        logger.debug("Engine connected", session_id=transport.session_id)

    async def handle_message(self, transport: SseTransport, message: Any) -> None:
        transport.send(message)
