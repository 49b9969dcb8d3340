"""MCP transport routes.

Two wire variants share one session model:

Streamable HTTP (single endpoint):
    GET    /mcp  open the server-to-client event stream
    POST   /mcp  client message, session in the Mcp-Session-Id header
    DELETE /mcp  terminate the session's stream

Legacy HTTP+SSE (split endpoints):
    GET  /sse                 open the event stream
    POST /messages?sessionId  client message
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import ORJSONResponse, Response, StreamingResponse

from constants import (
    LEGACY_MESSAGES_ENDPOINT,
    LEGACY_SSE_ENDPOINT,
    MCP_ENDPOINT,
    SESSION_HEADER,
    SSE_HEADERS,
)
from core.container import container
from core.errors import MethodNotAllowedError, NotFoundError, ValidationError
from core.logging import get_logger, session_context
from services.transport import SseTransport, TransportManager

logger = get_logger(__name__)
router = APIRouter(tags=["mcp"])


def get_transport_manager() -> TransportManager:
    return container.transport_manager()


def new_stream_id() -> str:
    return str(uuid.uuid4())


def _event_stream(transport: SseTransport, session_header: Optional[str] = None) -> StreamingResponse:
    headers = dict(SSE_HEADERS)
    if session_header:
        headers[SESSION_HEADER] = session_header
    return StreamingResponse(transport.events(), media_type="text/event-stream", headers=headers)


async def _forward(manager: TransportManager, session_id: str, request: Request) -> Response:
    """Pass the request body to the bound stream and acknowledge it."""
    body = await request.body()
    with session_context(session_id):
        try:
            await manager.deliver(session_id, body)
        except (ValidationError, NotFoundError):
            raise
        except Exception as e:
            logger.error("Error handling message", error=str(e), exc_info=True)
            return ORJSONResponse(status_code=500, content={"error": "Error processing message"})
    return Response(content="Accepted", status_code=202)


# ============================================================================
# Streamable HTTP
# ============================================================================

@router.get(MCP_ENDPOINT)
async def open_stream(request: Request, manager: TransportManager = Depends(get_transport_manager)):
    """Open an event stream, reusing the caller's session id when given."""
    supplied = request.headers.get(SESSION_HEADER)
    session_id = supplied or new_stream_id()
    transport = await manager.open_stream(session_id, MCP_ENDPOINT)
    return _event_stream(transport, session_header=None if supplied else session_id)


@router.post(MCP_ENDPOINT)
async def post_message(request: Request, manager: TransportManager = Depends(get_transport_manager)):
    """Deliver a message, or treat an unbound session as initialization."""
    session_id = request.headers.get(SESSION_HEADER)
    if manager.is_bound(session_id):
        return await _forward(manager, session_id, request)

    # Initialization: hand out an id, no stream is opened here
    session_id = session_id or new_stream_id()
    logger.debug("Session initialization", session_id=session_id)
    return Response(status_code=202, headers={SESSION_HEADER: session_id})


@router.delete(MCP_ENDPOINT)
async def terminate_session(request: Request, manager: TransportManager = Depends(get_transport_manager)):
    """Tear down the session's stream. The durable session record is kept."""
    session_id = request.headers.get(SESSION_HEADER)
    if session_id and manager.terminate(session_id):
        return Response(status_code=202)
    return Response(status_code=404)


@router.api_route(MCP_ENDPOINT, methods=["PUT", "PATCH", "HEAD", "OPTIONS"], include_in_schema=False)
async def unsupported_method(request: Request):
    raise MethodNotAllowedError(f"Method {request.method} not allowed")


# ============================================================================
# Legacy HTTP+SSE
# ============================================================================

@router.get(LEGACY_SSE_ENDPOINT)
async def open_legacy_stream(manager: TransportManager = Depends(get_transport_manager)):
    """Open a legacy stream; clients learn their id from the endpoint event."""
    transport = await manager.open_stream(new_stream_id(), LEGACY_MESSAGES_ENDPOINT)
    return _event_stream(transport)


@router.post(LEGACY_MESSAGES_ENDPOINT)
async def post_legacy_message(
    request: Request,
    session_id: Optional[str] = Query(default=None, alias="sessionId"),
    manager: TransportManager = Depends(get_transport_manager)
):
    if not session_id:
        raise ValidationError("Missing sessionId parameter")
    if not manager.is_bound(session_id):
        logger.warning("No transport found", session_id=session_id)
        raise NotFoundError("No transport found for sessionId")
    return await _forward(manager, session_id, request)
