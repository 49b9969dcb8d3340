"""Transport package.

Session-keyed server-sent-event streams for both MCP transport variants:
- SseTransport: one outbound stream plus inbound message hand-off
- TransportRegistry: process-local session id -> stream map
- KeepAliveScheduler: one heartbeat timer per bound session
- TransportManager: single cleanup path keeping the two in step
"""

from .sse import SseTransport, format_event
from .registry import TransportBinding, TransportRegistry
from .keepalive import KeepAliveScheduler
from .manager import TransportManager

__all__ = [
    "SseTransport",
    "format_event",
    "TransportBinding",
    "TransportRegistry",
    "KeepAliveScheduler",
    "TransportManager",
]
