"""Process-local registry of open transport bindings.

Holds at most one binding per session id. The map itself can be injected,
which keeps the registry free of module globals and easy to inspect in tests.
"""

import threading
from dataclasses import dataclass
from typing import Dict, List, Optional

from services.transport.sse import SseTransport


@dataclass
class TransportBinding:
    session_id: str
    transport: SseTransport
    created_at: int


class TransportRegistry:
    """Session id -> open stream. Only map mutation is locked, never stream I/O."""

    def __init__(self, bindings: Optional[Dict[str, TransportBinding]] = None):
        self._bindings: Dict[str, TransportBinding] = bindings if bindings is not None else {}
        self._lock = threading.RLock()

    def bind(self, binding: TransportBinding) -> Optional[TransportBinding]:
        """Insert a binding, returning the one it replaced, if any."""
        with self._lock:
            replaced = self._bindings.get(binding.session_id)
            self._bindings[binding.session_id] = binding
            return replaced

    def get(self, session_id: str) -> Optional[TransportBinding]:
        return self._bindings.get(session_id)

    def remove(self, session_id: str, transport: Optional[SseTransport] = None) -> Optional[TransportBinding]:
        """Remove a binding.

        With ``transport`` given, the entry is removed only if it still holds
        that transport, so a replaced stream cannot evict its successor.
        """
        with self._lock:
            binding = self._bindings.get(session_id)
            if binding is None:
                return None
            if transport is not None and binding.transport is not transport:
                return None
            del self._bindings[session_id]
            return binding

    def session_ids(self) -> List[str]:
        with self._lock:
            return list(self._bindings)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._bindings

    def __len__(self) -> int:
        return len(self._bindings)
