"""Injectable time source.

Timestamps are epoch milliseconds. Components never call ``time`` or
``asyncio.sleep`` directly so tests can drive them with a manual clock.
"""

import asyncio
import time
from typing import Protocol


class Clock(Protocol):
    def now(self) -> int:
        """Current time in epoch milliseconds."""
        ...

    async def sleep(self, seconds: float) -> None:
        ...


class SystemClock:
    """Wall clock backed by ``time.time`` and ``asyncio.sleep``."""

    def now(self) -> int:
        return int(time.time() * 1000)

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)
