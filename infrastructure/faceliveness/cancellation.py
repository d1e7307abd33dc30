"""
Cooperative cancellation for the frame loop and polling waits.
"""

import asyncio
from typing import Awaitable, Callable

from .exceptions import SessionCancelledError

SleepFunc = Callable[[float], Awaitable[None]]


class CancellationToken:
    """Flag checked by cooperative tasks at every tick."""

    def __init__(self, name: str = 'session'):
        self.name = name
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise SessionCancelledError(f"{self.name} cancelled")

    def __repr__(self) -> str:
        return f"CancellationToken(name={self.name!r}, cancelled={self._cancelled})"


async def sleep_ms(sleep: SleepFunc, milliseconds: float) -> None:
    await sleep(milliseconds / 1000.0)


default_sleep: SleepFunc = asyncio.sleep
