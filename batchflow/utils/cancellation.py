from __future__ import annotations

import asyncio


class CancellationToken:
    """Cooperative cancellation flag polled by an execution loop."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    async def sleep(self, seconds: float) -> bool:
        """Sleep ``seconds`` or until cancelled. Return ``True`` when cancelled."""
        try:
            await asyncio.wait_for(self._event.wait(), seconds)
        except asyncio.TimeoutError:
            pass
        return self.cancelled
