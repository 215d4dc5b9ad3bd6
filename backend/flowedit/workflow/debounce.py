"""
Debounced callbacks on the asyncio event loop.

A new ``trigger()`` before the timer fires resets it, so a burst of
mutations produces a single call. Without a running loop the call
stays pending until ``flush()`` (synchronous hosts and tests).
"""

from __future__ import annotations

import asyncio
from logging import getLogger
from typing import Callable, Optional

logger = getLogger(__name__)


class Debouncer:
    """Coalesce repeated triggers into one delayed callback."""

    def __init__(
        self,
        delay: float,
        callback: Callable[[], None],
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> None:
        self._delay = delay
        self._callback = callback
        self._loop = loop
        self._handle: Optional[asyncio.TimerHandle] = None
        self._pending = False

    @property
    def delay(self) -> float:
        return self._delay

    @property
    def pending(self) -> bool:
        return self._pending

    def trigger(self) -> None:
        """(Re)start the quiet period."""
        self._cancel_handle()
        self._pending = True
        loop = self._resolve_loop()
        if loop is not None:
            self._handle = loop.call_later(self._delay, self._fire)

    def flush(self) -> bool:
        """Run the pending callback now. Returns False if nothing was pending."""
        if not self._pending:
            return False
        self._cancel_handle()
        self._fire()
        return True

    def cancel(self) -> None:
        self._cancel_handle()
        self._pending = False

    # ── Internals ──

    def _fire(self) -> None:
        self._handle = None
        self._pending = False
        self._callback()

    def _cancel_handle(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _resolve_loop(self) -> Optional[asyncio.AbstractEventLoop]:
        if self._loop is not None and not self._loop.is_closed():
            return self._loop
        try:
            return asyncio.get_running_loop()
        except RuntimeError:
            return None
