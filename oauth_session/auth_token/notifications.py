"""Identity-change notifications.

Published whenever the signed-in subject may have changed (new sign-in with
a different subject, sign-out, reinstall cleanup). Consumers use it to drop
per-user caches and UI state.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import Any

IdentityChangeListener = Callable[[Any], None] | Callable[[Any], Awaitable[None]]


class IdentityChangeNotifier:
    """Fan-out of identity-change events to registered listeners.

    Sync listeners run inline; coroutine listeners are scheduled as retained
    tasks on the running loop. A failing listener is logged and never
    affects the publisher or other listeners.
    """

    def __init__(self) -> None:
        self._listeners: list[IdentityChangeListener] = []
        # Retained listener tasks (prevents premature GC of fire-and-forget work).
        self._tasks: set[asyncio.Task[Any]] = set()
        self.published_count = 0

    def subscribe(self, listener: IdentityChangeListener) -> Callable[[], None]:
        """Register a listener; returns a callable that unregisters it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            self.unsubscribe(listener)

        return _unsubscribe

    def unsubscribe(self, listener: IdentityChangeListener) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    def publish(self, sender: Any) -> None:
        """Notify every listener that the authenticated identity changed."""
        self.published_count += 1
        logging.info(
            f"🔔 Identity change published listeners={len(self._listeners)} sender={type(sender).__name__}"
        )
        for listener in list(self._listeners):
            try:
                result = listener(sender)
            except Exception as e:  # noqa: BLE001
                logging.warning(
                    f"⚠️ Identity change listener error type={type(e).__name__} error={str(e)}"
                )
                continue
            if inspect.isawaitable(result):
                self._retain(result)

    def _retain(self, awaitable: Awaitable[Any]) -> None:
        task: asyncio.Task[Any] = asyncio.ensure_future(awaitable)
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc:
            logging.warning(
                f"⚠️ Identity change listener task error type={type(exc).__name__} error={str(exc)}"
            )

    async def drain(self) -> None:
        """Wait for scheduled coroutine listeners to finish."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
