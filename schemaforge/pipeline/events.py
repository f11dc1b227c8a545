"""
Post-Success Events

The orchestrator publishes a GenerationSucceeded event after a generation has
been committed. Listeners run as background tasks; their failures are logged
and never reach the generation result.
"""

import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Set

from ..database.repository import RecordStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GenerationSucceeded:
    record_id: str
    account_id: str
    url: str
    final_type: Optional[str]
    credits_used: int = 0


Listener = Callable[[GenerationSucceeded], Any]


class EventBus:
    """
    Fire-and-forget dispatcher for post-success notifications.

    Usage:
        bus = EventBus()
        bus.subscribe(LibraryRecorder(store))
        bus.publish(GenerationSucceeded(...))
    """

    def __init__(self):
        self._listeners: List[Listener] = []
        self._tasks: Set[asyncio.Task] = set()

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def publish(self, event: GenerationSucceeded) -> None:
        """Schedule every listener; returns immediately."""
        for listener in self._listeners:
            task = asyncio.create_task(self._run(listener, event))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def drain(self) -> None:
        """Wait for scheduled listeners (shutdown and tests)."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    @staticmethod
    async def _run(listener: Listener, event: GenerationSucceeded) -> None:
        name = getattr(listener, "__name__", type(listener).__name__)
        try:
            result = listener(event)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.warning(f"Post-success listener {name} failed for {event.record_id}: {e}")


class LibraryRecorder:
    """Keeps the account's URL library current after each successful generation."""

    def __init__(self, store: RecordStore):
        self.store = store

    async def __call__(self, event: GenerationSucceeded) -> None:
        await asyncio.to_thread(
            self.store.upsert_library_url, event.account_id, event.url, event.final_type
        )
        logger.debug(f"Library updated for {event.url}")
