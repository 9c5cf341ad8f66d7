from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Protocol

from core.queue.manager import QueueManager
from core.storage.types import AdminRecipient

AdminSource = Callable[[], Awaitable[list[AdminRecipient]]]

NOTIFICATION_TASK_KEY = "deliver_notification"


class Notifier(Protocol):
    async def notify(self, recipient_id: str, message: str) -> None:
        ...


class QueueNotifier(Notifier):
    """Hands alert messages to the notification queue."""

    def __init__(self, queue: QueueManager, *, notification_type: str = "alert", timeout_seconds: float = 10) -> None:
        self._queue = queue
        self._notification_type = notification_type
        self._timeout = timeout_seconds

    async def notify(self, recipient_id: str, message: str) -> None:
        payload = {"user_id": recipient_id, "type": self._notification_type, "message": message}
        await asyncio.wait_for(
            asyncio.to_thread(self._queue.enqueue, NOTIFICATION_TASK_KEY, payload),
            timeout=self._timeout,
        )
