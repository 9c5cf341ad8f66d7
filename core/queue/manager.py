from __future__ import annotations

from typing import Any

from core.queue.provider import QueueProvider
from core.queue.types import QueueJobResult, QueueTaskKey


class QueueManager:
    def __init__(self, provider: QueueProvider) -> None:
        self._provider = provider

    def enqueue(self, task_key: str, payload: dict[str, Any]) -> QueueJobResult:
        return self._provider.enqueue(QueueTaskKey(task_key), payload)
