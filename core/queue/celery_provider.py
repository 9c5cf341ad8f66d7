from __future__ import annotations

import logging
from typing import Any

from core.queue.provider import QueueProvider
from core.queue.types import QueueJobResult, QueueTaskKey

logger = logging.getLogger(__name__)

CELERY_DISPATCH_TASK = "celery_worker.run_async_task"


class CeleryQueueProvider(QueueProvider):
    backend_name = "celery"

    def __init__(self, celery_app: Any) -> None:
        self._celery_app = celery_app

    def enqueue(self, task_key: QueueTaskKey, payload: dict[str, Any]) -> QueueJobResult:
        result = self._celery_app.send_task(CELERY_DISPATCH_TASK, args=[str(task_key), payload])
        logger.debug("Queued task %s as %s", task_key, result.id)
        return QueueJobResult(task_id=result.id, backend=self.backend_name, status="queued")
