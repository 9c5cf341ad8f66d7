from core.queue.manager import QueueManager
from core.queue.tasks import execute_registered_task, register_task, task

__all__ = [
    "QueueManager",
    "execute_registered_task",
    "register_task",
    "task",
]
