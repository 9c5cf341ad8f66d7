from core.queue.tasks import task
from core.storage.notifier import NOTIFICATION_TASK_KEY
from repositories.notification_repo import create_notification
from schemas.notification_schema import NotificationCreate


@task(NOTIFICATION_TASK_KEY)
async def deliver_notification_task(user_id: str, type: str, message: str) -> str:
    notification = await create_notification(NotificationCreate(user_id=user_id, type=type, message=message))
    return notification.id
