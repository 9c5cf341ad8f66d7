from __future__ import annotations

from core.database import db
from schemas.notification_schema import NotificationCreate, NotificationOut


async def create_notification(notification: NotificationCreate) -> NotificationOut:
    result = await db.notifications.insert_one(notification.model_dump())
    stored = await db.notifications.find_one({"_id": result.inserted_id})
    return NotificationOut(**stored)  # type: ignore[arg-type]
