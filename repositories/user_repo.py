from __future__ import annotations

from core.database import db
from core.storage.types import AdminRecipient


async def list_admin_recipients() -> list[AdminRecipient]:
    cursor = db.users.find({"role": "admin"}, {"_id": 1, "email": 1})
    return [AdminRecipient(id=str(row["_id"]), email=row.get("email")) async for row in cursor]
