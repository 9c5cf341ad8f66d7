from __future__ import annotations

import time

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, Field, model_validator


class NotificationCreate(BaseModel):
    user_id: str
    type: str = "alert"
    message: str
    is_read: bool = False
    created_at: int = Field(default_factory=lambda: int(time.time()))


class NotificationOut(NotificationCreate):
    id: str = Field(alias="_id")

    @model_validator(mode="before")
    @classmethod
    def convert_objectid(cls, values):
        if isinstance(values, dict) and isinstance(values.get("_id"), ObjectId):
            values["_id"] = str(values["_id"])
        return values

    model_config = ConfigDict(populate_by_name=True)
