from __future__ import annotations

from enum import Enum

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, Field, model_validator


class FileEntityType(str, Enum):
    USER = "user"
    EVENT = "event"
    EVENT_REPORT = "event_report"


class FileType(str, Enum):
    PHOTO = "photo"
    VIDEO = "video"
    DOCUMENT = "document"
    PORTFOLIO = "portfolio"
    PAYMENT_PROOF = "payment_proof"
    OTHER = "other"


class FileCreate(BaseModel):
    entity_type: FileEntityType
    entity_id: str
    owner_id: str
    event_id: str | None = None
    file_type: FileType
    category: str | None = None
    file_name: str
    mime_type: str
    file_size: int
    file_id: str
    file_link: str
    backend_id: str
    uploaded_at: int
    deleted_at: int | None = None
    last_verified_at: int | None = None


class FileOut(FileCreate):
    id: str = Field(alias="_id")

    @model_validator(mode="before")
    @classmethod
    def convert_objectid(cls, values):
        if isinstance(values, dict) and isinstance(values.get("_id"), ObjectId):
            values["_id"] = str(values["_id"])
        return values

    model_config = ConfigDict(populate_by_name=True)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


class IntegrityReport(BaseModel):
    checked: int = 0
    missing: int = 0
    errors: int = 0


class PurgeReport(BaseModel):
    purged: int = 0
    failed: int = 0
