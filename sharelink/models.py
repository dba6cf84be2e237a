from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class FileRecord(BaseModel):
    id: int
    owner_id: int
    name: str
    content_type: str
    size: int
    folder: str
    uploaded_at: datetime
    is_deleted: bool
    is_shared: bool


class FileListResponse(BaseModel):
    files: list[FileRecord]


class ShareLinkRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    # None -> default window, <= 0 -> never expires
    expiry_days: int | None = Field(default=None, alias="expiryDays")


class ShareLinkResponse(BaseModel):
    id: int
    token: str
    url: str
    expiry_date: datetime | None = Field(serialization_alias="expiryDate")


class ShareLinkRecord(BaseModel):
    id: int
    token: str
    file_id: int
    user_id: int
    created_at: datetime
    expiry_date: datetime | None


class ShareLinkListResponse(BaseModel):
    links: list[ShareLinkRecord]


class SharedFileResponse(BaseModel):
    file_id: int
    name: str
    content_type: str
    size: int
    content: str
    uploaded_at: datetime
    expiry_date: datetime | None
