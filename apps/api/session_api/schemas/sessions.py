from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class SessionCreateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    # Kept as a raw string so a malformed value reaches the allocator's own
    # validation and gets its 400 instead of a generic 422.
    expires_at: str | None = Field(default=None, alias="expiresAt")
    payload: dict[str, Any] | None = None


class SessionCreateResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    code: str
    expires_at: str = Field(alias="expiresAt")


class SessionRecordOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    code: str
    created_at: str = Field(alias="createdAt")
    expires_at: str = Field(alias="expiresAt")
    payload: dict[str, Any] | None = None
