from __future__ import annotations

from typing import Generic, TypeVar

from pydantic import BaseModel

from owls_portal.core.errors import ErrorCode

DataT = TypeVar("DataT")


class Envelope(BaseModel, Generic[DataT]):
    code: str = ErrorCode.SUCCESS.value
    message: str = "Success"
    data: DataT | None = None


class HealthStatus(BaseModel):
    status: str
    version: str
    environment: str
    discord_configured: bool


def success_response(data: BaseModel | None = None, message: str = "Success") -> dict:
    payload = data.model_dump() if data is not None else None
    return {"code": ErrorCode.SUCCESS.value, "message": message, "data": payload}
