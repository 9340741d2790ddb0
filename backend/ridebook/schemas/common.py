"""Response envelope shared by the booking endpoints."""

from typing import Generic, TypeVar

from pydantic import BaseModel

DataT = TypeVar("DataT")


class ApiResponse(BaseModel, Generic[DataT]):
    """``{success, message, data}`` wrapper used for every booking response."""

    success: bool = True
    message: str = ""
    data: DataT | None = None


def ok(data=None, message: str = "") -> dict:
    return {"success": True, "message": message, "data": data}


def failure(message: str, data: dict | None = None) -> dict:
    return {"success": False, "message": message, "data": data}
