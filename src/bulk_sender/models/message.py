"""
Contacts upload and send models.
"""

from typing import Any

from pydantic import BaseModel


class UploadResult(BaseModel):
    """POST /upload/{identity} response"""
    contacts: list[Any]


class SendRequest(BaseModel):
    contacts: list[Any]
    message: str


class SendResult(BaseModel):
    """POST /send/{identity} response"""
    count: int
