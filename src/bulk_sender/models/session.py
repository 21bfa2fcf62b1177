"""
Session models — authentication lifecycle and status-query responses.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel


class SessionState(str, Enum):
    INITIALIZING = "initializing"
    AWAITING_SCAN = "awaiting_scan"
    AUTHENTICATED = "authenticated"


class SessionStatus(BaseModel):
    """GET /qr/{identity} response"""
    status: str  # "authenticated" | "not_authenticated"
    qr: Optional[str] = None  # data URL of the pairing QR image

    @property
    def authenticated(self) -> bool:
        return self.status == "authenticated"
