"""
Session REST API — registration and authentication status.
"""

from __future__ import annotations

from typing import Any
from urllib.parse import quote

from pydantic import ValidationError

from bulk_sender.errors import BulkSenderError
from bulk_sender.models.session import SessionStatus
from bulk_sender.transport.http import HttpClient


class SessionsAPI:
    def __init__(self, http: HttpClient):
        self._http = http

    async def init_session(self, identity: str) -> Any:
        """Register an identity with the backend. No payload contract beyond HTTP success."""
        return await self._http.post("/init-session", {"userId": identity}, allow_empty=True)

    async def get_status(self, identity: str) -> SessionStatus:
        """Query authentication status; carries the pairing QR while unauthenticated."""
        data = await self._http.get(f"/qr/{quote(identity, safe='')}")
        try:
            return SessionStatus.model_validate(data)
        except ValidationError as e:
            raise BulkSenderError("invalid_response", f"Malformed status reply: {e}")
