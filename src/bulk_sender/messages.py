"""
Send REST API — deliver one formatted message to a contact list.
"""

from typing import Any
from urllib.parse import quote

from pydantic import ValidationError

from bulk_sender.errors import BulkSenderError, SendError
from bulk_sender.models.message import SendRequest, SendResult
from bulk_sender.transport.http import HttpClient


class MessagesAPI:
    def __init__(self, http: HttpClient):
        self._http = http

    async def send(self, identity: str, contacts: list[Any], message: str) -> SendResult:
        """Send an already formatted message. Returns the delivery count."""
        body = SendRequest(contacts=contacts, message=message).model_dump()
        try:
            data = await self._http.post(f"/send/{quote(identity, safe='')}", body)
            return SendResult.model_validate(data)
        except BulkSenderError as e:
            raise SendError(f"Failed to send messages: {e}", code=e.code)
        except ValidationError as e:
            raise SendError(f"Malformed send reply: {e}", code="invalid_response")
