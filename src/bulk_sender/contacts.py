"""
Contacts REST API — CSV upload, parsed server-side.
"""

from typing import Any
from urllib.parse import quote

from pydantic import ValidationError

from bulk_sender.errors import BulkSenderError, UploadError
from bulk_sender.models.message import UploadResult
from bulk_sender.transport.http import HttpClient


class ContactsAPI:
    def __init__(self, http: HttpClient):
        self._http = http

    async def upload(self, identity: str, file_path: str) -> list[Any]:
        """Upload a contacts CSV and return the contacts the backend parsed from it."""
        try:
            data = await self._http.upload(f"/upload/{quote(identity, safe='')}", file_path)
            return UploadResult.model_validate(data).contacts
        except BulkSenderError as e:
            raise UploadError(f"Failed to upload contacts: {e}", code=e.code)
        except OSError as e:
            raise UploadError(f"Failed to upload contacts: {e}")
        except ValidationError as e:
            raise UploadError(f"Malformed upload reply: {e}", code="invalid_response")
