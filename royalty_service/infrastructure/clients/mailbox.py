"""Gmail REST client for discovering and downloading statement attachments"""

import base64
import httpx
from typing import Any, Dict, Iterator, List, Optional
from royalty_service.config import Settings
from royalty_service.domain.models import AttachmentRef, HarvestedAttachment
from royalty_service.domain.exceptions import MailboxAPIError

CSV_MIME_TYPES = {"text/csv", "application/csv"}


def decode_base64url(data: str) -> bytes:
    """Decode Gmail's unpadded base64url payloads"""
    return base64.urlsafe_b64decode(data + "=" * (-len(data) % 4))


def _walk_parts(part: Dict[str, Any]) -> Iterator[Dict[str, Any]]:
    yield part
    for child in part.get("parts") or []:
        yield from _walk_parts(child)


def _header(headers: List[Dict[str, str]], name: str) -> Optional[str]:
    for header in headers:
        if header.get("name", "").lower() == name.lower():
            return header.get("value")
    return None


class MailboxClient:
    """
    Client for a user's Gmail mailbox.

    OAuth is handled upstream; the client only carries the bearer token it is
    given. All methods raise MailboxAPIError on transport or payload errors.
    """

    def __init__(
        self,
        access_token: str,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.access_token = access_token
        self.base_url = settings.gmail_api_base.rstrip("/")
        self.query = settings.gmail_search_query
        self.max_messages = settings.gmail_max_messages
        self.timeout = settings.http_timeout_seconds
        self.transport = transport

    async def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        async with httpx.AsyncClient(
            timeout=self.timeout,
            transport=self.transport,
            headers={"Authorization": f"Bearer {self.access_token}"},
        ) as client:
            try:
                response = await client.get(f"{self.base_url}{path}", params=params)
                response.raise_for_status()
                return response.json()
            except httpx.TimeoutException as e:
                raise MailboxAPIError(f"Mailbox API timeout after {self.timeout}s") from e
            except httpx.HTTPStatusError as e:
                raise MailboxAPIError(f"Mailbox API error: {e.response.status_code}") from e
            except httpx.RequestError as e:
                raise MailboxAPIError(f"Mailbox API unreachable: {e}") from e
            except ValueError as e:
                raise MailboxAPIError(f"Invalid response from mailbox API: {e}") from e

    async def list_message_ids(self) -> List[str]:
        """IDs of messages matching the statement search query"""
        data = await self._get("/messages", params={"q": self.query, "maxResults": self.max_messages})
        return [m["id"] for m in data.get("messages") or [] if m.get("id")]

    async def get_attachment_refs(self, message_id: str) -> List[AttachmentRef]:
        """CSV-typed attachments of one message"""
        message = await self._get(f"/messages/{message_id}", params={"format": "full"})
        payload = message.get("payload") or {}
        headers = payload.get("headers") or []
        sender = _header(headers, "From")
        subject = _header(headers, "Subject")

        refs = []
        for part in _walk_parts(payload):
            filename = part.get("filename") or ""
            attachment_id = (part.get("body") or {}).get("attachmentId")
            is_csv = filename.lower().endswith(".csv") or part.get("mimeType") in CSV_MIME_TYPES
            if filename and attachment_id and is_csv:
                refs.append(
                    AttachmentRef(
                        message_id=message_id,
                        attachment_id=attachment_id,
                        filename=filename,
                        sender=sender,
                        subject=subject,
                        part_id=part.get("partId"),
                    )
                )
        return refs

    async def fetch_attachment(self, ref: AttachmentRef) -> HarvestedAttachment:
        """Download and decode one attachment"""
        data = await self._get(f"/messages/{ref.message_id}/attachments/{ref.attachment_id}")
        encoded = data.get("data")
        if not encoded:
            raise MailboxAPIError(f"Attachment {ref.filename} has no data")

        try:
            content = decode_base64url(encoded)
        except (ValueError, TypeError) as e:
            raise MailboxAPIError(f"Invalid attachment encoding for {ref.filename}: {e}") from e

        return HarvestedAttachment(
            message_id=ref.message_id,
            attachment_id=ref.attachment_id,
            filename=ref.filename,
            sender=ref.sender,
            subject=ref.subject,
            part_id=ref.part_id,
            content=content,
        )
