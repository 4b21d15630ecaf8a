"""Integration tests for mailbox harvesting"""

import asyncio
import base64
import httpx
import pytest
from unittest.mock import AsyncMock, MagicMock
from sqlalchemy.orm import Session

from royalty_service.config import Settings
from royalty_service.domain.exceptions import MailboxAPIError
from royalty_service.domain.models import AttachmentRef, HarvestedAttachment
from royalty_service.infrastructure.clients.mailbox import MailboxClient
from royalty_service.infrastructure.database.models import RawStatement
from royalty_service.services.harvest import HarvestService, decode_content
from royalty_service.services.statements import StatementService

USER_ID = "user_artist"


def _b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode().rstrip("=")


def _ref(message_id: str, filename: str = "statement.csv") -> AttachmentRef:
    return AttachmentRef(message_id=message_id, attachment_id=f"att-{message_id}", filename=filename)


def _fetched(ref: AttachmentRef, content: bytes) -> HarvestedAttachment:
    return HarvestedAttachment(
        message_id=ref.message_id,
        attachment_id=ref.attachment_id,
        filename=ref.filename,
        content=content,
    )


def test_decode_content_fallbacks():
    """Test BOM stripping and latin-1 fallback"""
    assert decode_content("\ufeffa,b".encode("utf-8")) == "a,b"
    assert decode_content("Café".encode("latin-1")) == "Café"


def test_ingest_attachments_collects_per_item_results(db: Session, distrokid_csv: str):
    """Test good, bad and non-CSV attachments are handled independently"""
    harvester = HarvestService(StatementService(db))
    attachments = [
        HarvestedAttachment(message_id="m1", attachment_id="a1", filename="dk.csv", content=distrokid_csv.encode()),
        HarvestedAttachment(message_id="m2", attachment_id="a2", filename="junk.csv", content=b"foo,bar\n1,2\n"),
        HarvestedAttachment(message_id="m3", attachment_id="a3", filename="scan.pdf", content=b"%PDF"),
    ]

    summary = harvester.ingest_attachments(USER_ID, attachments)

    assert summary.statements_created == 1
    assert summary.entries_created == 3
    assert summary.success is False
    assert len(summary.errors) == 1
    assert summary.errors[0].startswith("Failed to process junk.csv")
    assert [o.status for o in summary.outcomes] == ["created", "failed", "skipped"]


def test_ingest_attachments_is_idempotent(db: Session, distrokid_csv: str):
    """Test re-running a harvest over the same attachments creates nothing new"""
    harvester = HarvestService(StatementService(db))
    attachment = HarvestedAttachment(
        message_id="m1", attachment_id="a1", filename="dk.csv", content=distrokid_csv.encode()
    )

    harvester.ingest_attachments(USER_ID, [attachment])
    summary = harvester.ingest_attachments(USER_ID, [attachment])

    assert summary.statements_created == 0
    assert summary.duplicates_skipped == 1
    assert summary.success is True
    assert db.query(RawStatement).count() == 1


def test_harvest_mailbox_skips_known_and_failed_downloads(db: Session, distrokid_csv: str, template_csv: str):
    """Test dedup happens before download and a failed download does not stop the run"""
    statements = StatementService(db)
    known = _ref("m-known")
    statements.create_from_harvest(USER_ID, _fetched(known, distrokid_csv.encode()), distrokid_csv)

    fresh = _ref("m-fresh")
    broken = _ref("m-broken")

    mailbox = MagicMock(spec=MailboxClient)
    mailbox.list_message_ids = AsyncMock(return_value=["m-known", "m-fresh", "m-broken"])
    mailbox.get_attachment_refs = AsyncMock(side_effect=lambda message_id: [_ref(message_id)])

    async def fetch(ref):
        if ref.message_id == "m-broken":
            raise MailboxAPIError("Mailbox API error: 500")
        return _fetched(ref, template_csv.encode())

    mailbox.fetch_attachment = AsyncMock(side_effect=fetch)

    summary = asyncio.run(HarvestService(statements, mailbox).harvest_mailbox(USER_ID))

    assert summary.statements_created == 1
    assert summary.entries_created == 2
    assert summary.duplicates_skipped == 1
    assert summary.errors == ["Failed to download statement.csv: Mailbox API error: 500"]

    fetched_ids = [call.args[0].message_id for call in mailbox.fetch_attachment.await_args_list]
    assert fetched_ids == [fresh.message_id, broken.message_id]
    assert db.query(RawStatement).count() == 2


def test_harvest_mailbox_listing_failure_is_reported(db: Session):
    """Test an unreachable mailbox yields an error summary instead of raising"""
    mailbox = MagicMock(spec=MailboxClient)
    mailbox.list_message_ids = AsyncMock(side_effect=MailboxAPIError("Mailbox API timeout after 10.0s"))

    summary = asyncio.run(HarvestService(StatementService(db), mailbox).harvest_mailbox(USER_ID))

    assert summary.success is False
    assert summary.statements_created == 0
    assert summary.errors == ["Mailbox API timeout after 10.0s"]


def test_harvest_mailbox_requires_client(db: Session):
    """Test harvesting without a mailbox client is a configuration error"""
    with pytest.raises(MailboxAPIError):
        asyncio.run(HarvestService(StatementService(db)).harvest_mailbox(USER_ID))


def _gmail_handler(csv_bytes: bytes):
    # Gmail hands out a new attachmentId every time a message is read
    fetches = {"m1": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.headers["Authorization"] == "Bearer token-123"
        path = request.url.path

        if path.endswith("/messages"):
            return httpx.Response(200, json={"messages": [{"id": "m1"}]})
        if path.endswith("/messages/m1"):
            fetches["m1"] += 1
            attachment_id = f"ANGjdJ_{fetches['m1']}"
            return httpx.Response(
                200,
                json={
                    "id": "m1",
                    "payload": {
                        "partId": "",
                        "headers": [
                            {"name": "From", "value": "DistroKid <noreply@distrokid.com>"},
                            {"name": "Subject", "value": "Your earnings report"},
                        ],
                        "parts": [
                            {"partId": "0", "mimeType": "text/plain", "filename": "", "body": {"size": 10}},
                            {
                                "partId": "1",
                                "mimeType": "multipart/mixed",
                                "parts": [
                                    {
                                        "partId": "1.0",
                                        "mimeType": "text/csv",
                                        "filename": "earnings.csv",
                                        "body": {"attachmentId": attachment_id},
                                    },
                                    {
                                        "partId": "1.1",
                                        "mimeType": "application/pdf",
                                        "filename": "earnings.pdf",
                                        "body": {"attachmentId": f"{attachment_id}_pdf"},
                                    },
                                ],
                            },
                        ],
                    },
                },
            )
        if "/messages/m1/attachments/ANGjdJ_" in path:
            return httpx.Response(200, json={"data": _b64url(csv_bytes)})
        return httpx.Response(404)

    return handler


def test_mailbox_client_lists_and_fetches_csv_attachments(settings: Settings, distrokid_csv: str):
    """Test the Gmail client walks nested parts and decodes base64url data"""
    client = MailboxClient("token-123", settings, transport=httpx.MockTransport(_gmail_handler(distrokid_csv.encode())))

    async def run():
        ids = await client.list_message_ids()
        refs = await client.get_attachment_refs(ids[0])
        return refs, await client.fetch_attachment(refs[0])

    refs, attachment = asyncio.run(run())

    assert len(refs) == 1
    assert refs[0].filename == "earnings.csv"
    assert refs[0].sender == "DistroKid <noreply@distrokid.com>"
    assert refs[0].part_id == "1.0"
    assert refs[0].dedup_key == "m1:1.0"
    assert attachment.content == distrokid_csv.encode()


def test_mailbox_client_wraps_http_errors(settings: Settings):
    """Test error status codes become MailboxAPIError"""
    transport = httpx.MockTransport(lambda request: httpx.Response(401))
    client = MailboxClient("expired", settings, transport=transport)

    with pytest.raises(MailboxAPIError, match="401"):
        asyncio.run(client.list_message_ids())


def test_end_to_end_harvest_over_mock_gmail(db: Session, settings: Settings, distrokid_csv: str):
    """Test a full harvest run against a mocked Gmail API"""
    transport = httpx.MockTransport(_gmail_handler(distrokid_csv.encode()))
    harvester = HarvestService(StatementService(db), MailboxClient("token-123", settings, transport=transport))

    first = asyncio.run(harvester.harvest_mailbox(USER_ID))
    second = asyncio.run(harvester.harvest_mailbox(USER_ID))

    assert first.statements_created == 1
    assert first.entries_created == 3
    assert second.statements_created == 0
    assert second.duplicates_skipped == 1


def test_dedup_key_ignores_attachment_id():
    """Test the dedup key survives Gmail reissuing attachment ids"""
    first = AttachmentRef(message_id="m1", attachment_id="ANGjdJ_1", filename="earnings.csv", part_id="1.0")
    second = AttachmentRef(message_id="m1", attachment_id="ANGjdJ_2", filename="earnings.csv", part_id="1.0")
    no_part = AttachmentRef(message_id="m1", attachment_id="ANGjdJ_3", filename="earnings.csv")

    assert first.dedup_key == second.dedup_key == "m1:1.0"
    assert no_part.dedup_key == "m1:earnings.csv"


def test_second_harvest_with_reissued_attachment_ids_is_duplicate(db: Session, settings: Settings, distrokid_csv: str):
    """Test a re-run stores nothing new when listings return fresh attachment ids"""
    client = MailboxClient("token-123", settings, transport=httpx.MockTransport(_gmail_handler(distrokid_csv.encode())))
    harvester = HarvestService(StatementService(db), client)

    async def refs_twice():
        return await client.get_attachment_refs("m1"), await client.get_attachment_refs("m1")

    run_one_refs, run_two_refs = asyncio.run(refs_twice())
    assert run_one_refs[0].attachment_id != run_two_refs[0].attachment_id

    first = asyncio.run(harvester.harvest_mailbox(USER_ID))
    second = asyncio.run(harvester.harvest_mailbox(USER_ID))

    assert first.statements_created == 1
    assert second.statements_created == 0
    assert second.duplicates_skipped == 1
    assert db.query(RawStatement).count() == 1
