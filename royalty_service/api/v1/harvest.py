"""/v1/harvest - import statements from email attachments"""

import base64
import binascii
import logging
from fastapi import APIRouter, Depends, HTTPException, Request

from royalty_service.api.dependencies import (
    get_mailbox_client_factory,
    get_request_id,
    get_statement_service,
    get_user_id,
)
from royalty_service.api.v1.schemas import (
    AttachmentHarvestRequest,
    GmailHarvestRequest,
    HarvestItemSchema,
    HarvestResponse,
)
from royalty_service.domain.exceptions import MailboxAPIError
from royalty_service.domain.models import HarvestedAttachment, HarvestSummary
from royalty_service.services.harvest import HarvestService
from royalty_service.services.statements import StatementService

router = APIRouter()


def _to_response(summary: HarvestSummary) -> HarvestResponse:
    return HarvestResponse(
        success=summary.success,
        statements_created=summary.statements_created,
        entries_created=summary.entries_created,
        duplicates_skipped=summary.duplicates_skipped,
        errors=summary.errors,
        outcomes=[
            HarvestItemSchema(
                message_id=o.message_id,
                filename=o.filename,
                status=o.status,
                detail=o.detail,
                entries_created=o.entries_created,
            )
            for o in summary.outcomes
        ],
    )


@router.post("/harvest/gmail", response_model=HarvestResponse)
async def harvest_gmail(
    request_body: GmailHarvestRequest,
    request: Request,
    user_id: str = Depends(get_user_id),
    service: StatementService = Depends(get_statement_service),
    mailbox_factory=Depends(get_mailbox_client_factory),
):
    """
    Pull CSV statements from the user's Gmail and ingest them.

    Flow:
    1. List messages matching the statement search query
    2. Skip attachments already imported
    3. Download, parse and store the rest, collecting per-file errors
    """
    harvester = HarvestService(service, mailbox_factory(request_body.access_token))

    try:
        summary = await harvester.harvest_mailbox(user_id)
    except MailboxAPIError as e:
        logging.error(f"Mailbox harvest failed: {e}", extra={"request_id": get_request_id(request)})
        raise HTTPException(status_code=503, detail="Mailbox service unavailable")

    return _to_response(summary)


@router.post("/harvest/attachments", response_model=HarvestResponse)
def harvest_attachments(
    request_body: AttachmentHarvestRequest,
    user_id: str = Depends(get_user_id),
    service: StatementService = Depends(get_statement_service),
):
    """Ingest attachments a caller already downloaded (base64 content)"""
    attachments = []
    for item in request_body.attachments:
        try:
            content = base64.b64decode(item.content_base64, validate=True)
        except (binascii.Error, ValueError):
            raise HTTPException(status_code=422, detail=f"Invalid base64 content for {item.filename}")

        attachments.append(
            HarvestedAttachment(
                message_id=item.message_id,
                attachment_id=item.attachment_id,
                filename=item.filename,
                sender=item.sender,
                subject=item.subject,
                part_id=item.part_id,
                content=content,
            )
        )

    summary = HarvestService(service).ingest_attachments(user_id, attachments)
    return _to_response(summary)
