"""Mailbox harvest - turn emailed CSV statements into ledger entries"""

import logging
from typing import Iterable, Optional

from royalty_service.domain.exceptions import MailboxAPIError
from royalty_service.domain.models import HarvestedAttachment, HarvestItemOutcome, HarvestSummary
from royalty_service.infrastructure.clients.mailbox import MailboxClient
from royalty_service.infrastructure.observability.logging import log_harvest
from royalty_service.infrastructure.observability.metrics import (
    harvest_attachment_counter,
    mailbox_failures_counter,
)
from royalty_service.services.statements import StatementService


def decode_content(content: bytes) -> str:
    """Decode attachment bytes, trying UTF-8 (with and without BOM) first"""
    for encoding in ("utf-8-sig", "utf-8"):
        try:
            return content.decode(encoding)
        except UnicodeDecodeError:
            continue
    # latin-1 never fails
    return content.decode("latin-1")


def is_csv_filename(filename: str) -> bool:
    return filename.lower().endswith(".csv")


class HarvestService:
    """
    Feeds mailbox attachments through the statement pipeline.

    One bad attachment never aborts a run: failures are collected in the
    returned HarvestSummary and the loop moves on.
    """

    def __init__(self, statements: StatementService, mailbox: Optional[MailboxClient] = None):
        self.statements = statements
        self.mailbox = mailbox

    def ingest_attachments(self, user_id: str, attachments: Iterable[HarvestedAttachment]) -> HarvestSummary:
        """Ingest attachments that were already downloaded by the caller"""
        summary = HarvestSummary()
        for attachment in attachments:
            self._ingest_one(user_id, attachment, summary)

        self._finish(user_id, summary)
        return summary

    async def harvest_mailbox(self, user_id: str) -> HarvestSummary:
        """
        Discover, download and ingest statement attachments from the mailbox.

        Attachments already stored for this user are skipped before download.
        Failing to list messages is reported as a single summary error.
        """
        if self.mailbox is None:
            raise MailboxAPIError("No mailbox client configured")

        summary = HarvestSummary()

        try:
            message_ids = await self.mailbox.list_message_ids()
        except MailboxAPIError as e:
            mailbox_failures_counter.inc()
            logging.error(f"Mailbox listing failed: {e}", extra={"user_id": user_id})
            summary.errors.append(str(e))
            self._finish(user_id, summary)
            return summary

        for message_id in message_ids:
            try:
                refs = await self.mailbox.get_attachment_refs(message_id)
            except MailboxAPIError as e:
                mailbox_failures_counter.inc()
                logging.warning(f"Skipping message {message_id}: {e}", extra={"user_id": user_id})
                summary.errors.append(f"Failed to read message {message_id}: {e}")
                continue

            for ref in refs:
                if not is_csv_filename(ref.filename):
                    self._skip(summary, ref.message_id, ref.filename, "Not a CSV file")
                    continue

                if self.statements.is_harvested(user_id, ref.dedup_key):
                    self._duplicate(summary, ref.message_id, ref.filename)
                    continue

                try:
                    attachment = await self.mailbox.fetch_attachment(ref)
                except MailboxAPIError as e:
                    mailbox_failures_counter.inc()
                    harvest_attachment_counter.labels(outcome="failed").inc()
                    summary.errors.append(f"Failed to download {ref.filename}: {e}")
                    summary.outcomes.append(
                        HarvestItemOutcome(message_id=ref.message_id, filename=ref.filename, status="failed", detail=str(e))
                    )
                    continue

                self._ingest_one(user_id, attachment, summary)

        self._finish(user_id, summary)
        return summary

    def _ingest_one(self, user_id: str, attachment: HarvestedAttachment, summary: HarvestSummary) -> None:
        if not is_csv_filename(attachment.filename):
            self._skip(summary, attachment.message_id, attachment.filename, "Not a CSV file")
            return

        outcome = self.statements.create_from_harvest(user_id, attachment, decode_content(attachment.content))

        if outcome.duplicate:
            self._duplicate(summary, attachment.message_id, attachment.filename)
            return

        if not outcome.success:
            self._fail(summary, attachment, outcome.error or "Unknown error")
            return

        summary.statements_created += 1
        summary.entries_created += outcome.entries_created
        harvest_attachment_counter.labels(outcome="created").inc()
        summary.outcomes.append(
            HarvestItemOutcome(
                message_id=attachment.message_id,
                filename=attachment.filename,
                status="created",
                entries_created=outcome.entries_created,
            )
        )

    def _skip(self, summary: HarvestSummary, message_id: str, filename: str, reason: str) -> None:
        harvest_attachment_counter.labels(outcome="skipped").inc()
        summary.outcomes.append(HarvestItemOutcome(message_id=message_id, filename=filename, status="skipped", detail=reason))

    def _duplicate(self, summary: HarvestSummary, message_id: str, filename: str) -> None:
        summary.duplicates_skipped += 1
        harvest_attachment_counter.labels(outcome="duplicate").inc()
        summary.outcomes.append(HarvestItemOutcome(message_id=message_id, filename=filename, status="duplicate"))

    def _fail(self, summary: HarvestSummary, attachment: HarvestedAttachment, detail: str) -> None:
        harvest_attachment_counter.labels(outcome="failed").inc()
        summary.errors.append(f"Failed to process {attachment.filename}: {detail}")
        summary.outcomes.append(
            HarvestItemOutcome(
                message_id=attachment.message_id,
                filename=attachment.filename,
                status="failed",
                detail=detail,
            )
        )

    def _finish(self, user_id: str, summary: HarvestSummary) -> None:
        log_harvest(
            user_id,
            summary.statements_created,
            summary.entries_created,
            summary.duplicates_skipped,
            len(summary.errors),
        )
