"""Statement ingestion service - parse, persist, delete and reprocess statements"""

import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from royalty_service.domain.exceptions import StatementNotFoundError, UnsupportedFormatError
from royalty_service.domain.models import HarvestedAttachment, ParseResult, RowError
from royalty_service.infrastructure.database.models import IncomeEntry, RawStatement
from royalty_service.infrastructure.database.repositories import IncomeRepository, StatementRepository
from royalty_service.infrastructure.observability.logging import log_statement_event
from royalty_service.infrastructure.observability.metrics import record_parse, record_statement
from royalty_service.parsers import parse_csv

NOT_FOUND = "Statement not found"
REPARSE_FAILED = "Failed to re-parse CSV"

# Failure reasons
INVALID = "invalid"
MISSING = "not_found"
ERROR = "error"


@dataclass
class StatementOutcome:
    """Result handed back to callers instead of raising"""

    success: bool
    statement_id: Optional[uuid.UUID] = None
    entries_created: int = 0
    error: Optional[str] = None
    parse_errors: List[RowError] = field(default_factory=list)
    parser: Optional[str] = None
    duplicate: bool = False
    reason: Optional[str] = None  # set on failure: invalid | not_found | error


def first_error_message(result: ParseResult) -> str:
    return result.errors[0].error if result.errors else "Unknown error"


class StatementService:
    """
    Turns raw CSV text into a RawStatement plus its IncomeEntry rows.

    Create, delete and reprocess each run in a single transaction on the given
    session and report failures through StatementOutcome instead of raising.
    """

    def __init__(self, db: Session):
        self.db = db
        self.statements = StatementRepository(db)
        self.income = IncomeRepository(db)

    def create_from_csv(self, user_id: str, content: str, file_name: str) -> StatementOutcome:
        """
        Create a statement from an uploaded CSV.

        On a parse failure the first row error becomes the user-facing message;
        the full list is still returned in ``parse_errors``.
        """
        return self._ingest(
            user_id=user_id,
            content=content,
            file_name=file_name,
            provider="manual_upload",
            source_system="upload",
            raw_payload={"csvContent": content, "fileName": file_name},
        )

    def create_from_harvest(self, user_id: str, attachment: HarvestedAttachment, content: str) -> StatementOutcome:
        """
        Create a statement from a mailbox attachment, skipping known attachments.

        Unlike uploads, a file that yields no entries is treated as a failure.
        """
        dedup_key = attachment.dedup_key
        if self.is_harvested(user_id, dedup_key):
            record_statement("email_csv", "duplicate")
            return StatementOutcome(success=True, duplicate=True)

        return self._ingest(
            user_id=user_id,
            content=content,
            file_name=attachment.filename,
            provider="gmail",
            source_system="email_csv",
            raw_payload={
                "csvContent": content,
                "fileName": attachment.filename,
                "messageId": attachment.message_id,
                "attachmentId": attachment.attachment_id,
                "partId": attachment.part_id,
                "from": attachment.sender,
                "subject": attachment.subject,
            },
            dedup_key=dedup_key,
            require_entries=True,
        )

    def _ingest(
        self,
        user_id: str,
        content: str,
        file_name: str,
        provider: str,
        source_system: str,
        raw_payload: Dict[str, Any],
        dedup_key: Optional[str] = None,
        require_entries: bool = False,
    ) -> StatementOutcome:
        start_time = time.time()

        try:
            result = parse_csv(content)
        except UnsupportedFormatError as e:
            record_statement(source_system, "unsupported")
            logging.warning(f"Unsupported statement format: {file_name}", extra={"user_id": user_id})
            return StatementOutcome(success=False, error=str(e), reason=INVALID)

        record_parse(result)

        if not result.success:
            record_statement(source_system, "parse_failed")
            return StatementOutcome(
                success=False,
                reason=INVALID,
                error=f"Failed to parse CSV: {first_error_message(result)}",
                parse_errors=result.errors,
                parser=result.metadata.parser,
            )

        if require_entries and not result.entries:
            record_statement(source_system, "parse_failed")
            return StatementOutcome(
                success=False,
                reason=INVALID,
                error="No entries found",
                parser=result.metadata.parser,
            )

        try:
            statement = self.statements.create_statement(
                user_id=user_id,
                provider=provider,
                source_system=source_system,
                raw_payload=raw_payload,
                file_name=file_name,
                file_size=len(content),
                parsed_entries_count=len(result.entries),
                dedup_key=dedup_key,
            )
            created = self.income.add_entries(user_id, statement.id, result.entries)
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            if dedup_key is not None:
                # Another run stored the same attachment first
                record_statement(source_system, "duplicate")
                return StatementOutcome(success=True, duplicate=True)
            logging.error(f"Integrity error storing {file_name}", extra={"user_id": user_id})
            record_statement(source_system, "error")
            return StatementOutcome(success=False, error="Failed to create statement", reason=ERROR)
        except SQLAlchemyError as e:
            self.db.rollback()
            logging.error(f"Database error storing {file_name}: {e}", extra={"user_id": user_id})
            record_statement(source_system, "error")
            return StatementOutcome(success=False, error="Failed to create statement", reason=ERROR)

        record_statement(source_system, "created")
        log_statement_event(
            "ingested",
            user_id,
            str(statement.id),
            created,
            (time.time() - start_time) * 1000,
            parser=result.metadata.parser,
            source_system=source_system,
        )

        return StatementOutcome(
            success=True,
            statement_id=statement.id,
            entries_created=created,
            parser=result.metadata.parser,
        )

    def delete(self, user_id: str, statement_id: uuid.UUID) -> StatementOutcome:
        """Delete a statement's entries, then the statement, scoped to the owner"""
        start_time = time.time()
        try:
            if self.statements.get_statement(user_id, statement_id) is None:
                return StatementOutcome(success=False, error=NOT_FOUND, reason=MISSING)

            removed = self.income.delete_for_statement(user_id, statement_id)
            self.statements.delete_statement(user_id, statement_id)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logging.error(f"Database error deleting statement: {e}", extra={"user_id": user_id})
            return StatementOutcome(success=False, error="Failed to delete statement", reason=ERROR)

        log_statement_event("deleted", user_id, str(statement_id), removed, (time.time() - start_time) * 1000)
        return StatementOutcome(success=True, statement_id=statement_id, entries_created=0)

    def reprocess(self, user_id: str, statement_id: uuid.UUID) -> StatementOutcome:
        """
        Re-derive a statement's entries from its stored CSV.

        Old entries are replaced and the entry count updated in one
        transaction, so a failed re-parse leaves the statement untouched.
        """
        start_time = time.time()
        try:
            statement = self.statements.get_statement(user_id, statement_id)
        except SQLAlchemyError as e:
            self.db.rollback()
            logging.error(f"Database error loading statement: {e}", extra={"user_id": user_id})
            return StatementOutcome(success=False, error="Failed to load statement", reason=ERROR)

        if statement is None:
            return StatementOutcome(success=False, error=NOT_FOUND, reason=MISSING)

        content = stored_csv(statement)
        if content is None:
            return StatementOutcome(success=False, error=REPARSE_FAILED, reason=INVALID)

        try:
            result = parse_csv(content)
        except UnsupportedFormatError:
            return StatementOutcome(success=False, error=REPARSE_FAILED, reason=INVALID)

        if not result.success:
            return StatementOutcome(
                success=False,
                reason=INVALID,
                error=REPARSE_FAILED,
                parse_errors=result.errors,
                parser=result.metadata.parser,
            )

        try:
            self.income.delete_for_statement(user_id, statement_id)
            created = self.income.add_entries(user_id, statement_id, result.entries)
            self.statements.update_entries_count(statement, created)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logging.error(f"Database error reprocessing statement: {e}", extra={"user_id": user_id})
            return StatementOutcome(success=False, error="Failed to create income entries", reason=ERROR)

        log_statement_event(
            "reprocessed",
            user_id,
            str(statement_id),
            created,
            (time.time() - start_time) * 1000,
            parser=result.metadata.parser,
        )
        return StatementOutcome(
            success=True,
            statement_id=statement_id,
            entries_created=created,
            parser=result.metadata.parser,
        )

    def is_harvested(self, user_id: str, dedup_key: str) -> bool:
        return self.statements.exists_with_dedup_key(user_id, dedup_key)

    def list_statements(self, user_id: str) -> List[RawStatement]:
        return self.statements.list_statements(user_id)

    def get_statement(self, user_id: str, statement_id: uuid.UUID) -> RawStatement:
        statement = self.statements.get_statement(user_id, statement_id)
        if statement is None:
            raise StatementNotFoundError(NOT_FOUND)
        return statement

    def list_entries(self, user_id: str, statement_id: uuid.UUID) -> List[IncomeEntry]:
        self.get_statement(user_id, statement_id)
        return self.income.list_for_statement(user_id, statement_id)


def stored_csv(statement: RawStatement) -> Optional[str]:
    """CSV text kept in the statement's raw payload"""
    payload = statement.raw_payload or {}
    content = payload.get("csvContent")
    return content if isinstance(content, str) and content else None
