"""/v1/statements - upload, list, delete and reprocess royalty statements"""

import logging
import uuid
from fastapi import APIRouter, Depends, HTTPException, Request

from royalty_service.api.dependencies import get_request_id, get_settings, get_statement_service, get_user_id
from royalty_service.api.v1.schemas import (
    IncomeEntrySchema,
    NormalizedRowSchema,
    ParseMetadataSchema,
    ParsePreviewResponse,
    RowErrorSchema,
    StatementCreateRequest,
    StatementDetailResponse,
    StatementListResponse,
    StatementOutcomeResponse,
    StatementPreviewRequest,
    StatementSummary,
)
from royalty_service.config import Settings
from royalty_service.domain.exceptions import StatementNotFoundError, UnsupportedFormatError
from royalty_service.parsers import parse_csv
from royalty_service.services.statements import INVALID, MISSING, StatementOutcome, StatementService

router = APIRouter()


def _summary(statement) -> StatementSummary:
    return StatementSummary(
        id=str(statement.id),
        provider=statement.provider,
        source_system=statement.source_system,
        label=statement.label,
        file_name=statement.file_name,
        file_size=statement.file_size,
        parsed_entries_count=statement.parsed_entries_count,
        created_at=statement.created_at,
    )


def _failure(outcome: StatementOutcome) -> HTTPException:
    """Map a failed outcome to the HTTP error the client sees"""
    if outcome.reason == MISSING:
        return HTTPException(status_code=404, detail=outcome.error)

    if outcome.reason == INVALID:
        return HTTPException(
            status_code=422,
            detail={
                "error": outcome.error,
                "parse_errors": [
                    RowErrorSchema(row=e.row, error=e.error, raw_row=e.raw_row).model_dump() for e in outcome.parse_errors
                ],
            },
        )

    return HTTPException(status_code=500, detail=outcome.error or "Internal server error")


def _check_size(content: str, settings: Settings) -> None:
    if len(content.encode("utf-8")) > settings.max_csv_bytes:
        raise HTTPException(status_code=413, detail=f"CSV exceeds {settings.max_csv_bytes} bytes")


@router.post("/statements", response_model=StatementOutcomeResponse, status_code=201)
def create_statement(
    request_body: StatementCreateRequest,
    request: Request,
    user_id: str = Depends(get_user_id),
    settings: Settings = Depends(get_settings),
    service: StatementService = Depends(get_statement_service),
):
    """
    Parse an uploaded CSV and store it with its income entries.

    Flow:
    1. Reject oversized uploads
    2. Detect the distributor format and normalize rows
    3. Persist statement + entries in one transaction
    """
    _check_size(request_body.csv_content, settings)

    outcome = service.create_from_csv(user_id, request_body.csv_content, request_body.file_name)
    if not outcome.success:
        logging.warning(
            f"Statement upload rejected: {outcome.error}",
            extra={"request_id": get_request_id(request), "user_id": user_id},
        )
        raise _failure(outcome)

    return StatementOutcomeResponse(
        success=True,
        statement_id=str(outcome.statement_id),
        entries_created=outcome.entries_created,
        parser=outcome.parser,
    )


@router.post("/statements/preview", response_model=ParsePreviewResponse)
def preview_statement(
    request_body: StatementPreviewRequest,
    user_id: str = Depends(get_user_id),
    settings: Settings = Depends(get_settings),
):
    """Run detection and parsing without persisting anything"""
    _check_size(request_body.csv_content, settings)

    try:
        result = parse_csv(request_body.csv_content)
    except UnsupportedFormatError as e:
        raise HTTPException(status_code=422, detail={"error": str(e), "parse_errors": []})

    return ParsePreviewResponse(
        success=result.success,
        entries=[
            NormalizedRowSchema(
                source_type=row.source_type,
                amount=float(row.amount),
                period_start=row.period_start,
                period_end=row.period_end,
                notes=row.notes,
            )
            for row in result.entries
        ],
        errors=[RowErrorSchema(row=e.row, error=e.error, raw_row=e.raw_row) for e in result.errors],
        metadata=ParseMetadataSchema(
            parser=result.metadata.parser,
            parser_name=result.metadata.parser_name,
            total_rows=result.metadata.total_rows,
            successful_rows=result.metadata.successful_rows,
            failed_rows=result.metadata.failed_rows,
            skipped_rows=result.metadata.skipped_rows,
        ),
    )


@router.get("/statements", response_model=StatementListResponse)
def list_statements(
    user_id: str = Depends(get_user_id),
    service: StatementService = Depends(get_statement_service),
):
    """Most recent statements for the calling user"""
    return StatementListResponse(statements=[_summary(s) for s in service.list_statements(user_id)])


@router.get("/statements/{statement_id}", response_model=StatementDetailResponse)
def get_statement(
    statement_id: uuid.UUID,
    user_id: str = Depends(get_user_id),
    service: StatementService = Depends(get_statement_service),
):
    try:
        statement = service.get_statement(user_id, statement_id)
        entries = service.list_entries(user_id, statement_id)
    except StatementNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    return StatementDetailResponse(
        **_summary(statement).model_dump(),
        entries=[IncomeEntrySchema.from_record(e) for e in entries],
    )


@router.delete("/statements/{statement_id}", status_code=204)
def delete_statement(
    statement_id: uuid.UUID,
    user_id: str = Depends(get_user_id),
    service: StatementService = Depends(get_statement_service),
):
    """Delete a statement and every entry derived from it"""
    outcome = service.delete(user_id, statement_id)
    if not outcome.success:
        raise _failure(outcome)


@router.post("/statements/{statement_id}/reprocess", response_model=StatementOutcomeResponse)
def reprocess_statement(
    statement_id: uuid.UUID,
    user_id: str = Depends(get_user_id),
    service: StatementService = Depends(get_statement_service),
):
    """Re-run parsing on the stored CSV and replace the statement's entries"""
    outcome = service.reprocess(user_id, statement_id)
    if not outcome.success:
        raise _failure(outcome)

    return StatementOutcomeResponse(
        success=True,
        statement_id=str(outcome.statement_id),
        entries_created=outcome.entries_created,
        parser=outcome.parser,
    )
