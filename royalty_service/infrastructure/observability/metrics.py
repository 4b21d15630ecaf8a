"""Prometheus metrics for statement ingestion, harvesting and API latency"""

from prometheus_client import Counter, Histogram

from royalty_service.domain.models import ParseResult

# Ingestion metrics
statement_counter = Counter(
    "royalty_statements_total",
    "Statement ingestion attempts",
    ["source_system", "outcome"],  # upload | email_csv ; created | parse_failed | unsupported | error | duplicate
)

parsed_rows_counter = Counter(
    "royalty_parsed_rows_total",
    "CSV data rows processed by parser",
    ["parser", "outcome"],  # ok | failed | skipped
)

# Harvest metrics
harvest_attachment_counter = Counter(
    "royalty_harvest_attachments_total",
    "Mailbox attachments seen during harvesting",
    ["outcome"],  # created | duplicate | skipped | failed
)

mailbox_failures_counter = Counter(
    "mailbox_api_failures_total",
    "Failed mailbox API calls",
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_parse(result: ParseResult) -> None:
    """Record per-row parse outcomes for monitoring statement quality"""
    meta = result.metadata
    if meta.successful_rows:
        parsed_rows_counter.labels(parser=meta.parser, outcome="ok").inc(meta.successful_rows)
    if meta.failed_rows:
        parsed_rows_counter.labels(parser=meta.parser, outcome="failed").inc(meta.failed_rows)
    if meta.skipped_rows:
        parsed_rows_counter.labels(parser=meta.parser, outcome="skipped").inc(meta.skipped_rows)


def record_statement(source_system: str, outcome: str) -> None:
    statement_counter.labels(source_system=source_system, outcome=outcome).inc()
