"""Prometheus metrics for the KYC desk.

Defines operational metrics for submission intake, review and attachment
storage.
"""

from prometheus_client import Counter, Histogram

# Intake metrics
submissions_created_total = Counter(
    "kycdesk_submissions_created_total",
    "Total submissions registered",
    ["kind"]  # kind: registration|trading_application
)

submissions_rejected_total = Counter(
    "kycdesk_submissions_rejected_total",
    "Total intake attempts rejected",
    ["reason"]  # reason: validation|duplicate_email|duplicate_phone|duplicate_national_id|storage|persistence
)

# Review metrics
status_transitions_total = Counter(
    "kycdesk_status_transitions_total",
    "Total review status updates",
    ["from_status", "to_status"]
)

# Attachment metrics
attachments_stored_total = Counter(
    "kycdesk_attachments_stored_total",
    "Total attachments written to the store",
    ["media_type"]
)

attachment_bytes = Histogram(
    "kycdesk_attachment_bytes",
    "Stored attachment size in bytes",
    buckets=[16_384, 65_536, 262_144, 524_288, 1_048_576, 2_097_152, 5_242_880, 10_485_760]
)

attachment_cleanup_failures_total = Counter(
    "kycdesk_attachment_cleanup_failures_total",
    "Attachment deletes that failed during best-effort cleanup"
)

# HTTP metrics
http_request_duration_seconds = Histogram(
    "kycdesk_http_request_duration_seconds",
    "HTTP request latency",
    ["method", "route", "status"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0]
)
