"""Application metrics using the Prometheus client library.

Single inventory of everything the service measures.  Other modules
import the metric they own and increment it at the point of action.

HTTP metrics are filled in by MetricsMiddleware.  Registry metrics are
filled in by the registry service: every issue/revoke attempt counts
once under its outcome, so a spike in "unauthorized" or "already_exists"
shows up on a dashboard long before anyone reads the audit log.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# ---------------------------------------------------------------------------
# HTTP metrics (populated by the MetricsMiddleware)
# ---------------------------------------------------------------------------

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests by method, endpoint, and status code",
    ["method", "endpoint", "status_code"],
)

REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

ACTIVE_REQUESTS = Gauge(
    "http_active_requests",
    "Number of HTTP requests currently being processed",
)

# ---------------------------------------------------------------------------
# Registry metrics
# ---------------------------------------------------------------------------

RECORD_OPERATIONS = Counter(
    "registry_record_operations_total",
    "Record lifecycle calls by operation and outcome",
    # operation: issue|issue_institutional|revoke
    # outcome: ok or the RegistryError code (unauthorized, already_exists, ...)
    ["operation", "outcome"],
)

AUTHZ_DENIALS = Counter(
    "registry_authorization_denials_total",
    "Calls rejected by the access policy",
    ["action"],
)

ROLE_CHANGES = Counter(
    "registry_role_changes_total",
    "Identity table changes by role and direction",
    ["role", "change"],  # change: granted|revoked
)
