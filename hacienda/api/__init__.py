"""Client side of the Hacienda REST API.

- **http_client**: authenticated, throttled, retried HTTP calls
- **rate_limiter**: sliding-window request throttling
- **retry**: exponential backoff for transient failures
- **submission**: document submission and status lookup
- **orchestrator**: submit-and-poll until a terminal status
- **comprobantes**: listing and detail of submitted documents
- **taxpayer**: public economic activity lookup
- **error_codes**: rejection code and HTTP status registries
"""

from hacienda.api.comprobantes import (
    ComprobantesQuery,
    get_comprobante,
    list_comprobantes,
)
from hacienda.api.error_codes import (
    HTTP_STATUS_DESCRIPTIONS,
    REJECTION_CODE_DESCRIPTIONS,
    RejectionCode,
    get_http_status_description,
    get_rejection_description,
    is_retryable_status,
)
from hacienda.api.http_client import (
    NO_CONTENT,
    HttpClient,
    HttpResponse,
    RequestOptions,
)
from hacienda.api.models import (
    HaciendaStatus,
    Identification,
    ParsedStatusResponse,
    SubmissionRequest,
    SubmissionResponse,
    SubmitAndWaitOptions,
    SubmitAndWaitResult,
)
from hacienda.api.orchestrator import submit_and_wait
from hacienda.api.rate_limiter import RateLimiter, RateLimiterOptions
from hacienda.api.retry import RetryOptions, RetryPolicy, with_retry
from hacienda.api.submission import (
    extract_rejection_reason,
    get_status,
    is_terminal_status,
    submit_document,
)
from hacienda.api.taxpayer import TaxpayerInfo, lookup_taxpayer

__all__ = [
    "HTTP_STATUS_DESCRIPTIONS",
    "NO_CONTENT",
    "REJECTION_CODE_DESCRIPTIONS",
    "ComprobantesQuery",
    "HaciendaStatus",
    "HttpClient",
    "HttpResponse",
    "Identification",
    "ParsedStatusResponse",
    "RateLimiter",
    "RateLimiterOptions",
    "RejectionCode",
    "RequestOptions",
    "RetryOptions",
    "RetryPolicy",
    "SubmissionRequest",
    "SubmissionResponse",
    "SubmitAndWaitOptions",
    "SubmitAndWaitResult",
    "TaxpayerInfo",
    "extract_rejection_reason",
    "get_comprobante",
    "get_http_status_description",
    "get_rejection_description",
    "get_status",
    "is_retryable_status",
    "is_terminal_status",
    "list_comprobantes",
    "lookup_taxpayer",
    "submit_and_wait",
    "submit_document",
    "with_retry",
]
