"""Submit-and-poll orchestrator.

Drives one document through ``SUBMIT -> POLL(n) -> {ACCEPTED | REJECTED |
ERROR | TIMEOUT}``:

1. Submit the document once (``POST /recepcion``).
2. Poll ``GET /recepcion/{clave}`` at a fixed interval. A 404 means Hacienda
   has not indexed the document yet; it counts as an attempt and polling
   continues.
3. Return on the first terminal status, or raise a timeout ``ApiError`` once
   the configured time has elapsed. The timeout is checked between attempts;
   an in-flight request is never aborted.
"""

from loguru import logger

from hacienda.api.http_client import HttpClient
from hacienda.api.models import (
    HaciendaStatus,
    ParsedStatusResponse,
    SubmissionRequest,
    SubmitAndWaitOptions,
    SubmitAndWaitResult,
)
from hacienda.api.submission import (
    extract_rejection_reason,
    get_status,
    is_terminal_status,
    submit_document,
)
from hacienda.core.clock import SYSTEM_CLOCK, Clock
from hacienda.core.constants import MILLISECONDS_PER_SECOND
from hacienda.core.exceptions import ApiError, ErrorCode

# Upper bound for the wait before the first poll
FIRST_POLL_DELAY_MS = 1000


async def submit_and_wait(
    client: HttpClient,
    request: SubmissionRequest,
    options: SubmitAndWaitOptions | None = None,
    clock: Clock = SYSTEM_CLOCK,
) -> SubmitAndWaitResult:
    """Submit a document and poll until Hacienda reports a terminal status.

    Args:
        client: Authenticated HTTP client.
        request: Submission payload with the base64 signed document.
        options: Poll interval, timeout and optional per-poll observer.
        clock: Time source for the poll sleeps and the timeout.

    Returns:
        SubmitAndWaitResult: Final status; ``accepted`` only for ``aceptado``.

    Raises:
        ApiError: If submission fails, polling fails with a non-404 error, or
            no terminal status is seen before the timeout (``POLL_TIMEOUT``).
    """
    options = options or SubmitAndWaitOptions()
    timeout = options.timeout_ms / MILLISECONDS_PER_SECOND

    with logger.contextualize(clave=request.clave):
        submission = await submit_document(client, request)

        started = clock.now()
        poll_attempts = 0

        while True:
            if clock.now() - started >= timeout:
                logger.error(
                    "Polling timed out after {} attempts",
                    poll_attempts,
                    timeout_ms=options.timeout_ms,
                )
                raise ApiError(
                    f"Polling timed out after {options.timeout_ms}ms "
                    f"({poll_attempts} attempts). Last status for clave "
                    f"{request.clave} was not terminal.",
                    response_body={
                        "clave": request.clave,
                        "poll_attempts": poll_attempts,
                    },
                    error_code=ErrorCode.POLL_TIMEOUT,
                )

            delay_ms = (
                min(options.poll_interval_ms, FIRST_POLL_DELAY_MS)
                if poll_attempts == 0
                else options.poll_interval_ms
            )
            await clock.sleep(delay_ms / MILLISECONDS_PER_SECOND)
            poll_attempts += 1

            try:
                status = await get_status(client, request.clave)
            except ApiError as error:
                if error.status_code == 404:
                    logger.debug(
                        "Document not indexed yet", attempt=poll_attempts
                    )
                    continue
                raise

            logger.debug(
                "Polled status {}", status.status.value, attempt=poll_attempts
            )
            if options.on_poll is not None:
                options.on_poll(status, poll_attempts)

            if is_terminal_status(status.status):
                result = _build_result(status, submission.status, poll_attempts)
                logger.info(
                    "Document reached terminal status {}",
                    result.status.value,
                    attempt=poll_attempts,
                )
                return result


def _build_result(
    status: ParsedStatusResponse, submission_status: int, poll_attempts: int
) -> SubmitAndWaitResult:
    accepted = status.status == HaciendaStatus.ACEPTADO
    rejection_reason = None
    if not accepted and status.response_xml:
        rejection_reason = extract_rejection_reason(status.response_xml)

    return SubmitAndWaitResult(
        accepted=accepted,
        status=status.status,
        clave=status.clave,
        date=status.date,
        response_xml=status.response_xml,
        rejection_reason=rejection_reason,
        submission_status=submission_status,
        poll_attempts=poll_attempts,
    )
