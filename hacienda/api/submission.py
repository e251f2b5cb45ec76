"""Document submission and status lookup against the ``/recepcion`` endpoints."""

import base64
import binascii
import re
from typing import Any

from loguru import logger
from pydantic import ValidationError as PydanticValidationError

from hacienda.api.error_codes import get_rejection_description
from hacienda.api.http_client import HttpClient
from hacienda.api.models import (
    TERMINAL_STATUSES,
    HaciendaStatus,
    ParsedStatusResponse,
    SubmissionRequest,
    SubmissionResponse,
)
from hacienda.core.exceptions import ApiError

_DETAIL_PATTERN = re.compile(r"<DetalleMensaje>(.*?)</DetalleMensaje>", re.DOTALL)
_CODE_PATTERN = re.compile(r"<Codigo>(\d+)</Codigo>", re.DOTALL)

REJECTION_REASON_SEPARATOR = " \u2014 "


async def submit_document(
    client: HttpClient, request: SubmissionRequest
) -> SubmissionResponse:
    """Submit a signed document to Hacienda.

    Args:
        client: Authenticated HTTP client.
        request: Submission payload with the base64 signed document.

    Returns:
        SubmissionResponse: HTTP status and the ``Location`` header, if any.

    Raises:
        ApiError: On HTTP errors; a 409 is reported as a duplicate clave.
    """
    try:
        response = await client.post("/recepcion", request.to_wire())
    except ApiError as error:
        if error.status_code == 409:
            raise ApiError(
                f"Duplicate submission: a document with clave {request.clave} "
                "has already been submitted.",
                status_code=409,
                response_body=error.response_body,
                cause=error,
            ) from error
        raise

    logger.info(
        "Document submitted", clave=request.clave, status_code=response.status
    )
    return SubmissionResponse(
        status=response.status, location=response.headers.get("Location")
    )


def decode_response_xml(encoded: str | None) -> str | None:
    """Decode the base64 ``respuesta-xml`` field, or None if absent or invalid."""
    if not encoded:
        return None
    try:
        return base64.b64decode(encoded, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        logger.warning("Could not decode respuesta-xml from status response")
        return None


async def get_status(client: HttpClient, clave: str) -> ParsedStatusResponse:
    """Fetch the processing status of a submitted document.

    Args:
        client: Authenticated HTTP client.
        clave: The 50-digit clave of the submitted document.

    Returns:
        ParsedStatusResponse: Status with the response document decoded.

    Raises:
        ApiError: If the request fails or the payload is not a status response.
    """
    response = await client.get(f"/recepcion/{clave}")
    data: Any = response.data
    if not isinstance(data, dict):
        raise ApiError(
            f"Unexpected status response for clave {clave}",
            status_code=response.status,
            response_body=data,
        )

    try:
        return ParsedStatusResponse(
            clave=data.get("clave", clave),
            status=data.get("ind-estado"),
            date=data.get("fecha"),
            response_xml=decode_response_xml(data.get("respuesta-xml")),
            raw=data,
        )
    except PydanticValidationError as e:
        raise ApiError(
            f"Invalid status response for clave {clave}: {e.error_count()} error(s)",
            status_code=response.status,
            response_body=data,
            cause=e,
        ) from e


def extract_rejection_reason(response_xml: str) -> str | None:
    """Build a human-readable rejection reason from a MensajeHacienda document.

    Args:
        response_xml: Decoded response document.

    Returns:
        str | None: ``"[Code NN] <description> - <detail>"`` with whichever
        parts are present, or None when the document has neither.
    """
    parts: list[str] = []

    if code_match := _CODE_PATTERN.search(response_xml):
        code = code_match.group(1)
        parts.append(f"[Code {code}] {get_rejection_description(code)}")

    if detail_match := _DETAIL_PATTERN.search(response_xml):
        detail = detail_match.group(1).strip()
        if detail:
            parts.append(detail)

    return REJECTION_REASON_SEPARATOR.join(parts) if parts else None


def is_terminal_status(status: HaciendaStatus | str) -> bool:
    """Whether ``status`` ends processing (aceptado, rechazado or error)."""
    return status in TERMINAL_STATUSES
