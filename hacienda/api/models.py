"""Typed records exchanged with the Hacienda recepcion API and with callers.

Field names are Pythonic; the wire names used by Hacienda are declared as
aliases and used when serializing request payloads.
"""

from collections.abc import Callable
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from hacienda.core.constants import CLAVE_LENGTH


class HaciendaStatus(StrEnum):
    """Processing status values reported by Hacienda."""

    RECIBIDO = "recibido"
    PROCESANDO = "procesando"
    ACEPTADO = "aceptado"
    RECHAZADO = "rechazado"
    ERROR = "error"


TERMINAL_STATUSES = frozenset(
    {HaciendaStatus.ACEPTADO, HaciendaStatus.RECHAZADO, HaciendaStatus.ERROR}
)


class Identification(BaseModel):
    """Issuer or receiver identification as sent with a submission."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    tipo: str = Field(alias="tipoIdentificacion", pattern=r"^0[1-4]$")
    numero: str = Field(alias="numeroIdentificacion", pattern=r"^\d{9,12}$")


class SubmissionRequest(BaseModel):
    """Payload for ``POST /recepcion``.

    ``comprobante_xml`` is the signed document, already base64-encoded by the
    signing collaborator.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    clave: str = Field(
        min_length=CLAVE_LENGTH, max_length=CLAVE_LENGTH, pattern=r"^\d+$"
    )
    fecha: str
    emisor: Identification
    receptor: Identification | None = None
    comprobante_xml: str = Field(alias="comprobanteXml", min_length=1)
    callback_url: str | None = Field(default=None, alias="callbackUrl")

    def to_wire(self) -> dict[str, Any]:
        """Serialize with Hacienda's field names, omitting unset optionals."""
        return self.model_dump(by_alias=True, exclude_none=True)


class SubmissionResponse(BaseModel):
    """Outcome of the submission call (HTTP 201/202)."""

    model_config = ConfigDict(frozen=True)

    status: int
    location: str | None = None


class ParsedStatusResponse(BaseModel):
    """Status of a submitted document with the response document decoded."""

    model_config = ConfigDict(frozen=True)

    clave: str
    status: HaciendaStatus
    date: str | None = None
    response_xml: str | None = None
    raw: dict[str, Any] = Field(default_factory=dict)


class SubmitAndWaitResult(BaseModel):
    """Final result of ``submit_and_wait``; the only type returned to callers."""

    model_config = ConfigDict(frozen=True)

    accepted: bool
    status: HaciendaStatus
    clave: str
    date: str | None = None
    response_xml: str | None = None
    rejection_reason: str | None = None
    submission_status: int
    poll_attempts: int


class SubmitAndWaitOptions(BaseModel):
    """Polling configuration for ``submit_and_wait``."""

    model_config = ConfigDict(frozen=True)

    poll_interval_ms: int = Field(default=3000, gt=0)
    timeout_ms: int = Field(default=60000, gt=0)
    on_poll: Callable[[ParsedStatusResponse, int], None] | None = None
