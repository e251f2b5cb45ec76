"""Taxpayer economic activity lookup.

The economic activity API is a public Hacienda endpoint outside the recepcion
API; it needs no authentication and is not routed through ``HttpClient``.
"""

from typing import Any

import httpx
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from hacienda.auth.environment import ECONOMIC_ACTIVITY_API_URL
from hacienda.core.exceptions import ApiError


class EconomicActivity(BaseModel):
    """One registered economic activity."""

    codigo: str
    descripcion: str
    estado: str


class TaxpayerInfo(BaseModel):
    """Registered name and activities of a taxpayer."""

    model_config = ConfigDict(populate_by_name=True)

    nombre: str
    tipo_identificacion: str = Field(alias="tipoIdentificacion")
    actividades: list[EconomicActivity] = Field(default_factory=list)


async def lookup_taxpayer(
    identification: str, http_client: httpx.AsyncClient | None = None
) -> TaxpayerInfo:
    """Look up a taxpayer's economic activities by identification number.

    Args:
        identification: Taxpayer identification number (cedula).
        http_client: Client to use; a short-lived one is created when omitted.

    Returns:
        TaxpayerInfo: Name, identification type and activities.

    Raises:
        ApiError: On network failure, a non-2xx status (404 for unknown
            taxpayers) or an unexpected payload.
    """
    owns_client = http_client is None
    client = http_client or httpx.AsyncClient()
    try:
        response = await client.get(
            ECONOMIC_ACTIVITY_API_URL,
            params={"identificacion": identification},
            headers={"Accept": "application/json"},
        )
    except httpx.HTTPError as e:
        raise ApiError(
            f"Network error looking up taxpayer {identification}: {e!r}", cause=e
        ) from e
    finally:
        if owns_client:
            await client.aclose()

    body: Any
    try:
        body = response.json()
    except ValueError:
        body = response.text or None

    if response.status_code == 404:
        raise ApiError(
            f"Taxpayer not found for identification: {identification}",
            status_code=404,
            response_body=body,
        )
    if not response.is_success:
        raise ApiError(
            f"Taxpayer lookup failed ({response.status_code}): {identification}",
            status_code=response.status_code,
            response_body=body,
        )

    try:
        info = TaxpayerInfo.model_validate(body)
    except PydanticValidationError as e:
        raise ApiError(
            f"Invalid response from economic activity API for {identification}",
            status_code=response.status_code,
            response_body=body,
            cause=e,
        ) from e

    logger.debug(
        "Taxpayer lookup returned {} activities", len(info.actividades)
    )
    return info
