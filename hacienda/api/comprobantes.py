"""Read-only access to submitted documents (``/comprobantes``)."""

from dataclasses import asdict, dataclass
from typing import Any

from hacienda.api.http_client import HttpClient


@dataclass(frozen=True)
class ComprobantesQuery:
    """Filters and pagination for ``GET /comprobantes``."""

    offset: int | None = None
    limit: int | None = None
    fecha_emision_desde: str | None = None
    fecha_emision_hasta: str | None = None
    emisor_identificacion: str | None = None
    receptor_identificacion: str | None = None

    def to_params(self) -> dict[str, str]:
        """Query parameters with Hacienda's names; unset filters are omitted."""
        wire_names = {
            "fecha_emision_desde": "fechaEmisionDesde",
            "fecha_emision_hasta": "fechaEmisionHasta",
            "emisor_identificacion": "emisorIdentificacion",
            "receptor_identificacion": "receptorIdentificacion",
        }
        return {
            wire_names.get(name, name): str(value)
            for name, value in asdict(self).items()
            if value is not None
        }


async def list_comprobantes(
    client: HttpClient, query: ComprobantesQuery | None = None
) -> dict[str, Any]:
    """List submitted documents, optionally filtered by date and party."""
    params = query.to_params() if query else None
    response = await client.get("/comprobantes", params=params or None)
    return response.data


async def get_comprobante(client: HttpClient, clave: str) -> dict[str, Any]:
    """Fetch the full record of one submitted document by its clave."""
    response = await client.get(f"/comprobantes/{clave}")
    return response.data
